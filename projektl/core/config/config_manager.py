"""
Tunable quest and progression values backed by YAML.

``ConfigManager.get("quests.default_xp_reward")`` reads from an in-memory
tree built at start-up: the built-in ``_defaults`` first, then every
``*.yaml``/``*.yml`` under the config directory deep-merged on top in
path order. Unknown keys return the caller's default; lookups never raise.

The XP curve constants are deliberately absent: changing them would
reinterpret persisted levels, so they live in
``projektl.modules.shared.constants``.
"""

from __future__ import annotations

import copy
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from projektl.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


def _deep_merge(target: Dict[str, Any], overlay: Dict[str, Any]) -> None:
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _lookup(tree: Dict[str, Any], key: str) -> Any:
    node: Any = tree
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


class ConfigManager:
    """
    Class-level store; ``initialize()`` runs lazily on first access.

    >>> ConfigManager.get("quests.default_activity_faction")
    'karriere'
    >>> ConfigManager.get("quests.unknown", 7)
    7
    """

    # Same shape as config/*.yaml.
    _defaults: Dict[str, Any] = {
        "quests": {
            "default_activity_faction": "karriere",
            "action_description_template": "Step {step} of {total}",
            "activity_title_template": "Quest completed: {title}",
            "experience_description_template": "Quest completed: {title}",
            "default_xp_reward": 50,
        },
        "progression": {
            "default_skill_faction": "karriere",
        },
        "core": {
            "event": {
                "listener_timeout_seconds": 5.0,
            },
        },
    }

    _tree: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None
    _counters: Counter = Counter()

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        Rebuild the tree from defaults plus YAML under ``config_dir``.

        ``config_dir`` defaults to ``Config.CONFIG_DIR``. Unreadable or
        malformed files are logged, counted under ``errors`` and skipped.
        """
        from projektl.core.config.config import Config

        cls._config_dir = Path(config_dir or Config.CONFIG_DIR)
        cls._tree = copy.deepcopy(cls._defaults)
        cls._counters["files_loaded"] = 0

        if not cls._config_dir.is_dir():
            logger.warning(
                "Config directory not found, using built-in defaults",
                extra={"config_dir": str(cls._config_dir)},
            )
        else:
            files = sorted(cls._config_dir.rglob("*.yaml")) + sorted(
                cls._config_dir.rglob("*.yml")
            )
            for path in files:
                cls._merge_file(path)

        cls._initialized = True
        logger.info(
            "Tunables loaded",
            extra={
                "config_dir": str(cls._config_dir),
                "yaml_files": cls._counters["files_loaded"],
                "sections": sorted(cls._tree),
            },
        )

    @classmethod
    def _merge_file(cls, path: Path) -> None:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            cls._counters["errors"] += 1
            logger.warning(
                f"Skipping unreadable config file {path.name}",
                extra={"file": str(path), "error": str(exc)},
            )
            return
        if isinstance(data, dict):
            _deep_merge(cls._tree, data)
            cls._counters["files_loaded"] += 1
            logger.debug(f"Merged {path.relative_to(cls._config_dir)}")

    @classmethod
    def reset(cls) -> None:
        """Forget everything, overrides included; next access reloads."""
        cls._tree = {}
        cls._initialized = False
        cls._config_dir = None
        cls._counters = Counter()

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Dot-notation lookup. An explicit YAML ``null`` falls back to the
        built-in default for that key, then to ``default``.
        """
        if not cls._initialized:
            cls.initialize()
        cls._counters["gets"] += 1

        value = _lookup(cls._tree, key)
        if value is _MISSING or value is None:
            cls._counters["misses"] += 1
            value = _lookup(cls._defaults, key)
            if value is _MISSING or value is None:
                return default
            cls._counters["fallback_to_defaults"] += 1
        return value

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Runtime override, creating intermediate sections as needed."""
        if not cls._initialized:
            cls.initialize()

        *sections, leaf = key.split(".")
        node = cls._tree
        for section in sections:
            child = node.get(section)
            if not isinstance(child, dict):
                child = node[section] = {}
            node = child
        node[leaf] = value
        cls._counters["sets"] += 1
        logger.info(f"Config override: {key}", extra={"config_key": key})

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Top-level sections."""
        return list(cls._tree)

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        gets = cls._counters["gets"]
        misses = cls._counters["misses"]
        return {
            "gets": gets,
            "sets": cls._counters["sets"],
            "misses": misses,
            "hit_rate": round((gets - misses) / gets * 100, 2) if gets else 0.0,
            "fallback_to_defaults": cls._counters["fallback_to_defaults"],
            "files_loaded": cls._counters["files_loaded"],
            "errors": cls._counters["errors"],
            "initialized": cls._initialized,
        }
