"""
Configuration management subsystem for Projekt L.

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables at startup (.env supported)
- Includes: database URL and pool sizing, environment, log settings
- Changes require a restart (or an explicit ``Config.load()``)

**Dynamic (ConfigManager):**
- Built-in defaults merged with YAML files from ``config/``
- Includes: quest text templates, default factions, event bus timeouts
- Runtime overrides via ``ConfigManager.set``

Usage
-----
```python
from projektl.core.config import Config, ConfigManager

db_url = Config.DATABASE_URL
faction = ConfigManager.get("quests.default_activity_faction", "karriere")
```
"""

from projektl.core.config.config import Config, Environment
from projektl.core.config.config_manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
]
