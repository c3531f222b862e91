"""
Faction Stat Service
====================

Purpose
-------
Owns the per-user faction stat rows outside of XP awards: seeding the
seven factions for a new user, presenting an overview with level
progress, and zeroing the weekly/monthly counters on their reset
schedule.

XP is added to factions by ProgressionService; this service only reads
and maintains the rows.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from projektl.core.database.service import DatabaseService
from projektl.core.logging.logger import get_logger
from projektl.core.validation.input_validator import InputValidator
from projektl.database.models import FactionId, UserFactionStat
from projektl.modules.progression.repository import FactionStatRepository
from projektl.modules.shared.base_service import BaseService
from projektl.modules.shared.exceptions import InvalidOperationError
from projektl.modules.shared.formulas import (
    format_xp_compact,
    level_from_cumulative_xp,
    level_tier,
    progress_to_next_level_percent,
    xp_into_current_level,
    xp_required_for_level,
)

if TYPE_CHECKING:
    from logging import Logger

    from projektl.core.config.config_manager import ConfigManager
    from projektl.core.event.bus import EventBus


PERIOD_COLUMNS = {
    "weekly": UserFactionStat.weekly_xp,
    "monthly": UserFactionStat.monthly_xp,
}


class FactionStatService(BaseService):
    """
    Maintenance and read model for faction stats.

    Public Methods
    --------------
    - initialize_user_factions() -> Seed missing faction rows for a user
    - get_faction_overview() -> Level progress for all seven factions
    - reset_period_xp() -> Zero weekly or monthly counters
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stats = FactionStatRepository(
            UserFactionStat, get_logger(f"{__name__}.FactionStatRepository")
        )

    async def initialize_user_factions(self, user_id: str) -> int:
        """
        Create a zeroed level-1 row for every faction the user lacks.

        Idempotent.

        Returns:
            Number of rows created
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_transaction() as session:
            existing = {
                stat.faction_id for stat in await self._stats.list_for_user(session, user_id)
            }
            missing = [f.value for f in FactionId if f.value not in existing]
            self._stats.add_many(
                session,
                [
                    UserFactionStat(
                        user_id=user_id,
                        faction_id=faction_id,
                        total_xp=0,
                        weekly_xp=0,
                        monthly_xp=0,
                        level=1,
                    )
                    for faction_id in missing
                ],
            )

        self.log_operation(
            "initialize_user_factions", user_id=user_id, rows_created=len(missing)
        )
        return len(missing)

    async def get_faction_overview(self, user_id: str) -> List[Dict[str, Any]]:
        """
        One entry per faction in canonical order.

        Factions without a row are reported with zeroed counters at level 1.

        Example:
            >>> overview = await service.get_faction_overview(uid)
            >>> overview[0]["faction_id"], overview[0]["tier"]
            ('karriere', 'Beginner')
        """
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            rows = {
                stat.faction_id: stat
                for stat in await self._stats.list_for_user(session, user_id)
            }

        overview: List[Dict[str, Any]] = []
        for faction in FactionId:
            stat = rows.get(faction.value)
            total_xp = stat.total_xp if stat else 0
            level = level_from_cumulative_xp(total_xp)
            into_level = xp_into_current_level(total_xp)
            tier = level_tier(level)

            overview.append(
                {
                    "faction_id": faction.value,
                    "total_xp": total_xp,
                    "weekly_xp": stat.weekly_xp if stat else 0,
                    "monthly_xp": stat.monthly_xp if stat else 0,
                    "level": level,
                    "xp_into_level": into_level,
                    "xp_to_next_level": xp_required_for_level(level + 1) - into_level,
                    "progress_percent": progress_to_next_level_percent(level, into_level),
                    "tier": tier.name,
                    "tier_color": tier.color_token,
                    "total_xp_display": format_xp_compact(total_xp),
                }
            )

        return overview

    async def reset_period_xp(self, period: str) -> int:
        """
        Zero the weekly or monthly counter on every faction row.

        Total XP and levels are untouched.

        Returns:
            Number of rows reset

        Raises:
            InvalidOperationError: If period is not "weekly" or "monthly"
        """
        column = PERIOD_COLUMNS.get(period)
        if column is None:
            raise InvalidOperationError(
                "reset_period_xp",
                f"Unknown period '{period}', expected one of: {', '.join(PERIOD_COLUMNS)}",
            )

        async with DatabaseService.get_transaction() as session:
            rowcount = await self._stats.update_where(
                session, column != 0, values={column.key: 0}
            )

        self.log_operation("reset_period_xp", period=period, rows=rowcount)
        await self.emit_event("faction.period_reset", {"period": period, "rows": rowcount})
        return rowcount
