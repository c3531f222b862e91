"""
Quest Progress Service
======================

Purpose
-------
Applies progress actions (increment, decrement, complete) to a user's
quest and, on the transition into ``completed``, fans the quest's XP
reward out to the profile, every target faction and every target skill.

Domain
------
- Guard: quest exists, belongs to the caller, is active and not expired
- Progress: clamp ``completed_actions`` to ``0..required_actions`` and
  recompute the percentage
- Audit: one action record per increment/complete
- Fan-out on completion, in order: audit, profile XP, faction XP
  (even split), skill XP (even split), activity log entry
- Final quest write

Transaction model
-----------------
Everything runs in one ``get_transaction()``. Each fan-out step runs in
its own SAVEPOINT: a failing step is rolled back to the savepoint, logged
and reported in ``failed_steps`` while the remaining steps continue.

The final quest write is conditional on the quest still being active at
the version read at the start of the call. If another call got there
first no row matches, ``InvalidStateError`` is raised and the whole
transaction rolls back, fan-out included, so XP is awarded at most once.
The quest row is read with a lock (``BEGIN IMMEDIATE`` on SQLite), so a
concurrent call usually waits and then fails the active-status guard.

Events
------
Published after commit:
- ``quest.progressed`` for every applied action
- ``quest.completed`` when the action completed the quest
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

from projektl.core.database.base import utcnow
from projektl.core.database.service import DatabaseService
from projektl.core.logging.logger import LogContext, get_logger
from projektl.core.validation.input_validator import InputValidator
from projektl.database.models import (
    ActivityType,
    FactionId,
    Quest,
    QuestAction,
    QuestActionType,
    QuestStatus,
)
from projektl.modules.shared.base_service import BaseService
from projektl.modules.shared.constants import DEFAULT_QUEST_XP_REWARD, PERCENT_MAX
from projektl.modules.shared.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from projektl.modules.shared.formulas import round_half_up, split_xp

from .repository import QuestActionRepository, QuestRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from projektl.core.config.config_manager import ConfigManager
    from projektl.core.event.bus import EventBus
    from projektl.modules.progression.service import ProgressionService


AUDITED_ACTIONS = frozenset({QuestActionType.INCREMENT, QuestActionType.COMPLETE})


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class QuestProgressService(BaseService):
    """
    Quest progress state machine and completion fan-out.

    Public Methods
    --------------
    - apply_quest_action() -> Apply increment/decrement/complete
    - get_quest_action_history() -> Audit trail for a quest, oldest first
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        progression_service: ProgressionService,
    ) -> None:
        """
        Initialize QuestProgressService with required dependencies.

        Args:
            config_manager: Application configuration manager
            event_bus: Event bus for cross-module communication
            logger: Structured logger instance
            progression_service: XP bookkeeping used by the fan-out steps
        """
        super().__init__(config_manager, event_bus, logger)

        self._quests = QuestRepository(Quest, get_logger(f"{__name__}.QuestRepository"))
        self._actions = QuestActionRepository(
            QuestAction, get_logger(f"{__name__}.QuestActionRepository")
        )
        self._progression = progression_service

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def apply_quest_action(
        self,
        quest_id: str,
        user_id: str,
        action: str,
        description: Optional[str] = None,
        habit_log_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Apply a progress action to an active quest.

        Args:
            quest_id: Quest to progress
            user_id: Caller; must own the quest
            action: "increment", "decrement" or "complete"
            description: Optional audit text (default "Step n of m")
            habit_log_id: Optional habit log that triggered the action

        Returns:
            Dict containing:
                - quest: Quest state after the write
                - completed: Whether this call completed the quest
                - xp_awarded: Nominal reward when completed, else None
                - failed_steps: Fan-out steps that were rolled back
                - message: Short summary for the caller

        Raises:
            ValidationError: Bad id, action or description
            NotFoundError: No such quest
            ForbiddenError: Quest owned by another user
            InvalidStateError: Quest not active, expired, or changed
                concurrently (error_code QUEST_CHANGED_CONCURRENTLY)
            DatabaseError: Lock wait timed out or the connection was lost

        Example:
            >>> result = await service.apply_quest_action(qid, uid, "increment")
            >>> result["message"]
            'Progress: 2/4'
        """
        quest_id = InputValidator.validate_entity_id(quest_id, "quest_id")
        user_id = InputValidator.validate_entity_id(user_id, "user_id")
        action_type = QuestActionType(
            InputValidator.validate_choice(
                action, "action", [a.value for a in QuestActionType]
            )
        )
        description = InputValidator.validate_optional_description(description)
        if habit_log_id is not None:
            habit_log_id = InputValidator.validate_entity_id(habit_log_id, "habit_log_id")

        async with LogContext(
            user_id=user_id, quest_id=quest_id, operation="apply_quest_action"
        ):
            self.log_operation(
                "apply_quest_action",
                user_id=user_id,
                quest_id=quest_id,
                action=action_type.value,
            )

            failed_steps: List[str] = []

            async with DatabaseService.get_transaction() as session:
                quest = await self._quests.get(session, quest_id, for_update=True)
                self._check_can_progress(quest, quest_id, user_id)
                assert quest is not None

                read_version = quest.version
                required = max(1, quest.required_actions or 1)
                completed_actions = self._next_completed_actions(
                    action_type, quest.completed_actions or 0, required
                )
                progress = round_half_up(PERCENT_MAX * completed_actions / required)
                completed = completed_actions >= required
                xp_reward = (
                    quest.xp_reward
                    if quest.xp_reward is not None
                    else self.get_config("quests.default_xp_reward", DEFAULT_QUEST_XP_REWARD)
                )

                if action_type in AUDITED_ACTIONS:
                    async with self._fanout_step(
                        session, "quest_action", failed_steps, quest_id=quest_id
                    ):
                        await self._record_action(
                            session,
                            quest_id,
                            user_id,
                            action_type,
                            completed_actions,
                            required,
                            description,
                            habit_log_id,
                        )

                if completed:
                    await self._award_completion(session, quest, user_id, xp_reward, failed_steps)

                now = utcnow()
                values: Dict[str, Any] = {
                    "completed_actions": completed_actions,
                    "progress": progress,
                    "version": read_version + 1,
                    "updated_at": now,
                }
                if completed:
                    values.update(
                        status=QuestStatus.COMPLETED.value,
                        completed_at=now,
                        progress=PERCENT_MAX,
                    )

                rowcount = await self._quests.update_where(
                    session,
                    Quest.id == quest_id,
                    Quest.status == QuestStatus.ACTIVE.value,
                    Quest.version == read_version,
                    values=values,
                )
                if rowcount != 1:
                    self.log.warning(
                        "Quest changed concurrently, rolling back",
                        extra={"quest_id": quest_id, "read_version": read_version},
                    )
                    raise InvalidStateError(
                        "Quest",
                        QuestStatus.ACTIVE.value,
                        "Quest was changed by another request",
                        error_code="QUEST_CHANGED_CONCURRENTLY",
                        is_retryable=True,
                    )

                await self._quests.refresh(session, quest)
                quest_data = self._quest_to_dict(quest)

            if failed_steps:
                self.log.warning(
                    "Quest progressed with failed fan-out steps",
                    extra={"quest_id": quest_id, "failed_steps": failed_steps},
                )

            await self.emit_event(
                "quest.progressed",
                {
                    "user_id": user_id,
                    "quest_id": quest_id,
                    "action": action_type.value,
                    "completed_actions": completed_actions,
                    "required_actions": required,
                    "progress": quest_data["progress"],
                },
            )
            if completed:
                await self.emit_event(
                    "quest.completed",
                    {
                        "user_id": user_id,
                        "quest_id": quest_id,
                        "xp_awarded": xp_reward,
                        "target_faction_ids": quest_data["target_faction_ids"],
                        "target_skill_ids": quest_data["target_skill_ids"],
                        "failed_steps": list(failed_steps),
                    },
                )

            return {
                "quest": quest_data,
                "completed": completed,
                "xp_awarded": xp_reward if completed else None,
                "failed_steps": failed_steps,
                "message": (
                    f"Quest completed! +{xp_reward} XP"
                    if completed
                    else f"Progress: {completed_actions}/{required}"
                ),
            }

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_quest_action_history(
        self, quest_id: str, user_id: str
    ) -> List[Dict[str, Any]]:
        """
        Audit trail of a quest, oldest first.

        Raises:
            ValidationError: Bad ids
            NotFoundError: No such quest
            ForbiddenError: Quest owned by another user
        """
        quest_id = InputValidator.validate_entity_id(quest_id, "quest_id")
        user_id = InputValidator.validate_entity_id(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            quest = await self._quests.get(session, quest_id)
            if quest is None:
                raise NotFoundError("Quest", quest_id)
            if quest.user_id != user_id:
                raise ForbiddenError("Quest", quest_id, user_id)

            entries = await self._actions.list_for_quest(session, quest_id)

        return [
            {
                "id": entry.id,
                "quest_id": entry.quest_id,
                "action": entry.action,
                "description": entry.description,
                "completed_actions": entry.completed_actions,
                "habit_log_id": entry.habit_log_id,
                "created_at": entry.created_at,
            }
            for entry in entries
        ]

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _check_can_progress(quest: Optional[Quest], quest_id: str, user_id: str) -> None:
        if quest is None:
            raise NotFoundError("Quest", quest_id)
        if quest.user_id != user_id:
            raise ForbiddenError("Quest", quest_id, user_id)
        if quest.status != QuestStatus.ACTIVE.value:
            raise InvalidStateError(
                "Quest", quest.status, "Quest is not active", error_code="QUEST_NOT_ACTIVE"
            )
        if quest.expires_at is not None and _as_utc(quest.expires_at) < utcnow():
            raise InvalidStateError(
                "Quest", "expired", "Quest has expired", error_code="QUEST_EXPIRED"
            )

    @staticmethod
    def _next_completed_actions(
        action: QuestActionType, current: int, required: int
    ) -> int:
        if action is QuestActionType.INCREMENT:
            return min(current + 1, required)
        if action is QuestActionType.DECREMENT:
            return max(current - 1, 0)
        return required

    @asynccontextmanager
    async def _fanout_step(
        self,
        session: AsyncSession,
        step: str,
        failed_steps: List[str],
        **context: Any,
    ) -> AsyncIterator[None]:
        """
        Run one fan-out step inside a SAVEPOINT.

        A failure rolls back only this step and is recorded in
        ``failed_steps``; the caller carries on with the next step.
        """
        try:
            async with session.begin_nested():
                yield
        except Exception as exc:
            failed_steps.append(step)
            self.log_error("quest_fanout", exc, exc_info=True, step=step, **context)

    async def _record_action(
        self,
        session: AsyncSession,
        quest_id: str,
        user_id: str,
        action_type: QuestActionType,
        completed_actions: int,
        required: int,
        description: Optional[str],
        habit_log_id: Optional[str],
    ) -> None:
        template = self.get_config(
            "quests.action_description_template", "Step {step} of {total}"
        )
        self._actions.add(
            session,
            QuestAction(
                quest_id=quest_id,
                user_id=user_id,
                action=action_type.value,
                description=description
                or template.format(step=completed_actions, total=required),
                completed_actions=completed_actions,
                habit_log_id=habit_log_id,
                created_at=utcnow(),
            ),
        )
        await self._actions.flush(session)

    async def _award_completion(
        self,
        session: AsyncSession,
        quest: Quest,
        user_id: str,
        xp_reward: int,
        failed_steps: List[str],
    ) -> None:
        """Profile, faction, skill and activity steps of the completion fan-out."""
        quest_id = quest.id
        title = quest.title
        faction_ids: List[str] = list(quest.target_faction_ids or [])
        skill_ids: List[str] = list(quest.target_skill_ids or [])

        async with self._fanout_step(
            session, "profile_xp", failed_steps, quest_id=quest_id
        ):
            await self._progression.add_profile_xp(session, user_id, xp_reward)

        xp_per_faction = split_xp(xp_reward, len(faction_ids))
        for faction_id in faction_ids:
            async with self._fanout_step(
                session,
                f"faction:{faction_id}",
                failed_steps,
                quest_id=quest_id,
                faction_id=faction_id,
            ):
                await self._progression.add_faction_xp(
                    session, user_id, faction_id, xp_per_faction
                )

        xp_per_skill = split_xp(xp_reward, len(skill_ids))
        experience_template = self.get_config(
            "quests.experience_description_template", "Quest completed: {title}"
        )
        for skill_id in skill_ids:
            async with self._fanout_step(
                session,
                f"skill:{skill_id}",
                failed_steps,
                quest_id=quest_id,
                skill_id=skill_id,
            ):
                await self._progression.record_experience(
                    session,
                    user_id,
                    skill_id,
                    xp_per_skill,
                    experience_template.format(title=title),
                )
                await self._progression.add_skill_xp(
                    session, user_id, skill_id, xp_per_skill
                )

        title_template = self.get_config(
            "quests.activity_title_template", "Quest completed: {title}"
        )
        primary_faction = (
            faction_ids[0]
            if faction_ids
            else self.get_config("quests.default_activity_faction", FactionId.CAREER.value)
        )
        async with self._fanout_step(
            session, "activity_log", failed_steps, quest_id=quest_id
        ):
            await self._progression.log_activity(
                session,
                user_id,
                ActivityType.QUEST_COMPLETED,
                title_template.format(title=title),
                faction_id=primary_faction,
                description=f"+{xp_reward} XP",
                xp_amount=xp_reward,
                related_entity_type="quest",
                related_entity_id=quest_id,
            )

    @staticmethod
    def _quest_to_dict(quest: Quest) -> Dict[str, Any]:
        return {
            "id": quest.id,
            "user_id": quest.user_id,
            "title": quest.title,
            "description": quest.description,
            "status": quest.status,
            "required_actions": quest.required_actions,
            "completed_actions": quest.completed_actions,
            "progress": quest.progress,
            "xp_reward": quest.xp_reward,
            "target_faction_ids": list(quest.target_faction_ids or []),
            "target_skill_ids": list(quest.target_skill_ids or []),
            "expires_at": quest.expires_at,
            "completed_at": quest.completed_at,
            "version": quest.version,
        }
