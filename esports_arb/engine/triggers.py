"""
Trigger dispatch for canonical in-game events.

Each handler computes the event's impact, records it in the event log
and keeps the match's running counters current.  Kills and small gold
swings only nudge the counters and return a token impact.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from ..bot.database import Database
from ..bot.models import Event, EventType, TEAM_SIDES, utcnow
from .impact import EventImpactModel

logger = logging.getLogger(__name__)

MINOR_IMPACT = 0.001
GOLD_EVENT_THRESHOLD = 2000


class TriggerDispatcher:
    def __init__(
        self,
        db: Database,
        model: EventImpactModel | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.model = model or EventImpactModel()
        self.clock = clock

    async def process(
        self,
        match_id: str,
        event_type: EventType | str,
        context: Mapping[str, Any] | None = None,
    ) -> Optional[float]:
        """Handle one event.  Returns its impact, or None if the type or team is unknown."""
        kind = EventType.parse(event_type)
        if kind is None:
            logger.debug("Ignoring unknown event type %r for match %s", event_type, match_id)
            return None
        data = dict(context or {})
        if kind is EventType.TEAM_FIGHT:
            data.setdefault("team", data.get("winning_team"))
        if kind is not EventType.GOLD_LEAD_CHANGE and data.get("team") not in TEAM_SIDES:
            logger.debug(
                "Skipping %s for match %s: no team side in %r", kind.value, match_id, data.get("team")
            )
            return None

        match kind:
            case EventType.KILL:
                return await self._kill(match_id, data)
            case EventType.TOWER:
                return await self._counted(match_id, kind, data, "towers")
            case EventType.GOLD_LEAD_CHANGE:
                return await self._gold_lead_change(match_id, data)
            case EventType.DRAGON | EventType.ELDER_DRAGON:
                return await self._dragon(match_id, kind, data)
            case EventType.BARON:
                return await self._counted(match_id, kind, data, "barons")
            case EventType.INHIBITOR:
                return await self._counted(match_id, kind, data, "inhibitors")
            case (
                EventType.TEAM_FIGHT
                | EventType.FIRST_BLOOD
                | EventType.FIRST_TOWER
                | EventType.KILL_STREAK
                | EventType.ACE
                | EventType.BASE_RACE
                | EventType.SHUTDOWN_GOLD
                | EventType.CHAMPION_PICK
            ):
                return await self._record(match_id, kind, data)

    # ── Handlers ─────────────────────────────────────────────────────

    async def _record(self, match_id: str, kind: EventType, data: dict[str, Any]) -> float:
        impact = self.model.impact(kind, data)
        event = Event(
            match_id=match_id,
            event_type=kind,
            team=data["team"],
            impact=impact,
            timestamp=self.clock(),
            context=data,
        )
        await self.db.insert_event(event)
        logger.info(
            "Match %s: %s for %s (impact %.3f)", match_id, kind.value, event.team, impact
        )
        return impact

    async def _counted(
        self, match_id: str, kind: EventType, data: dict[str, Any], counter: str
    ) -> float:
        await self.db.increment_counter(match_id, data["team"], counter)
        return await self._record(match_id, kind, data)

    async def _kill(self, match_id: str, data: dict[str, Any]) -> float:
        await self.db.increment_counter(match_id, data["team"], "kills")
        if data.get("is_streak"):
            return await self._record(match_id, EventType.KILL_STREAK, data)
        return MINOR_IMPACT

    async def _dragon(self, match_id: str, kind: EventType, data: dict[str, Any]) -> float:
        side = data["team"]
        await self.db.increment_counter(match_id, side, "dragons")
        if data.get("dragon_count") is None:
            match = await self.db.get_match(match_id)
            if match is not None:
                data["dragon_count"] = match.stats_for(side).dragons
        return await self._record(match_id, kind, data)

    async def _gold_lead_change(self, match_id: str, data: dict[str, Any]) -> float:
        gold_difference = int(data.get("gold_difference") or 0)
        await self.db.set_gold_diff(match_id, gold_difference)
        if abs(gold_difference) > GOLD_EVENT_THRESHOLD:
            data["team"] = "team1" if gold_difference > 0 else "team2"
            return await self._record(match_id, EventType.GOLD_LEAD_CHANGE, data)
        return MINOR_IMPACT