"""
Pydantic models for PandaScore data, plus the normalization step that
turns raw provider payloads into fully populated internal structs.

Everything downstream of this module can rely on:
  - team names always present (placeholders when the provider omits them)
  - events carrying a canonical ``EventType``, an aware timestamp and a
    team side of ``"team1"`` or ``"team2"``
Malformed or unrecognized payloads are dropped here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from ..bot.models import EventType

logger = logging.getLogger(__name__)

PLACEHOLDER_TEAM1 = "Team 1"
PLACEHOLDER_TEAM2 = "Team 2"

# Provider event type -> canonical event type
_DIRECT_TYPES: dict[str, EventType] = {
    "kill": EventType.KILL,
    "building_destroy": EventType.TOWER,
    "first_blood": EventType.FIRST_BLOOD,
    "first_tower": EventType.FIRST_TOWER,
    "inhibitor_destroy": EventType.INHIBITOR,
    "gold_lead": EventType.GOLD_LEAD_CHANGE,
}

_MONSTER_TYPES: dict[str, EventType] = {
    "dragon": EventType.DRAGON,
    "elder_dragon": EventType.ELDER_DRAGON,
    "baron": EventType.BARON,
    "baron_nashor": EventType.BARON,
}

_CONTEXT_KEYS = (
    "dragon_type",
    "dragon_count",
    "kill_difference",
    "gold_difference",
    "game_time",
    "is_streak",
)


class LiveMatch(BaseModel):
    """A running match as reported by the live-match feed."""
    match_id: str
    team1: str = PLACEHOLDER_TEAM1
    team2: str = PLACEHOLDER_TEAM2
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    team1_acronym: Optional[str] = None
    team2_acronym: Optional[str] = None
    slug: Optional[str] = None
    status: str = "running"
    scheduled_at: Optional[datetime] = None
    running_game_id: Optional[str] = None
    game_ids: list[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "LiveMatch":
        opponents = raw.get("opponents") or []
        teams: list[dict[str, Any]] = []
        for entry in opponents[:2]:
            teams.append((entry or {}).get("opponent") or {})
        while len(teams) < 2:
            teams.append({})

        games = raw.get("games") or []
        running = next(
            (g for g in games if str(g.get("status", "")).lower() == "running"),
            None,
        )
        return cls(
            match_id=str(raw["id"]),
            team1=teams[0].get("name") or PLACEHOLDER_TEAM1,
            team2=teams[1].get("name") or PLACEHOLDER_TEAM2,
            team1_id=_str_or_none(teams[0].get("id")),
            team2_id=_str_or_none(teams[1].get("id")),
            team1_acronym=teams[0].get("acronym"),
            team2_acronym=teams[1].get("acronym"),
            slug=raw.get("slug"),
            status=str(raw.get("status") or "running"),
            scheduled_at=_parse_timestamp(raw.get("scheduled_at")),
            running_game_id=_str_or_none(running.get("id")) if running else None,
            game_ids=[str(g["id"]) for g in games if g.get("id") is not None],
        )

    def side_of(self, value: Any) -> Optional[str]:
        """Resolve a provider team reference to ``"team1"`` / ``"team2"``."""
        if isinstance(value, dict):
            for key in ("id", "name", "acronym"):
                side = self.side_of(value.get(key))
                if side:
                    return side
            return None
        if value is None:
            return None
        text = str(value).strip().lower()
        if text in ("team1", "team2"):
            return text
        for side, refs in (
            ("team1", (self.team1, self.team1_id, self.team1_acronym)),
            ("team2", (self.team2, self.team2_id, self.team2_acronym)),
        ):
            if any(ref is not None and text == str(ref).lower() for ref in refs):
                return side
        return None


class FeedEvent(BaseModel):
    """One normalized in-game event."""
    type: EventType
    timestamp: datetime
    team: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)


def parse_live_matches(raw: list[dict[str, Any]]) -> list[LiveMatch]:
    matches: list[LiveMatch] = []
    for item in raw or []:
        try:
            matches.append(LiveMatch.from_api(item))
        except (KeyError, TypeError, ValueError, ValidationError):
            logger.debug("Skipping malformed match payload: %s", item)
    return matches


def classify_event_type(raw: dict[str, Any]) -> Optional[EventType]:
    """Map a provider event to a canonical type; None when not tracked."""
    kind = str(raw.get("type") or "").lower()
    if kind == "monster_kill":
        monster = str(raw.get("monster_type") or "").lower()
        if monster == "dragon" and str(raw.get("dragon_type") or "").lower() == "elder":
            return EventType.DRAGON  # elder weight applied by the impact model
        return _MONSTER_TYPES.get(monster)
    if kind in _DIRECT_TYPES:
        return _DIRECT_TYPES[kind]
    return EventType.parse(kind)


def normalize_event(raw: dict[str, Any], match: LiveMatch) -> Optional[FeedEvent]:
    """Validate a raw provider event once, applying defaults."""
    try:
        data = {**(raw.get("payload") or {}), **raw}
        kind = classify_event_type(data)
        if kind is None:
            return None

        timestamp = _parse_timestamp(data.get("timestamp") or data.get("created_at"))
        if timestamp is None:
            return None

        context: dict[str, Any] = {k: data[k] for k in _CONTEXT_KEYS if data.get(k) is not None}
        context["provider_type"] = data.get("type")
        context["provider_timestamp"] = timestamp.isoformat()

        if kind is EventType.GOLD_LEAD_CHANGE:
            if data.get("gold_difference") is None:
                return None
            context["gold_difference"] = int(float(data["gold_difference"]))
            side = "team1" if context["gold_difference"] > 0 else "team2"
        else:
            team_ref = data.get("winning_team") if kind is EventType.TEAM_FIGHT else None
            side = match.side_of(team_ref or data.get("team") or data.get("killer_team"))
            if side is None:
                return None

        context["team"] = side
        context["is_streak"] = bool(context.get("is_streak", False))
        return FeedEvent(type=kind, timestamp=timestamp, team=side, context=context)
    except (KeyError, TypeError, ValueError, ValidationError, AttributeError):
        logger.debug("Skipping malformed event payload: %s", raw)
        return None


# ── Helpers ──────────────────────────────────────────────────────────

def _str_or_none(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 strings or epoch seconds/milliseconds -> aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
