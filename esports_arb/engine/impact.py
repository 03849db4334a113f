"""
Event impact model for League of Legends.

Maps a canonical event type plus its context to the win-probability
shift it is worth.  Pure and stateless.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..bot.models import EventType

# Base weights, tuned from historical impact.
EVENT_WEIGHTS: dict[EventType, float] = {
    EventType.FIRST_BLOOD: 0.03,
    EventType.FIRST_TOWER: 0.04,
    EventType.DRAGON: 0.05,
    EventType.ELDER_DRAGON: 0.15,
    EventType.BARON: 0.12,
    EventType.INHIBITOR: 0.10,
    EventType.TEAM_FIGHT: 0.08,
    EventType.KILL: 0.001,
    EventType.KILL_STREAK: 0.02,
    EventType.TOWER: 0.002,
    EventType.GOLD_LEAD_CHANGE: 0.03,
    EventType.BASE_RACE: 0.20,
    EventType.SHUTDOWN_GOLD: 0.03,
    EventType.CHAMPION_PICK: 0.01,
    EventType.ACE: 0.07,
}

DEFAULT_WEIGHT = 0.01

DRAGON_STACK_COUNT = 3
DRAGON_STACK_MULTIPLIER = 1.5
TEAM_FIGHT_KILL_DIFF = 3
TEAM_FIGHT_MULTIPLIER = 1.3
GOLD_SWING_THRESHOLD = 3000
GOLD_SWING_MULTIPLIER = 1.5
LATE_GAME_MINUTES = 30
LATE_BARON_MULTIPLIER = 1.2

# Keys accepted under model.multipliers in the config file
TUNABLES = (
    "dragon_stack_count",
    "dragon_stack_multiplier",
    "team_fight_kill_diff",
    "team_fight_multiplier",
    "gold_swing_threshold",
    "gold_swing_multiplier",
    "late_game_minutes",
    "late_baron_multiplier",
)


def _num(context: Mapping[str, Any], key: str) -> float:
    try:
        return float(context.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


class EventImpactModel:
    """Weight table plus context multipliers."""

    def __init__(
        self,
        weights: Optional[Mapping[EventType | str, float]] = None,
        default_weight: float = DEFAULT_WEIGHT,
        *,
        dragon_stack_count: int = DRAGON_STACK_COUNT,
        dragon_stack_multiplier: float = DRAGON_STACK_MULTIPLIER,
        team_fight_kill_diff: int = TEAM_FIGHT_KILL_DIFF,
        team_fight_multiplier: float = TEAM_FIGHT_MULTIPLIER,
        gold_swing_threshold: float = GOLD_SWING_THRESHOLD,
        gold_swing_multiplier: float = GOLD_SWING_MULTIPLIER,
        late_game_minutes: float = LATE_GAME_MINUTES,
        late_baron_multiplier: float = LATE_BARON_MULTIPLIER,
    ):
        self.weights = dict(EVENT_WEIGHTS)
        for key, value in (weights or {}).items():
            event_type = EventType.parse(key)
            if event_type is not None:
                self.weights[event_type] = float(value)
        self.default_weight = default_weight
        self.dragon_stack_count = dragon_stack_count
        self.dragon_stack_multiplier = dragon_stack_multiplier
        self.team_fight_kill_diff = team_fight_kill_diff
        self.team_fight_multiplier = team_fight_multiplier
        self.gold_swing_threshold = gold_swing_threshold
        self.gold_swing_multiplier = gold_swing_multiplier
        self.late_game_minutes = late_game_minutes
        self.late_baron_multiplier = late_baron_multiplier

    @classmethod
    def from_config(cls, model_cfg: Mapping[str, Any] | None) -> "EventImpactModel":
        """Build from the ``model:`` config section (``weights`` and ``multipliers``)."""
        model_cfg = model_cfg or {}
        tunables = {
            key: value
            for key, value in (model_cfg.get("multipliers") or {}).items()
            if key in TUNABLES
        }
        return cls(weights=model_cfg.get("weights"), **tunables)

    def impact(self, event_type: EventType | str, context: Mapping[str, Any] | None = None) -> float:
        context = context or {}
        kind = EventType.parse(event_type)
        if kind is None:
            return self.default_weight

        weight = self.weights.get(kind, self.default_weight)

        if kind is EventType.DRAGON:
            if str(context.get("dragon_type", "")).lower() == "elder":
                weight = self.weights[EventType.ELDER_DRAGON]
            if _num(context, "dragon_count") >= self.dragon_stack_count:
                weight *= self.dragon_stack_multiplier
        elif kind is EventType.TEAM_FIGHT:
            if _num(context, "kill_difference") >= self.team_fight_kill_diff:
                weight *= self.team_fight_multiplier
        elif kind is EventType.GOLD_LEAD_CHANGE:
            if abs(_num(context, "gold_difference")) > self.gold_swing_threshold:
                weight *= self.gold_swing_multiplier
        elif kind is EventType.BARON:
            if _num(context, "game_time") > self.late_game_minutes:
                weight *= self.late_baron_multiplier

        return weight
