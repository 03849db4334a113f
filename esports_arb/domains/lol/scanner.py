"""
League of Legends match scanner.

Wraps the PandaScore client as the supervisor's live-match feed, and
uses the Polymarket Gamma API (via esports_arb.polymarket.gamma) to
resolve a match to the moneyline token it is traded on.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ...pandascore.client import PandaScoreClient
from ...pandascore.models import FeedEvent, LiveMatch, normalize_event, parse_live_matches
from ...polymarket import gamma
from ...polymarket.models import MarketSnapshot, OutcomeSnapshot
from ...polymarket.utils import outcome_rows

logger = logging.getLogger(__name__)

MONEYLINE = "moneyline"


class PandaScoreFeed:
    """Live-match feed backed by PandaScore, normalized at the boundary."""

    def __init__(self, client: PandaScoreClient):
        self.client = client

    async def list_live_matches(self) -> list[LiveMatch]:
        return parse_live_matches(await self.client.list_live_matches())

    async def match_events(self, match: LiveMatch) -> list[FeedEvent]:
        if not match.running_game_id:
            return []
        raw_events = await self.client.get_game_events(match.running_game_id)
        events = [normalize_event(raw, match) for raw in raw_events]
        return [e for e in events if e is not None]

    async def match_status(self, match_id: str) -> Optional[str]:
        details = await self.client.get_match_details(match_id)
        if not details:
            return None
        return str(details.get("status") or "").lower() or None


async def collect_market(slug: str) -> Optional[MarketSnapshot]:
    """
    Collect the moneyline MarketSnapshot for a match slug.

    Uses the cached Gamma outcome prices; live quotes come from the CLOB
    through the price source.
    """
    event = await gamma.get_event_by_slug(slug)
    if not event:
        return None

    outcomes: dict[str, OutcomeSnapshot] = {}
    for market in event.get("markets", []):
        mtype = market.get("sportsMarketType", "")
        if mtype and mtype != MONEYLINE:
            continue

        for name, token_id, price in outcome_rows(market):
            outcomes[name] = OutcomeSnapshot(token_id=token_id, price=price)
        break  # only use the first moneyline market

    return MarketSnapshot(slug=slug, title=event.get("title", slug), outcomes=outcomes)


class GammaMarketResolver:
    """Resolve a live match to the YES token of its first team."""

    async def resolve(self, match: LiveMatch) -> Optional[str]:
        if not match.slug:
            return None
        try:
            snapshot = await collect_market(match.slug)
        except httpx.HTTPError as e:
            logger.warning("Market lookup failed for %s: %s", match.slug, e)
            return None
        if snapshot is None or not snapshot.outcomes:
            return None

        token = snapshot.token_for(match.team1)
        if token is None:
            # Outcomes are listed in team order on esports moneylines
            token = next(iter(snapshot.outcomes.values())).token_id
        logger.debug("Resolved %s to token %s (%s)", match.match_id, token, snapshot.title)
        return token
