"""
PandaScore REST client for live League of Legends data.

Endpoints used (bearer token auth):
  GET /lol/matches/running          -- matches currently being played
  GET /matches/{id}                 -- match details (status, games, …)
  GET /lol/games/{id}/events        -- in-game event log for one game

Every call fails soft: transport or HTTP errors are logged and turned
into an empty list / None so the caller can retry on its next tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

PANDASCORE_BASE = "https://api.pandascore.co"
TIMEOUT = 30.0
DETAIL_RETRIES = 2
DETAIL_BACKOFF_SECONDS = 1.0


class PandaScoreClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = PANDASCORE_BASE,
        *,
        timeout: float = TIMEOUT,
        detail_retries: int = DETAIL_RETRIES,
        detail_backoff: float = DETAIL_BACKOFF_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.detail_retries = detail_retries
        self.detail_backoff = detail_backoff
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Issue a GET to PandaScore and return parsed JSON."""
        logger.debug("GET %s%s params=%s", self.base_url, path, params)
        resp = await self._client.get(path, params=params)
        resp.raise_for_status()
        return resp.json()

    # ── Matches ──────────────────────────────────────────────────────

    async def list_live_matches(self) -> list[dict]:
        try:
            result = await self._get("/lol/matches/running")
        except httpx.HTTPStatusError as e:
            logger.error(
                "Error fetching live matches: status=%s body=%s",
                e.response.status_code, e.response.text[:500],
            )
            return []
        except httpx.HTTPError as e:
            logger.error("Error fetching live matches: %s", e)
            return []
        return result if isinstance(result, list) else []

    async def get_match_details(self, match_id: str) -> dict | None:
        """Match details, retried with linear backoff before giving up."""
        attempts = 1 + self.detail_retries
        for attempt in range(1, attempts + 1):
            try:
                result = await self._get(f"/matches/{match_id}")
                return result if isinstance(result, dict) else None
            except httpx.HTTPError as e:
                if attempt == attempts:
                    logger.error("Error fetching match %s: %s", match_id, e)
                    return None
                delay = self.detail_backoff * attempt
                logger.warning(
                    "Match %s lookup failed (attempt %d/%d), retrying in %.1fs",
                    match_id, attempt, attempts, delay,
                )
                await asyncio.sleep(delay)
        return None

    # ── Events ───────────────────────────────────────────────────────

    async def get_game_events(self, game_id: str) -> list[dict]:
        try:
            result = await self._get(f"/lol/games/{game_id}/events")
        except httpx.HTTPError as e:
            logger.error("Error fetching events for game %s: %s", game_id, e)
            return []
        return result if isinstance(result, list) else []
