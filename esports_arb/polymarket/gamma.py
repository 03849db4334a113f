"""
Gamma API client for Polymarket event/market discovery.

Endpoints used (all public, no auth):
  GET /events?slug=X             -- single event by slug, with sub-markets
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GAMMA_BASE = "https://gamma-api.polymarket.com"
TIMEOUT = 30.0


_client: httpx.AsyncClient | None = None

async def _get_client() -> httpx.AsyncClient:
    """Get or create shared HTTP client."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=TIMEOUT)
    return _client

async def close() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

async def _get(path: str, params: dict[str, Any] | None = None) -> Any:
    """Issue a GET to the Gamma API and return parsed JSON."""
    client = await _get_client()
    url = f"{GAMMA_BASE}{path}"
    logger.debug("GET %s params=%s", url, params)
    resp = await client.get(url, params=params)
    resp.raise_for_status()
    return resp.json()


# ── Events (matches / markets) ──────────────────────────────────────

async def get_event_by_slug(slug: str) -> dict | None:
    """Fetch a single event by its URL slug, including sub-markets."""
    results = await _get("/events", params={"slug": slug})
    if isinstance(results, list) and results:
        return results[0]
    if isinstance(results, dict):
        return results
    return None
