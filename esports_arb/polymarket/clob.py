"""
CLOB API client for Polymarket pricing.

Endpoints used (all public, no auth):
  GET /price?token_id=X&side=buy       -- current price for a token
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

CLOB_BASE = "https://clob.polymarket.com"
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
    """Issue a GET to the CLOB API and return parsed JSON."""
    client = await _get_client()
    url = f"{CLOB_BASE}{path}"
    logger.debug("GET %s params=%s", url, params)
    resp = await client.get(url, params=params)
    resp.raise_for_status()
    return resp.json()


# ── Pricing ──────────────────────────────────────────────────────────

async def get_price(token_id: str, side: str = "buy") -> dict:
    """
    Get current market price for a token.

    Args:
        token_id: The CLOB token ID (from market's clobTokenIds)
        side: 'buy' or 'sell'

    Returns:
        {"price": "0.65"}
    """
    return await _get("/price", params={"token_id": token_id, "side": side})


# ── Helpers ──────────────────────────────────────────────────────────

def is_valid_price(price: float) -> bool:
    """Quoted binary-outcome prices live strictly between 0 and 1."""
    return 0 < price < 1
