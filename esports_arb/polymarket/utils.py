"""Helpers for decoding Gamma market payloads."""

from __future__ import annotations

import json
from typing import Any


def safe_json(val: Any) -> list:
    """Parse a JSON-encoded list field; Gamma sends most of them as strings."""
    if isinstance(val, list):
        return val
    if isinstance(val, str):
        try:
            parsed = json.loads(val)
        except (json.JSONDecodeError, TypeError):
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def outcome_rows(market: dict[str, Any]) -> list[tuple[str, str, float]]:
    """(outcome name, CLOB token id, cached price) for each tradable outcome."""
    names = safe_json(market.get("outcomes", "[]"))
    prices = safe_json(market.get("outcomePrices", "[]"))
    tokens = safe_json(market.get("clobTokenIds", "[]"))

    rows: list[tuple[str, str, float]] = []
    for i, name in enumerate(names):
        token_id = tokens[i] if i < len(tokens) else None
        if not token_id:
            continue
        try:
            price = float(prices[i]) if i < len(prices) else 0.0
        except (TypeError, ValueError):
            price = 0.0
        rows.append((str(name), str(token_id), price))
    return rows
