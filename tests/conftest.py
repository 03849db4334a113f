"""Shared test fixtures: temp database, fake clock, fake venue collaborators."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

import pytest
import pytest_asyncio

from esports_arb.bot.database import Database
from esports_arb.bot.models import TradeSide

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakePrices:
    """Price source with a settable quote per market (None = unavailable)."""

    def __init__(self, default: Optional[float] = 0.50):
        self.default = default
        self.prices: dict[str, Optional[float]] = {}
        self.calls = 0

    def set(self, market_id: str, price: Optional[float]) -> None:
        self.prices[market_id] = price

    async def get_price(self, market_id: str) -> Optional[float]:
        self.calls += 1
        return self.prices.get(market_id, self.default)


class FakeVenue:
    def __init__(self, fail: bool = False, raises: bool = False, delay: float = 0.0):
        self.fail = fail
        self.raises = raises
        self.delay = delay
        self.orders: list[tuple[str, TradeSide, float, float]] = []

    async def submit_order(
        self, market_id: str, side: TradeSide, amount: float, price: float
    ) -> Optional[str]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises:
            raise ConnectionError("venue down")
        if self.fail:
            return None
        self.orders.append((market_id, side, amount, price))
        return f"order-{len(self.orders)}"


async def wait_until(
    predicate: Callable[[], Awaitable[bool]], timeout: float = 3.0, step: float = 0.01
) -> bool:
    """Poll an async predicate until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if await predicate():
            return True
        await asyncio.sleep(step)
    return await predicate()


@pytest_asyncio.fixture
async def db(tmp_path) -> Database:
    """Initialised database in a temp directory."""
    database = Database(str(tmp_path / "test.db"))
    await database.init_schema()
    return database


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def prices() -> FakePrices:
    return FakePrices()


@pytest.fixture
def venue() -> FakeVenue:
    return FakeVenue()


@pytest.fixture
def make_venue() -> Callable[..., FakeVenue]:
    return FakeVenue


@pytest.fixture
def until() -> Callable[..., Awaitable[bool]]:
    return wait_until
