"""Fixtures for quote delivery tests."""

import asyncio

import pytest

from quote_fakes import FakeConnector, StubFetcher


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def backoff_delays() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(backoff_delays):
    """Backoff timer that records the requested delay and returns at once."""

    async def _sleep(delay: float) -> None:
        backoff_delays.append(delay)
        await asyncio.sleep(0)

    return _sleep
