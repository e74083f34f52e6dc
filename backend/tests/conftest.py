"""Pytest configuration and fixtures."""

import asyncio

import pytest


@pytest.fixture
def settle():
    """Let background tasks (readers, reconnect timers, fallbacks) run to quiescence."""

    async def _settle(rounds: int = 200) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
