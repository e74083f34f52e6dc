"""Broker REST client for batched quote fetches."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from .errors import AuthenticationError, QuoteFetchError
from .interface import QuoteFetcher
from .models import Quote, normalize_symbols

if TYPE_CHECKING:
    from ..session import SessionStore

logger = logging.getLogger(__name__)


class BrokerQuoteFetcher(QuoteFetcher):
    """QuoteFetcher backed by the broker's ``/market-data/{symbol}`` endpoint.

    Issues one GET per symbol, all in flight at once over a shared
    ``httpx.AsyncClient``. The bearer token is read from the session store on
    every batch so a re-login is picked up without rebuilding the fetcher.
    """

    def __init__(
        self,
        session: SessionStore,
        base_url: str = "https://api.cert.tastyworks.com",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=timeout),
            follow_redirects=True,
        )

    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        wanted = normalize_symbols(symbols)
        if not wanted:
            return {}

        if not self._session.is_authenticated:
            raise AuthenticationError("Not authenticated")

        headers = self._session.auth_headers()
        results = await asyncio.gather(
            *(self._fetch_one(symbol, headers) for symbol in wanted),
            return_exceptions=True,
        )

        quotes: dict[str, Quote] = {}
        network_errors: list[httpx.HTTPError] = []
        for symbol, result in zip(wanted, results):
            if isinstance(result, AuthenticationError):
                raise result
            if isinstance(result, httpx.HTTPError):
                logger.warning("Quote request for %s failed: %s", symbol, result)
                network_errors.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                quotes[result.symbol] = result

        if network_errors and len(network_errors) == len(wanted):
            raise QuoteFetchError(f"Network error: {network_errors[0]}")

        logger.debug("Fetched %d/%d quotes", len(quotes), len(wanted))
        return quotes

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Internal ---

    async def _fetch_one(self, symbol: str, headers: dict[str, str]) -> Quote | None:
        response = await self._client.get(
            f"{self._base_url}/market-data/{symbol}",
            headers=headers,
        )

        if response.status_code == 401:
            raise AuthenticationError("401 Unauthorized - Session expired")
        if response.status_code != 200:
            logger.warning(
                "Failed to fetch quote for %s: %s %s",
                symbol,
                response.status_code,
                response.reason_phrase,
            )
            return None

        try:
            payload = response.json()
            record = payload.get("data", payload)
            return Quote.from_rest(record, symbol=symbol)
        except (ValueError, AttributeError, TypeError) as e:
            logger.warning("Skipping malformed quote for %s: %s", symbol, e)
            return None
