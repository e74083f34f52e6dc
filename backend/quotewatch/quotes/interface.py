"""Abstract interface for HTTP quote fetchers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Quote


class QuoteFetcher(ABC):
    """Contract for pull-based quote providers.

    The PollingClient calls the fetcher once per tick with the full symbol
    batch. Fetchers never touch coordinator state; they only return what the
    broker answered.

    Lifecycle:
        fetcher = BrokerQuoteFetcher(session, base_url=...)
        quotes = await fetcher.fetch_quotes(["AAPL", "MSFT"])
        # ... app shutting down ...
        await fetcher.aclose()
    """

    @abstractmethod
    async def fetch_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Fetch one quote per symbol, keyed by uppercase symbol.

        A symbol the broker cannot answer for is omitted from the result
        rather than failing the batch.

        Raises:
            AuthenticationError: the credential is missing or rejected.
            QuoteFetchError: the batch could not be fetched at all.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release network resources. Safe to call multiple times."""
