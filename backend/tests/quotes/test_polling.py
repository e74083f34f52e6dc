"""Tests for PollingClient."""

import asyncio

import pytest

from quote_fakes import StubFetcher, make_quote
from quotewatch.quotes.errors import AuthenticationError, QuoteFetchError
from quotewatch.quotes.polling import PollingClient


def _listen(client: PollingClient) -> tuple[list, list]:
    batches, errors = [], []
    client.on_quotes(batches.append)
    client.on_error(errors.append)
    return batches, errors


@pytest.mark.asyncio
class TestPollingClient:
    """Unit tests for the polling transport with a stubbed fetcher."""

    async def test_start_fetches_immediately(self, fetcher):
        """Test that start_polling() delivers a batch before the first tick."""
        fetcher.default = {"AAPL": make_quote("AAPL", "190.50")}
        client = PollingClient(fetcher, poll_interval=60.0)
        batches, _ = _listen(client)

        await client.start_polling(["aapl"])

        assert fetcher.calls == [["AAPL"]]
        assert batches[0]["AAPL"].last == "190.50"
        assert client.is_polling

        await client.stop_polling()

    async def test_polls_on_interval(self, fetcher):
        """Test that the whole batch is re-fetched every interval."""
        fetcher.default = {"AAPL": make_quote("AAPL")}
        client = PollingClient(fetcher, poll_interval=0.02)

        await client.start_polling(["AAPL", "MSFT"])
        await asyncio.sleep(0.1)

        assert len(fetcher.calls) >= 3
        assert all(call == ["AAPL", "MSFT"] for call in fetcher.calls)

        await client.stop_polling()

    async def test_error_reported_and_loop_continues(self):
        """Test that a failed poll notifies on_error and the next tick still runs."""
        fetcher = StubFetcher(QuoteFetchError("Network error: boom"))
        fetcher.default = {"AAPL": make_quote("AAPL")}
        client = PollingClient(fetcher, poll_interval=0.02)
        batches, errors = _listen(client)

        await client.start_polling(["AAPL"])
        assert [str(e) for e in errors] == ["Network error: boom"]
        assert batches == []

        await asyncio.sleep(0.05)
        assert batches

        await client.stop_polling()

    async def test_unexpected_exception_wrapped(self):
        """Test that a non-service exception is reported as a QuoteFetchError."""
        fetcher = StubFetcher(KeyError("data"))
        client = PollingClient(fetcher, poll_interval=60.0)
        _, errors = _listen(client)

        await client.start_polling(["AAPL"])

        assert isinstance(errors[0], QuoteFetchError)
        assert str(errors[0]).startswith("Failed to fetch quotes")

        await client.stop_polling()

    async def test_auth_error_passed_through(self):
        """Test that authentication failures reach listeners unchanged."""
        fetcher = StubFetcher(AuthenticationError("Not authenticated"))
        client = PollingClient(fetcher, poll_interval=60.0)
        _, errors = _listen(client)

        await client.start_polling(["AAPL"])

        assert isinstance(errors[0], AuthenticationError)

        await client.stop_polling()

    async def test_empty_symbols_does_nothing(self, fetcher):
        """Test that polling an empty batch never calls the fetcher."""
        client = PollingClient(fetcher, poll_interval=60.0)

        await client.start_polling([])

        assert fetcher.calls == []
        assert not client.is_polling

    async def test_stop_during_first_fetch_starts_no_loop(self, fetcher, settle):
        """Test that stop_polling() during the first fetch prevents the loop and delivery."""
        fetcher.gate = asyncio.Event()
        fetcher.default = {"AAPL": make_quote("AAPL")}
        client = PollingClient(fetcher, poll_interval=0.01)
        batches, _ = _listen(client)

        pending = asyncio.create_task(client.start_polling(["AAPL"]))
        await settle()
        await client.stop_polling()
        fetcher.gate.set()
        await pending

        assert not client.is_polling
        assert batches == []

    async def test_update_symbols_applies_on_next_tick(self, fetcher):
        """Test that update_symbols() changes the batch used by later polls."""
        client = PollingClient(fetcher, poll_interval=0.02)
        await client.start_polling(["AAPL"])

        client.update_symbols(["msft"])
        await asyncio.sleep(0.05)

        assert fetcher.calls[0] == ["AAPL"]
        assert fetcher.calls[-1] == ["MSFT"]
        assert client.get_symbols() == ["MSFT"]

        await client.stop_polling()

    async def test_stop_is_clean(self, fetcher):
        """Test that stop_polling() is clean and idempotent."""
        client = PollingClient(fetcher, poll_interval=0.02)
        await client.start_polling(["AAPL"])

        await client.stop_polling()
        calls = len(fetcher.calls)
        await client.stop_polling()
        await asyncio.sleep(0.05)

        assert len(fetcher.calls) == calls
        assert not client.is_polling

    async def test_aclose_closes_fetcher(self, fetcher):
        """Test that aclose() stops polling and releases the fetcher."""
        client = PollingClient(fetcher, poll_interval=60.0)
        await client.start_polling(["AAPL"])

        await client.aclose()

        assert fetcher.closed
        assert not client.is_polling
