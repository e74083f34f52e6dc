"""HTTP polling transport: the fallback when streaming is unavailable."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .errors import QuoteFetchError, QuoteServiceError
from .interface import QuoteFetcher
from .models import Quote, normalize_symbols
from .observers import ObserverRegistry

logger = logging.getLogger(__name__)

QuotesCallback = Callable[[dict[str, Quote]], None]
ErrorCallback = Callable[[QuoteServiceError], None]


class PollingClient:
    """Re-fetches the whole symbol batch on a fixed interval.

    Results are fanned out to ``on_quotes`` listeners; failures go to
    ``on_error`` listeners and never stop the loop. The coordinator decides
    what a failure means for its state.
    """

    def __init__(self, fetcher: QuoteFetcher, poll_interval: float = 5.0) -> None:
        self._fetcher = fetcher
        self._interval = poll_interval
        self._symbols: list[str] = []
        self._task: asyncio.Task | None = None
        self._epoch = 0
        self._quote_callbacks: ObserverRegistry[QuotesCallback] = ObserverRegistry("poll quote")
        self._error_callbacks: ObserverRegistry[ErrorCallback] = ObserverRegistry("poll error")

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_symbols(self) -> list[str]:
        return list(self._symbols)

    def on_quotes(self, callback: QuotesCallback) -> Callable[[], None]:
        return self._quote_callbacks.add(callback)

    def on_error(self, callback: ErrorCallback) -> Callable[[], None]:
        return self._error_callbacks.add(callback)

    async def start_polling(self, symbols: list[str]) -> None:
        await self.stop_polling()
        self._symbols = normalize_symbols(symbols)
        if not self._symbols:
            return

        epoch = self._epoch
        # Immediate first fetch so consumers have data right away
        await self._poll_once()
        if epoch != self._epoch:
            # stop_polling() ran while the first fetch was in flight
            return

        self._task = asyncio.create_task(self._poll_loop(), name="quote-poller")
        logger.info(
            "Quote polling started: %d symbols, %.1fs interval",
            len(self._symbols),
            self._interval,
        )

    def update_symbols(self, symbols: list[str]) -> None:
        """Replace the batch; takes effect on the next tick."""
        self._symbols = normalize_symbols(symbols)

    async def stop_polling(self) -> None:
        self._epoch += 1
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Quote polling stopped")

    async def aclose(self) -> None:
        await self.stop_polling()
        self._quote_callbacks.clear()
        self._error_callbacks.clear()
        await self._fetcher.aclose()

    # --- Internal ---

    async def _poll_loop(self) -> None:
        """Poll on interval. First poll already happened in start_polling()."""
        while True:
            await asyncio.sleep(self._interval)
            await self._poll_once()

    async def _poll_once(self) -> None:
        """Execute one fetch cycle and fan out the outcome."""
        symbols = list(self._symbols)
        if not symbols:
            return

        epoch = self._epoch
        try:
            quotes = await self._fetcher.fetch_quotes(symbols)
        except QuoteServiceError as e:
            if epoch != self._epoch:
                return
            logger.warning("Quote poll failed: %s", e)
            self._error_callbacks.notify(e)
            return
        except Exception as e:
            if epoch != self._epoch:
                return
            # Unexpected fetcher failures are reported like transport errors;
            # the loop retries on the next interval.
            logger.exception("Quote poll failed unexpectedly")
            self._error_callbacks.notify(QuoteFetchError(f"Failed to fetch quotes: {e}"))
            return

        if epoch != self._epoch:
            return
        logger.debug("Quote poll: %d/%d symbols", len(quotes), len(symbols))
        self._quote_callbacks.notify(quotes)
