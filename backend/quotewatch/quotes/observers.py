"""Listener registry used for callback fan-out."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

CallbackT = TypeVar("CallbackT", bound=Callable[..., object])


class ObserverRegistry(Generic[CallbackT]):
    """Mapping from subscription handle to callback.

    ``add()`` returns a disposer that removes exactly that registration, so the
    same function can be registered twice and removed independently. Each
    callback invocation in ``notify()`` is isolated: a raising listener is
    logged and the remaining listeners still run.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._callbacks: dict[int, CallbackT] = {}
        self._handles = itertools.count()

    def add(self, callback: CallbackT) -> Callable[[], None]:
        handle = next(self._handles)
        self._callbacks[handle] = callback

        def dispose() -> None:
            self._callbacks.pop(handle, None)

        return dispose

    def notify(self, *args: object) -> None:
        # Snapshot so listeners may unregister themselves while being notified
        for callback in list(self._callbacks.values()):
            try:
                callback(*args)
            except Exception:
                logger.exception("Error in %s callback", self._name)

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)
