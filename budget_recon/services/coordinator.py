from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from enum import Enum
from typing import Generic, TypeVar

"""Single-flight load coordination.

Many callers may ask for the reconciled data at once; only one load runs and
the rest wait on its future.
"""

__all__ = [
    "LoadState",
    "CacheLoadCoordinator",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LoadState(Enum):
    """Coordinator state.

    State transitions: IDLE → LOADING → (READY | IDLE on failure); reset(): READY → IDLE
    """
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


class CacheLoadCoordinator(Generic[T]):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = LoadState.IDLE
        self._inflight: Future[T] | None = None
        self._result: T | None = None
        self._reset_requested = False

    @property
    def state(self) -> LoadState:
        with self._lock:
            return self._state

    def get(self, loader: Callable[[], T]) -> T:
        """Return the loaded value, running ``loader`` only if no load is ready or in flight.

        A loader failure puts the coordinator back to IDLE and is re-raised
        to the loading caller and every waiter.
        """
        with self._lock:
            if self._state is LoadState.READY:
                return self._result  # type: ignore[return-value]
            if self._state is LoadState.LOADING:
                future = self._inflight
                owner = False
            else:
                future = Future()
                self._inflight = future
                self._state = LoadState.LOADING
                owner = True

        assert future is not None
        if not owner:
            return future.result()

        try:
            value = loader()
        except BaseException as e:
            with self._lock:
                self._state = LoadState.IDLE
                self._inflight = None
                self._reset_requested = False
            logger.debug("load failed; coordinator back to idle: %s", e)
            future.set_exception(e)
            raise

        with self._lock:
            self._inflight = None
            if self._reset_requested:
                self._reset_requested = False
                self._state = LoadState.IDLE
                self._result = None
            else:
                self._state = LoadState.READY
                self._result = value
        future.set_result(value)
        return value

    def reset(self) -> None:
        """Drop the ready value; a reset during a load applies once it finishes."""
        with self._lock:
            if self._state is LoadState.LOADING:
                self._reset_requested = True
                return
            self._state = LoadState.IDLE
            self._result = None
