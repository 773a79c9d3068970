"""Debounced search dispatch with a popular-games suggestions panel."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.3
RESULT_LIMIT = 10
SUGGESTION_LIMIT = 5
SEARCH_ERROR_MESSAGE = "Error searching games. Please try again."


class SearchBackend(Protocol):
    def search(self, query: str, limit: int = ...) -> list[dict[str, Any]]: ...

    def get_popular(self, limit: int = ...) -> list[dict[str, Any]]: ...


class CancelToken:
    """Marks one dispatch; a cancelled dispatch must not publish results."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.dispatched = False

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class SearchState:
    query: str = ""
    results: list[dict[str, Any]] = field(default_factory=list)
    suggestions: list[dict[str, Any]] = field(default_factory=list)
    is_loading: bool = False
    error: str | None = None


class SearchController:
    """Turn keystrokes into at most one search per quiet period.

    Every :meth:`set_query` restarts the debounce timer and cancels the
    previous dispatch, so a slow response for an older query can never
    overwrite the results of a newer one.
    """

    def __init__(
        self,
        backend: SearchBackend,
        *,
        delay: float = DEBOUNCE_SECONDS,
        limit: int = RESULT_LIMIT,
        timer_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._backend = backend
        self._delay = delay
        self._limit = limit
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.Lock()
        self._timer: Any | None = None
        self._pending: tuple[str, CancelToken] | None = None
        self._token: CancelToken | None = None
        self._listeners: list[Callable[[SearchState], None]] = []

        self.query = ""
        self.results: list[dict[str, Any]] = []
        self.suggestions: list[dict[str, Any]] = []
        self.is_loading = False
        self.error: str | None = None

    def subscribe(self, callback: Callable[[SearchState], None]) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    @property
    def state(self) -> SearchState:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> SearchState:
        return SearchState(
            query=self.query,
            results=list(self.results),
            suggestions=list(self.suggestions),
            is_loading=self.is_loading,
            error=self.error,
        )

    def _publish(self, state: SearchState) -> None:
        for listener in list(self._listeners):
            listener(state)

    def _cancel_pending_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def set_query(self, text: str) -> None:
        with self._lock:
            self.query = text
            self._cancel_pending_locked()
            if not isinstance(text, str) or not text.strip():
                self.results = []
                self.error = None
                self.is_loading = False
                state = self._snapshot()
            else:
                token = CancelToken()
                self._token = token
                self._pending = (text, token)
                timer = self._timer_factory(self._delay, self._dispatch, args=(text, token))
                timer.daemon = True
                self._timer = timer
                timer.start()
                state = None
        if state is not None:
            self._publish(state)

    def flush(self) -> None:
        """Run the pending dispatch now instead of waiting for the timer."""

        with self._lock:
            pending = self._pending
            if pending is None:
                return
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
        self._dispatch(*pending)

    def _dispatch(self, query: str, token: CancelToken) -> None:
        with self._lock:
            if token.cancelled or token.dispatched:
                return
            token.dispatched = True
            if self._pending is not None and self._pending[1] is token:
                self._pending = None
                self._timer = None
            self.is_loading = True
            self.error = None
            state = self._snapshot()
        self._publish(state)

        try:
            results = self._backend.search(query, self._limit)
            error = None
        except Exception:
            logger.exception("Search for %r failed", query)
            results, error = [], SEARCH_ERROR_MESSAGE

        with self._lock:
            if token.cancelled:
                logger.debug("Discarding superseded results for %r", query)
                return
            self.results = list(results or [])
            self.error = error
            self.is_loading = False
            state = self._snapshot()
        self._publish(state)

    def load_suggestions(self) -> list[dict[str, Any]]:
        try:
            suggestions = self._backend.get_popular(SUGGESTION_LIMIT)
        except Exception:
            logger.exception("Error loading suggestions")
            return self.suggestions
        with self._lock:
            self.suggestions = list(suggestions or [])
            state = self._snapshot()
        self._publish(state)
        return state.suggestions

    def clear(self) -> None:
        self.set_query("")


__all__ = [
    "CancelToken",
    "DEBOUNCE_SECONDS",
    "SEARCH_ERROR_MESSAGE",
    "SearchBackend",
    "SearchController",
    "SearchState",
]
