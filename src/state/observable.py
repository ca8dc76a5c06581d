import inspect
from collections import deque
from typing import Any, Callable, Deque, Generic, List, TypeVar

from utils.logger import get_logger

_logger = get_logger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Any]


class Observable(Generic[T]):
    """
    Listener registry. Listeners may be plain functions or coroutine
    functions; emit awaits the latter in registration order.

    emit is not re-entrant: a value emitted while listeners are still
    running (from a listener, or from another task while one of them is
    awaiting) is queued and delivered to every listener after the current
    value, so each listener sees the values in emission order and the last
    one it sees is the latest.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._pending: Deque[T] = deque()
        self._emitting = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener, return a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def emit(self, value: T) -> None:
        self._pending.append(value)
        if self._emitting:
            return

        self._emitting = True
        try:
            while self._pending:
                current = self._pending.popleft()
                for listener in list(self._listeners):
                    result = listener(current)
                    if inspect.isawaitable(result):
                        await result
        finally:
            self._emitting = False

    def emit_nowait(self, value: T) -> None:
        """Call synchronous listeners only; used on the synchronous cart path."""
        for listener in list(self._listeners):
            result = listener(value)
            if inspect.isawaitable(result):
                _logger.warning(
                    f"Async listener {listener!r} ignored on synchronous emit."
                )
                result.close()
