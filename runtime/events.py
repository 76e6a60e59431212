"""Minimal observer used for every event the runtime emits."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Signal:
    """A named event with an ordered list of subscribers.

    A subscriber that raises is logged and isolated; the remaining
    subscribers still run and the emitter never sees the exception.
    """

    def __init__(self, name: str):
        self.name = name
        self._handlers: list[Callable[..., Any]] = []

    def connect(self, handler: Callable[..., Any]) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def disconnect(self, handler: Callable[..., Any]) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def clear(self) -> None:
        self._handlers.clear()

    def emit(self, *args: Any) -> None:
        # Snapshot so handlers may disconnect themselves while running
        for handler in list(self._handlers):
            try:
                handler(*args)
            except Exception:
                handler_name = getattr(
                    handler, "__qualname__", getattr(handler, "__name__", repr(handler))
                )
                logger.exception(
                    "Handler %s for signal %s failed and was isolated",
                    handler_name,
                    self.name,
                )

    def __len__(self) -> int:
        return len(self._handlers)
