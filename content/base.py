"""Abstract base class and shared lifecycle for content engines."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Mapping, TypeVar

from pydantic import BaseModel

from content.payloads import ContentError
from models import ContentClosed, ContentCompleted, ContentType
from runtime.base import TimerToken
from runtime.context import RuntimeContext
from runtime.events import Signal

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)


class ContentEngine(ABC, Generic[S]):
    """Base class for the state machine behind one kind of content.

    An engine runs one flow at a time: display() parses the payload and
    starts the flow, close() tears it down. Subclasses provide:
    - parse(): payload mapping to a typed spec (raising ContentError)
    - _start(): enter the initial state
    - view(): a render model of the current state
    - _release(): drop whatever the flow attached to the scene

    Events:
    - on_closed(ContentClosed): exactly once per displayed flow
    - on_completed(ContentCompleted): when the flow reaches its end
    - on_changed(view): after every visible state change

    Delayed continuations go through _schedule(). Each flow has a session
    number; closing bumps it, so a timer from a closed flow never runs.
    """

    content_type: ContentType

    def __init__(self, context: RuntimeContext):
        self.context = context
        name = self.content_type.value
        self.on_closed = Signal(f"{name}.closed")
        self.on_completed = Signal(f"{name}.completed")
        self.on_changed = Signal(f"{name}.changed")
        self.object_id = ""
        self.spec: S | None = None
        self._active = False
        self._session = 0
        self._timers: list[TimerToken] = []
        self._record: str | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def session(self) -> int:
        return self._session

    @abstractmethod
    def parse(self, payload: Mapping[str, Any]) -> S:
        """Turn a raw payload into this engine's typed spec.

        Raises:
            ContentError: If the payload is malformed.
        """
        ...

    @abstractmethod
    def _start(self) -> None:
        """Enter the initial state of a freshly parsed flow."""
        ...

    @abstractmethod
    def view(self) -> BaseModel:
        """Return the render model for the current state."""
        ...

    def _release(self) -> None:
        """Detach everything the flow attached. Must be idempotent."""

    def display(self, object_id: str, payload: Mapping[str, Any]) -> bool:
        """Start a flow for the given scene object.

        A flow already running on this engine is closed first. Content
        errors are logged and close the new flow without completing it.

        Returns:
            True if the flow started, False if it was rejected.
        """
        if self._active:
            self.close()

        self._session += 1
        self.object_id = object_id
        self.spec = None
        self._active = True
        self.context.localization.on_language_changed.connect(self._on_language_changed)

        try:
            self.spec = self.parse(payload)
            self._start()
        except ContentError as e:
            logger.error(
                "Cannot display %s content for %s: %s",
                self.content_type.value,
                object_id,
                e,
            )
            self.close()
            return False

        logger.debug("Displaying %s content for %s", self.content_type.value, object_id)
        self._changed()
        return True

    def close(self) -> None:
        """Tear the flow down. Safe to call at any time, any number of times."""
        if not self._active:
            return
        self._active = False
        self._session += 1

        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        self.context.localization.on_language_changed.disconnect(
            self._on_language_changed
        )

        try:
            self._release()
        finally:
            if self._record is not None:
                # No-op when the flow already ended its record
                self.context.analytics.end_interaction(self._record, False)
                self._record = None
            logger.debug("Closed %s content for %s", self.content_type.value, self.object_id)
            self.on_closed.emit(ContentClosed(object_id=self.object_id))

    def _schedule(self, ms: int, callback: Callable[[], None]) -> TimerToken:
        """Run `callback` after `ms` unless this flow is closed first."""
        session = self._session

        def run() -> None:
            if session != self._session or not self._active:
                return
            callback()

        timer = self.context.scheduler.after(ms, run)
        self._timers = [t for t in self._timers if t.active]
        self._timers.append(timer)
        return timer

    def _complete(self, success: bool, **details: Any) -> None:
        logger.info(
            "%s content for %s completed (success=%s)",
            self.content_type.value.capitalize(),
            self.object_id,
            success,
        )
        self.on_completed.emit(
            ContentCompleted(object_id=self.object_id, success=success, details=details)
        )

    def _changed(self) -> None:
        if self._active:
            self.on_changed.emit(self.view())

    def _on_language_changed(self, language: str) -> None:
        self._changed()

    def _text(self, value: Any) -> str:
        return self.context.localization.resolve(value)

    def _ui(self, key: str, **values: Any) -> str:
        return self.context.localization.ui_text(key, **values)

    def _now(self) -> float:
        return self.context.scheduler.now()
