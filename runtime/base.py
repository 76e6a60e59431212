"""Abstract interfaces for the collaborators the content engines call.

The engines never look up scene objects, draw highlights, persist analytics
or wait on timers themselves. Each of those concerns sits behind one of the
interfaces below so a host application (or a test) can plug in its own.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Hashable


class SceneResolver(ABC):
    """Resolves object names and tags to scene object handles."""

    @abstractmethod
    def find_by_name(self, name: str) -> Hashable | None:
        """Find a scene object by name.

        Args:
            name: The object's name in the scene.

        Returns:
            An opaque, hashable object handle or None if not found.
        """
        ...

    @abstractmethod
    def find_all_with_tag(self, tag: str) -> list[Hashable]:
        """Find every scene object carrying the given tag."""
        ...


class HighlightEffect(ABC):
    """Visual highlight attached to scene objects.

    Both operations must be idempotent: applying twice leaves one highlight,
    removing a highlight that is not there does nothing.
    """

    @abstractmethod
    def apply(
        self,
        handle: Hashable,
        color: str,
        intensity: float,
        pulsing: bool,
    ) -> None:
        """Attach a highlight to an object.

        Args:
            handle: Object handle returned by a SceneResolver.
            color: Hex color string (e.g. "#FFE64D").
            intensity: Emission intensity multiplier.
            pulsing: Whether the highlight should blink.
        """
        ...

    @abstractmethod
    def remove(self, handle: Hashable) -> None:
        """Remove any highlight from an object."""
        ...


class AnalyticsSink(ABC):
    """Receives interaction records written by the content engines."""

    @abstractmethod
    def start_interaction(self, object_id: str, kind: str, subtype: str) -> str:
        """Open a new interaction record.

        Args:
            object_id: Scene object the content is attached to.
            kind: Interaction kind ("question", "dialogue", "procedure").
            subtype: Finer classification (e.g. "multiple_choice").

        Returns:
            Record handle to pass to the other methods.
        """
        ...

    @abstractmethod
    def add_data(self, record: str, key: str, value: Any) -> None:
        """Attach or overwrite a data field on an open record."""
        ...

    @abstractmethod
    def increment_attempts(self, record: str) -> None:
        """Count one more attempt on an open record."""
        ...

    @abstractmethod
    def end_interaction(self, record: str, success: bool) -> None:
        """Close a record. Ending an already-ended record does nothing."""
        ...


class TimerToken(ABC):
    """Handle for a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...

    @property
    @abstractmethod
    def active(self) -> bool:
        """True while the callback has neither run nor been cancelled."""
        ...


class Scheduler(ABC):
    """Runs callbacks after a delay on the caller's event loop."""

    @abstractmethod
    def after(self, ms: int, callback: Callable[[], None]) -> TimerToken:
        """Schedule a callback to run after `ms` milliseconds."""
        ...

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds, used for elapsed-time measurements."""
        ...
