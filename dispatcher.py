import logging
from typing import Any, Callable, Mapping

from content.base import ContentEngine
from content.dialogue import DialogueEngine
from content.procedure import ProcedureEngine
from content.question import QuizEngine
from models import ContentClosed, ContentCompleted, ContentType
from runtime.context import RuntimeContext
from runtime.events import Signal

logger = logging.getLogger(__name__)

# Registry of content engine classes. Text content has no engine and goes
# to the fallback presenter.
CONTENT_ENGINES: dict[ContentType, type[ContentEngine]] = {
    ContentType.QUESTION: QuizEngine,
    ContentType.DIALOGUE: DialogueEngine,
    ContentType.PROCEDURE: ProcedureEngine,
}

FallbackPresenter = Callable[[str, ContentType | str, Mapping[str, Any]], None]


def create_default_engines(context: RuntimeContext) -> dict[ContentType, ContentEngine]:
    """Instantiate one engine per registered content type."""
    return {
        content_type: engine_class(context)
        for content_type, engine_class in CONTENT_ENGINES.items()
    }


class ContentDispatcher:
    """Routes content to its engine and owns the single active flow.

    Events:
    - on_content_displayed(content_type, object_id)
    - on_content_closed(content_type, object_id)
    - on_content_completed(object_id, success)
    - on_result(ContentClosed | ContentCompleted), the typed form of the
      two terminal events
    """

    def __init__(
        self,
        context: RuntimeContext,
        engines: dict[ContentType, ContentEngine] | None = None,
        fallback: FallbackPresenter | None = None,
    ):
        self.context = context
        self.fallback = fallback
        self._engines: dict[ContentType, ContentEngine] = {}
        self._current: ContentEngine | None = None
        self._current_type: ContentType | None = None
        self._current_object_id: str | None = None
        for content_type, engine in (
            engines if engines is not None else create_default_engines(context)
        ).items():
            self.register(content_type, engine)

        self.on_content_displayed = Signal("content_displayed")
        self.on_content_closed = Signal("content_closed")
        self.on_content_completed = Signal("content_completed")
        self.on_result = Signal("content_result")

    def register(self, content_type: ContentType, engine: ContentEngine) -> None:
        """Register (or replace) the engine for a content type."""
        if self._current is not None and self._current_type == content_type:
            self.close_current_content()
        self._engines[content_type] = engine

    def get_engine(self, content_type: ContentType) -> ContentEngine | None:
        return self._engines.get(content_type)

    @property
    def is_displaying(self) -> bool:
        return self._current is not None

    @property
    def current_content_type(self) -> ContentType | None:
        return self._current_type

    @property
    def current_object_id(self) -> str | None:
        return self._current_object_id

    @property
    def current_engine(self) -> ContentEngine | None:
        return self._current

    def display(
        self,
        object_id: str,
        content_type: ContentType | str,
        payload: Mapping[str, Any],
    ) -> bool:
        """Show content for a scene object, closing any active flow first.

        Never raises: engine failures are logged and end the flow.

        Returns:
            True if a flow is now displaying.
        """
        if self._current is not None:
            self.close_current_content()

        resolved = self._resolve_type(content_type)
        engine = self._engines.get(resolved) if resolved is not None else None
        if engine is None:
            self._present_fallback(object_id, resolved or content_type, payload)
            return False

        self._current = engine
        self._current_type = resolved
        self._current_object_id = object_id
        engine.on_closed.connect(self._handle_closed)
        engine.on_completed.connect(self._handle_completed)

        try:
            engine.display(object_id, payload)
        except Exception:
            logger.exception(
                "%s engine failed while displaying %s", resolved.value, object_id
            )
            self._force_close(engine)

        if self._current is engine and engine.is_active:
            self.on_content_displayed.emit(resolved, object_id)
            return True
        return False

    def close_current_content(self) -> None:
        """Close the active flow, if any."""
        if self._current is None:
            return
        self._force_close(self._current)

    def _resolve_type(self, content_type: ContentType | str) -> ContentType | None:
        if isinstance(content_type, ContentType):
            return content_type
        try:
            return ContentType(str(content_type).strip().lower())
        except ValueError:
            return None

    def _present_fallback(
        self,
        object_id: str,
        content_type: ContentType | str,
        payload: Mapping[str, Any],
    ) -> None:
        label = content_type.value if isinstance(content_type, ContentType) else content_type
        if self.fallback is None:
            logger.warning("No engine or fallback for %s content (%s)", label, object_id)
            return
        logger.info("No engine for %s content, using fallback for %s", label, object_id)
        try:
            self.fallback(object_id, content_type, payload)
        except Exception:
            logger.exception("Fallback presenter failed for %s", object_id)

    def _force_close(self, engine: ContentEngine) -> None:
        try:
            engine.close()
        except Exception:
            logger.exception("%s engine failed while closing", self._current_type)
        if self._current is engine:
            # The engine never reported closing; clear state ourselves
            self._handle_closed(ContentClosed(object_id=self._current_object_id or ""))

    def _detach(self, engine: ContentEngine) -> None:
        engine.on_closed.disconnect(self._handle_closed)
        engine.on_completed.disconnect(self._handle_completed)

    def _handle_closed(self, result: ContentClosed) -> None:
        engine = self._current
        if engine is None:
            return
        content_type = self._current_type
        self._detach(engine)
        self._current = None
        self._current_type = None
        self._current_object_id = None

        logger.debug("Content %s (%s) closed", result.object_id, content_type.value)
        self.on_result.emit(result)
        self.on_content_closed.emit(content_type, result.object_id)

    def _handle_completed(self, result: ContentCompleted) -> None:
        self.on_result.emit(result)
        self.on_content_completed.emit(result.object_id, result.success)
