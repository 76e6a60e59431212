"""In-memory scene objects and a highlight effect that records its calls."""

import json
import logging
from pathlib import Path
from typing import Any, Hashable, Literal

from pydantic import BaseModel, ConfigDict

from runtime.base import HighlightEffect, SceneResolver

logger = logging.getLogger(__name__)


class SceneObject(BaseModel):
    """A named, optionally tagged object in the scene. Used as the handle."""

    model_config = ConfigDict(frozen=True)

    name: str
    tags: tuple[str, ...] = ()


class InMemoryScene(SceneResolver):
    """Scene resolver backed by a dict of SceneObjects."""

    def __init__(self, objects: list[SceneObject] | None = None):
        self._objects: dict[str, SceneObject] = {}
        for obj in objects or []:
            self.add(obj)

    @classmethod
    def from_names(cls, *names: str) -> "InMemoryScene":
        return cls([SceneObject(name=name) for name in names])

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryScene":
        """Load a scene from a JSON list of objects.

        Each entry is either a name string or {"name": ..., "tags": [...]}.
        """
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)

        objects = []
        for entry in raw:
            if isinstance(entry, str):
                objects.append(SceneObject(name=entry))
            else:
                objects.append(SceneObject.model_validate(entry))
        logger.debug("Loaded %d scene objects from %s", len(objects), path)
        return cls(objects)

    def add(self, obj: SceneObject) -> SceneObject:
        self._objects[obj.name] = obj
        return obj

    def find_by_name(self, name: str) -> SceneObject | None:
        if not name:
            return None
        return self._objects.get(name)

    def find_all_with_tag(self, tag: str) -> list[SceneObject]:
        return [obj for obj in self._objects.values() if tag in obj.tags]

    @property
    def names(self) -> list[str]:
        return list(self._objects)


class HighlightCall(BaseModel):
    """One entry of the highlight call log."""

    action: Literal["apply", "remove"]
    handle: Any
    color: str | None = None
    intensity: float | None = None
    pulsing: bool | None = None


class ActiveHighlight(BaseModel):
    color: str
    intensity: float
    pulsing: bool


class RecordingHighlighter(HighlightEffect):
    """Highlight effect that keeps the active highlights and a call log."""

    def __init__(self):
        self.active: dict[Hashable, ActiveHighlight] = {}
        self.calls: list[HighlightCall] = []

    def apply(
        self,
        handle: Hashable,
        color: str,
        intensity: float,
        pulsing: bool,
    ) -> None:
        self.calls.append(
            HighlightCall(
                action="apply",
                handle=handle,
                color=color,
                intensity=intensity,
                pulsing=pulsing,
            )
        )
        self.active[handle] = ActiveHighlight(
            color=color, intensity=intensity, pulsing=pulsing
        )

    def remove(self, handle: Hashable) -> None:
        self.calls.append(HighlightCall(action="remove", handle=handle))
        self.active.pop(handle, None)

    def is_highlighted(self, handle: Hashable) -> bool:
        return handle in self.active

    def ever_applied(self) -> set[Hashable]:
        return {call.handle for call in self.calls if call.action == "apply"}

    def unmatched(self) -> list[Hashable]:
        """Handles whose last apply has no later remove."""
        last_apply: dict[Hashable, int] = {}
        last_remove: dict[Hashable, int] = {}
        for index, call in enumerate(self.calls):
            if call.action == "apply":
                last_apply[call.handle] = index
            else:
                last_remove[call.handle] = index
        return [
            handle
            for handle, index in last_apply.items()
            if last_remove.get(handle, -1) < index
        ]
