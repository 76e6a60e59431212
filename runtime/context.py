"""Bundle of collaborators shared by the dispatcher and its engines.

The application root builds one RuntimeContext and passes it down; no
collaborator is reachable through a global.
"""

from pydantic import BaseModel, ConfigDict, Field

from content.config import RuntimeConfig
from runtime.analytics import TrainingAnalytics
from runtime.base import AnalyticsSink, HighlightEffect, SceneResolver, Scheduler
from runtime.localization import LocalizationManager
from runtime.scene import InMemoryScene, RecordingHighlighter
from runtime.scheduler import ManualScheduler


class RuntimeContext(BaseModel):
    """Everything an engine needs from the outside world."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    scene: SceneResolver
    highlighter: HighlightEffect
    localization: LocalizationManager
    analytics: AnalyticsSink
    scheduler: Scheduler
    config: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @classmethod
    def in_memory(
        cls,
        scene: SceneResolver | None = None,
        config: RuntimeConfig | None = None,
    ) -> "RuntimeContext":
        """Build a context from the in-process collaborators.

        Analytics durations follow the scheduler's virtual clock.
        """
        config = config or RuntimeConfig()
        scheduler = ManualScheduler()
        return cls(
            scene=scene or InMemoryScene(),
            highlighter=RecordingHighlighter(),
            localization=LocalizationManager.from_config(config.localization),
            analytics=TrainingAnalytics(clock=scheduler.now),
            scheduler=scheduler,
            config=config,
        )
