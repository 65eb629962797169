"""Whole-job progress estimation and publication.

The two remote stages report their own 0-100 progress, sparsely and
sometimes not at all. ProgressEstimator maps them onto one scale:

    0-20   preview submission        (assigned locally)
    20-49  preview polling           20 + remote * 0.3
    50-60  handoff into refine       (assigned locally)
    60-99  refine polling            60 + remote * 0.4
    100    job finished (success or fallback)

The published percentage never decreases within a run and never passes
the ceiling of the current phase. Ticks without a remote value advance by
a small random step so the bar keeps moving.
"""

import random
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from meshforge.models.generation import ProgressSnapshot, Stage

logger = structlog.get_logger(__name__)

ProgressListener = Callable[[ProgressSnapshot], None]


@dataclass(frozen=True)
class ProgressPhase:
    name: str
    floor: float
    ceiling: float


IDLE = ProgressPhase("idle", 0.0, 0.0)
INITIALIZING = ProgressPhase("initializing", 0.0, 20.0)
PREVIEW_POLLING = ProgressPhase("preview", 20.0, 49.0)
HANDOFF = ProgressPhase("handoff", 50.0, 60.0)
REFINE_POLLING = ProgressPhase("refine", 60.0, 99.0)
COMPLETED = ProgressPhase("completed", 100.0, 100.0)

# Remote progress weight applied inside each polling phase
_STAGE_POLLING = {
    Stage.PREVIEW: (PREVIEW_POLLING, 0.3),
    Stage.REFINE: (REFINE_POLLING, 0.4),
}

_STAGE_MESSAGES = {
    Stage.PREVIEW: "Stage 1/2: generating preview model...",
    Stage.REFINE: "Stage 2/2: applying textures...",
}


class ProgressFeed:
    """Latest progress snapshot plus synchronous subscribers."""

    def __init__(self) -> None:
        self._latest = ProgressSnapshot()
        self._listeners: list[ProgressListener] = []

    @property
    def latest(self) -> ProgressSnapshot:
        return self._latest

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, snapshot: ProgressSnapshot) -> None:
        self._latest = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                # Listener errors never propagate to the publisher
                logger.warning(
                    "progress.listener_failed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                )

    def reset(self) -> None:
        self.publish(ProgressSnapshot())


class ProgressEstimator:
    """Monotonic progress for one generation run."""

    def __init__(
        self,
        feed: Optional[ProgressFeed] = None,
        rng: Optional[random.Random] = None,
        min_step: float = 0.5,
        max_step: float = 3.0,
    ):
        """Initialize estimator.

        Args:
            feed: Where snapshots are published (a private feed if omitted)
            rng: Source of synthetic steps (seed it for reproducible tests)
            min_step: Smallest synthetic increment
            max_step: Largest synthetic increment
        """
        if not 0 < min_step <= max_step:
            raise ValueError("Synthetic steps must satisfy 0 < min_step <= max_step")
        self.feed = feed or ProgressFeed()
        self.rng = rng or random.Random()
        self.min_step = min_step
        self.max_step = max_step
        self.phase = IDLE
        self.percent = 0.0
        self.stage_label = "idle"
        self.message = ""

    @property
    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            percent=round(self.percent, 2), stage_label=self.stage_label, message=self.message
        )

    def _advance(
        self,
        target: float,
        phase: Optional[ProgressPhase] = None,
        stage_label: Optional[str] = None,
        message: Optional[str] = None,
    ) -> float:
        if phase is not None:
            self.phase = phase
            target = max(target, phase.floor)
        target = min(target, self.phase.ceiling)
        self.percent = max(self.percent, target)
        if stage_label is not None:
            self.stage_label = stage_label
        if message is not None:
            self.message = message
        self.feed.publish(self.snapshot)
        return self.percent

    def start(self) -> float:
        return self._advance(0.0, INITIALIZING, "analyze", "Analyzing prompt...")

    def stage_submitting(self, stage: Stage) -> float:
        if stage is Stage.PREVIEW:
            return self._advance(
                10.0, INITIALIZING, "generate", "Stage 1/2: generating base mesh..."
            )
        return self._advance(
            HANDOFF.floor, HANDOFF, "refine", "Stage 2/2: starting texture generation..."
        )

    def stage_submitted(self, stage: Stage) -> float:
        phase, _ = _STAGE_POLLING[stage]
        label = "process" if stage is Stage.PREVIEW else "refine"
        return self._advance(phase.floor, phase, label, _STAGE_MESSAGES[stage])

    def update(self, stage: Stage, remote_progress: Optional[float]) -> float:
        """Fold one poll tick into the estimate.

        Args:
            stage: Stage being polled
            remote_progress: Remote 0-100 value, or None when the tick had none
        """
        if remote_progress is None:
            return self.nudge()
        phase, weight = _STAGE_POLLING[stage]
        remote_progress = max(0.0, min(float(remote_progress), 100.0))
        return self._advance(
            phase.floor + remote_progress * weight,
            message=f"{_STAGE_MESSAGES[stage]} ({remote_progress:.0f}%)",
        )

    def nudge(self) -> float:
        """Synthetic step, clamped to the current phase ceiling."""
        step = self.rng.uniform(self.min_step, self.max_step)
        return self._advance(self.percent + step)

    def stage_succeeded(self, stage: Stage) -> float:
        if stage is Stage.PREVIEW:
            return self._advance(
                HANDOFF.floor, HANDOFF, "refine", "Stage 2/2: starting texture generation..."
            )
        return self._advance(self.phase.ceiling, message="Stage 2/2: finalizing model...")

    def complete(self, message: str = "Textured 3D model ready") -> float:
        return self._advance(COMPLETED.floor, COMPLETED, "completed", message)

    def fail(self, message: str = "Generation failed, placeholder model used") -> float:
        return self._advance(COMPLETED.floor, COMPLETED, "completed", message)
