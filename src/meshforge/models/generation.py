"""Generation entities - job state, remote status reports and generated results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Stage(str, Enum):
    """Stage of the two-phase remote generation pipeline."""

    PREVIEW = "preview"
    REFINE = "refine"


class StageStatus(str, Enum):
    """Per-stage status tracked on the job."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class RemoteStatus(str, Enum):
    """Status values reported by the remote status endpoint."""

    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class ResultQuality(str, Enum):
    """Quality flag on a generated result. DEGRADED marks a fallback result."""

    STANDARD = "standard"
    DEGRADED = "degraded"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid generation job state transition."""

    pass


# Formats tried in order when picking the model locator from a status report
MODEL_FORMAT_PREFERENCE = ("glb", "obj", "fbx")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


@dataclass
class GenerationJob:
    """Transient state of one generation run, owned by the orchestrator."""

    prompt: str
    job_id: str = field(default_factory=_new_id)
    stage: Stage = Stage.PREVIEW
    remote_task_id: Optional[str] = None
    status: StageStatus = StageStatus.PENDING
    attempt: int = 0
    progress_percent: float = 0.0
    preview_task_id: Optional[str] = None
    refine_task_id: Optional[str] = None
    started_at: datetime = field(default_factory=_utcnow)

    def start_submission(self, stage: Stage) -> None:
        """Move the job onto a stage that is about to be submitted.

        The remote task id is cleared and the attempt counter starts again
        from zero.

        Raises:
            InvalidStateTransition: If REFINE is started before PREVIEW succeeded
        """
        if stage is Stage.REFINE and (
            self.preview_task_id is None
            or self.stage is not Stage.PREVIEW
            or self.status is not StageStatus.SUCCEEDED
        ):
            raise InvalidStateTransition(
                f"Cannot start refine from {self.stage.value}/{self.status.value}. "
                "Preview stage must have succeeded."
            )
        self.stage = stage
        self.remote_task_id = None
        self.status = StageStatus.PENDING
        self.attempt = 0

    def begin_stage(self, task_id: str) -> None:
        """Transition from pending to in_progress once the remote task exists.

        Raises:
            InvalidStateTransition: If the stage was not submitted
            ValueError: If task_id is empty
        """
        if self.status is not StageStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot begin stage from {self.status.value}. Stage must be pending."
            )
        if not task_id:
            raise ValueError("task_id is required")
        self.remote_task_id = task_id
        self.status = StageStatus.IN_PROGRESS
        if self.stage is Stage.PREVIEW:
            self.preview_task_id = task_id
        else:
            self.refine_task_id = task_id

    def mark_succeeded(self) -> None:
        """Transition the active stage from in_progress to succeeded.

        Raises:
            InvalidStateTransition: If the stage is not in progress
        """
        if self.status is not StageStatus.IN_PROGRESS:
            raise InvalidStateTransition(
                f"Cannot mark succeeded from {self.status.value}. Stage must be in progress."
            )
        self.status = StageStatus.SUCCEEDED

    def mark_failed(self) -> None:
        """Mark the active stage failed (allowed from any non-terminal status)."""
        if self.status not in (StageStatus.PENDING, StageStatus.IN_PROGRESS):
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.status.value}."
            )
        self.status = StageStatus.FAILED

    def mark_timed_out(self) -> None:
        """Mark the active stage timed out after the attempt budget ran out."""
        if self.status is not StageStatus.IN_PROGRESS:
            raise InvalidStateTransition(
                f"Cannot mark timed out from {self.status.value}. Stage must be in progress."
            )
        self.status = StageStatus.TIMED_OUT


class StatusReport(BaseModel):
    """Parsed response of the remote status endpoint."""

    model_config = ConfigDict(extra="ignore")

    status: RemoteStatus
    progress: Optional[float] = None
    model_urls: dict[str, Any] = Field(default_factory=dict)
    model_url: Optional[str] = None
    texture_urls: list[Any] = Field(default_factory=list)
    task_error: Any = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> str:
        """Collapse the remote service's non-terminal statuses into RUNNING."""
        value = str(v or "").upper()
        if value in ("PENDING", "IN_PROGRESS", "QUEUED"):
            return RemoteStatus.RUNNING.value
        if value in ("CANCELED", "CANCELLED", "EXPIRED"):
            return RemoteStatus.FAILED.value
        return value

    # Only status is authoritative: malformed optional fields are dropped
    # instead of rejecting the whole report.

    @field_validator("model_urls", mode="before")
    @classmethod
    def lenient_model_urls(cls, v: Any) -> dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator("texture_urls", mode="before")
    @classmethod
    def lenient_texture_urls(cls, v: Any) -> list[Any]:
        return v if isinstance(v, list) else []

    @field_validator("model_url", mode="before")
    @classmethod
    def lenient_model_url(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: Any) -> Optional[float]:
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            value = float(v)
        except (TypeError, ValueError):
            return None
        if value != value:  # NaN
            return None
        return max(0.0, min(value, 100.0))

    def model_locator(self) -> Optional[str]:
        """Return the preferred model locator, or None when absent/unusable."""
        candidates = [self.model_urls.get(fmt) for fmt in MODEL_FORMAT_PREFERENCE]
        candidates.append(self.model_url)
        for candidate in candidates:
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
        return None

    def texture_locator(self) -> Optional[str]:
        """Return the base color texture of the first texture set, if any."""
        if not self.texture_urls:
            return None
        first = self.texture_urls[0]
        if isinstance(first, dict):
            first = first.get("base_color")
        if isinstance(first, str) and first.strip():
            return first.strip()
        return None

    @property
    def error_message(self) -> Optional[str]:
        if not self.task_error:
            return None
        if isinstance(self.task_error, dict):
            message = self.task_error.get("message")
            return str(message) if message else None
        return str(self.task_error)


class GeneratedResult(BaseModel):
    """A generated asset as recorded in the history list."""

    id: str = Field(default_factory=_new_id)
    prompt: str
    model_reference: str = Field(..., min_length=1)
    texture_reference: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    quality: ResultQuality = ResultQuality.STANDARD
    task_id: Optional[str] = None
    service: str = "meshy-5"


class ProgressSnapshot(BaseModel):
    """Progress value published to the UI on every tick."""

    model_config = ConfigDict(frozen=True)

    percent: float = Field(default=0.0, ge=0.0, le=100.0)
    stage_label: str = "idle"
    message: str = ""
