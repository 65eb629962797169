"""Fixed-interval status polling for a single pipeline stage."""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from meshforge.core.config import Settings
from meshforge.models.generation import GenerationJob, RemoteStatus, Stage, StatusReport
from meshforge.services.exceptions import PollingTransientError, RemoteFailure, StageTimeoutError
from meshforge.services.generation.client import RemoteJobClient

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
TickCallback = Callable[[Stage, Optional[float]], None]


class StagePoller:
    """Poll one stage until it succeeds, fails or runs out of attempts.

    Every attempt waits one interval and then polls. Transport failures use
    up an attempt like any other tick; there is no backoff. A FAILED status
    ends the stage immediately.
    """

    def __init__(
        self,
        client: RemoteJobClient,
        interval: float = 3.0,
        max_attempts: int = 60,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize poller.

        Args:
            client: Remote client used for status calls
            interval: Seconds to wait before each poll
            max_attempts: Attempt budget per stage
            sleep: Awaitable sleep primitive (tests pass a virtual clock)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls, client: RemoteJobClient, settings: Settings, sleep: SleepFunc = asyncio.sleep
    ) -> "StagePoller":
        return cls(
            client,
            interval=settings.poll_interval_seconds,
            max_attempts=settings.max_poll_attempts,
            sleep=sleep,
        )

    async def await_terminal(
        self, job: GenerationJob, on_tick: Optional[TickCallback] = None
    ) -> StatusReport:
        """Poll the job's active remote task until a terminal status.

        Args:
            job: Job whose stage is in progress; its attempt counter is updated
            on_tick: Called after every non-terminal tick with the remote
                progress (None when the tick carried no value)

        Returns:
            The SUCCEEDED status report

        Raises:
            RemoteFailure: The remote task reported FAILED
            StageTimeoutError: max_attempts ticks without a terminal status
        """
        task_id = job.remote_task_id
        stage = job.stage
        if not task_id:
            raise ValueError("Job has no active remote task to poll")

        while job.attempt < self.max_attempts:
            await self.sleep(self.interval)
            job.attempt += 1

            try:
                report = await self.client.poll(task_id)
            except PollingTransientError as e:
                logger.warning(
                    "generation.poll.transient_error",
                    job_id=job.job_id,
                    stage=stage.value,
                    task_id=task_id,
                    attempt=job.attempt,
                    max_attempts=self.max_attempts,
                    error_message=str(e),
                )
                if on_tick:
                    on_tick(stage, None)
                continue

            if report.status is RemoteStatus.SUCCEEDED:
                job.mark_succeeded()
                logger.info(
                    "generation.stage.succeeded",
                    job_id=job.job_id,
                    stage=stage.value,
                    task_id=task_id,
                    attempt=job.attempt,
                )
                return report

            if report.status is RemoteStatus.FAILED:
                job.mark_failed()
                reason = report.error_message or "remote task reported FAILED"
                raise RemoteFailure(f"{stage.value} failed: {reason}", task_id=task_id)

            logger.debug(
                "generation.poll.running",
                job_id=job.job_id,
                stage=stage.value,
                task_id=task_id,
                attempt=job.attempt,
                remote_progress=report.progress,
            )
            if on_tick:
                on_tick(stage, report.progress)

        job.mark_timed_out()
        raise StageTimeoutError(
            f"{stage.value} did not finish within {self.max_attempts} attempts",
            attempts=job.attempt,
        )
