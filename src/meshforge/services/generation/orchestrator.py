"""Two-stage generation job orchestration.

Runs preview then refine against the remote service and always hands back
a GeneratedResult. Any failure along the way (submission rejected, remote
FAILED status, attempt budget exhausted, model locator missing with no
proxy available) is logged and turned into a DEGRADED placeholder result,
so callers never have to handle an exception from run().

States:
    IDLE -> SUBMIT_PREVIEW -> POLL_PREVIEW -> SUBMIT_REFINE -> POLL_REFINE
         -> COMMIT -> IDLE
    any SUBMIT_* / POLL_* -> FALLBACK -> COMMIT (degraded) -> IDLE
"""

import asyncio
import random
import time
from enum import Enum
from typing import Any, Optional

import structlog

from meshforge.core.config import Settings
from meshforge.models.generation import (
    GeneratedResult,
    GenerationJob,
    ResultQuality,
    Stage,
    StatusReport,
)
from meshforge.services.exceptions import (
    RemoteFailure,
    ResultMissingError,
    ServiceError,
    StageTimeoutError,
    SubmissionError,
)
from meshforge.services.generation.client import RemoteJobClient
from meshforge.services.generation.poller import SleepFunc, StagePoller
from meshforge.services.generation.progress import ProgressEstimator, ProgressFeed
from meshforge.services.history.result_store import ResultStore

logger = structlog.get_logger(__name__)

DEFAULT_PLACEHOLDER_MODEL_URL = "builtin://placeholder/cube.glb"


class OrchestratorState(str, Enum):
    IDLE = "idle"
    SUBMIT_PREVIEW = "submit_preview"
    POLL_PREVIEW = "poll_preview"
    SUBMIT_REFINE = "submit_refine"
    POLL_REFINE = "poll_refine"
    FALLBACK = "fallback"
    COMMIT = "commit"


_SUBMIT_STATE = {
    Stage.PREVIEW: OrchestratorState.SUBMIT_PREVIEW,
    Stage.REFINE: OrchestratorState.SUBMIT_REFINE,
}
_POLL_STATE = {
    Stage.PREVIEW: OrchestratorState.POLL_PREVIEW,
    Stage.REFINE: OrchestratorState.POLL_REFINE,
}


def _fallback_message(error: Exception) -> str:
    if isinstance(error, StageTimeoutError):
        return "Generation timed out, placeholder model used"
    if isinstance(error, RemoteFailure):
        return "Generation service reported a failure, placeholder model used"
    if isinstance(error, SubmissionError):
        return "Generation request was rejected, placeholder model used"
    if isinstance(error, ResultMissingError):
        return "Generated model could not be retrieved, placeholder model used"
    return "Generation failed, placeholder model used"


class JobOrchestrator:
    """Sequence preview and refine, then commit the result to history."""

    def __init__(
        self,
        client: RemoteJobClient,
        poller: StagePoller,
        results: ResultStore,
        feed: Optional[ProgressFeed] = None,
        placeholder_model_url: str = DEFAULT_PLACEHOLDER_MODEL_URL,
        service: str = "meshy-5",
        rng: Optional[random.Random] = None,
    ):
        """Initialize orchestrator.

        Args:
            client: Remote submit/poll client
            poller: Stage poller sharing the same client
            results: History the finished results are committed to
            feed: Progress feed every run publishes to
            placeholder_model_url: Model locator used for degraded results
            service: Service label recorded on results
            rng: Random source for synthetic progress steps
        """
        self.client = client
        self.poller = poller
        self.results = results
        self.feed = feed or ProgressFeed()
        self.placeholder_model_url = placeholder_model_url
        self.service = service
        self.rng = rng
        self.state = OrchestratorState.IDLE
        self.last_job: Optional[GenerationJob] = None
        self._active_runs = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        results: ResultStore,
        client: Optional[RemoteJobClient] = None,
        feed: Optional[ProgressFeed] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "JobOrchestrator":
        client = client or RemoteJobClient.from_settings(settings)
        return cls(
            client=client,
            poller=StagePoller.from_settings(client, settings, sleep=sleep),
            results=results,
            feed=feed,
            placeholder_model_url=settings.placeholder_model_url,
            service=settings.generation_service,
        )

    @property
    def is_running(self) -> bool:
        return self._active_runs > 0

    async def run(self, prompt: str) -> GeneratedResult:
        """Generate an asset for prompt and record it in history.

        Never raises for generation failures: the returned result is marked
        DEGRADED instead and points at the placeholder model.
        """
        if self._active_runs:
            # Runs are independent; callers wanting exclusion must serialize
            logger.warning("generation.concurrent_run", active_runs=self._active_runs)

        self._active_runs += 1
        job = GenerationJob(prompt=prompt)
        self.last_job = job
        estimator = ProgressEstimator(self.feed, rng=self.rng)
        start_time = time.monotonic()

        log = logger.bind(job_id=job.job_id)
        log.info("generation.started", prompt_length=len(prompt))
        job.progress_percent = estimator.start()

        try:
            try:
                result = await self._generate(job, estimator)
            except ServiceError as e:
                result = self._fallback(job, estimator, e)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error(
                    "generation.unexpected_error",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                result = self._fallback(job, estimator, e)

            result = await self._commit(result)

            log.info(
                "generation.finished",
                result_id=result.id,
                quality=result.quality.value,
                model_reference=result.model_reference,
                duration_seconds=round(time.monotonic() - start_time, 3),
            )
            return result
        finally:
            self._active_runs -= 1
            if not self._active_runs:
                self.state = OrchestratorState.IDLE

    async def _generate(self, job: GenerationJob, estimator: ProgressEstimator) -> GeneratedResult:
        await self._run_stage(job, estimator, Stage.PREVIEW)

        # Refine works on the preview output instead of starting from scratch
        report = await self._run_stage(
            job, estimator, Stage.REFINE, {"preview_task_id": job.preview_task_id}
        )

        model_reference = await self._resolve_model_reference(job, report)
        job.progress_percent = estimator.complete()

        return GeneratedResult(
            prompt=job.prompt,
            model_reference=model_reference,
            texture_reference=report.texture_locator(),
            quality=ResultQuality.STANDARD,
            task_id=job.refine_task_id,
            service=self.service,
        )

    async def _run_stage(
        self,
        job: GenerationJob,
        estimator: ProgressEstimator,
        stage: Stage,
        params: Optional[dict[str, Any]] = None,
    ) -> StatusReport:
        self.state = _SUBMIT_STATE[stage]
        job.start_submission(stage)
        job.progress_percent = estimator.stage_submitting(stage)

        try:
            task_id = await self.client.submit(job.prompt, stage, params)
        except SubmissionError:
            job.mark_failed()
            raise

        job.begin_stage(task_id)
        job.progress_percent = estimator.stage_submitted(stage)
        logger.info(
            "generation.stage.submitted", job_id=job.job_id, stage=stage.value, task_id=task_id
        )

        def on_tick(tick_stage: Stage, remote_progress: Optional[float]) -> None:
            job.progress_percent = estimator.update(tick_stage, remote_progress)

        self.state = _POLL_STATE[stage]
        report = await self.poller.await_terminal(job, on_tick)
        job.progress_percent = estimator.stage_succeeded(stage)
        return report

    @staticmethod
    def _extract_model_reference(job: GenerationJob, report: StatusReport) -> str:
        locator = report.model_locator()
        if locator is None:
            raise ResultMissingError(
                f"Refine task {job.refine_task_id} succeeded without a model locator"
            )
        return locator

    async def _resolve_model_reference(self, job: GenerationJob, report: StatusReport) -> str:
        try:
            return self._extract_model_reference(job, report)
        except ResultMissingError as e:
            logger.warning(
                "generation.result_missing",
                job_id=job.job_id,
                task_id=job.refine_task_id,
                error_message=str(e),
            )
            proxy_url = await self.client.probe_proxy(job.refine_task_id or "")
            if proxy_url is None:
                raise
            logger.info(
                "generation.proxy_recovered",
                job_id=job.job_id,
                task_id=job.refine_task_id,
                model_reference=proxy_url,
            )
            return proxy_url

    def _fallback(
        self, job: GenerationJob, estimator: ProgressEstimator, error: Exception
    ) -> GeneratedResult:
        self.state = OrchestratorState.FALLBACK
        logger.warning(
            "generation.fallback",
            job_id=job.job_id,
            stage=job.stage.value,
            stage_status=job.status.value,
            task_id=job.remote_task_id,
            attempt=job.attempt,
            error_type=type(error).__name__,
            error_message=str(error),
        )
        job.progress_percent = estimator.fail(_fallback_message(error))
        return GeneratedResult(
            prompt=job.prompt,
            model_reference=self.placeholder_model_url,
            quality=ResultQuality.DEGRADED,
            task_id=job.remote_task_id,
            service=self.service,
        )

    async def _commit(self, result: GeneratedResult) -> GeneratedResult:
        self.state = OrchestratorState.COMMIT
        try:
            stored = await self.results.add(result)
        except Exception as e:
            # Persistence failures never reach the caller
            logger.error(
                "generation.commit_failed",
                result_id=result.id,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            return result

        # Degraded results are returned as built: the stored placeholder
        # entry may belong to an earlier prompt
        if result.quality is ResultQuality.DEGRADED:
            return result
        return stored
