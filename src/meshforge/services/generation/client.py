"""HTTP client for the remote text-to-3D generation service.

Wraps the three calls the orchestrator needs: submit a stage, poll a task's
status and probe the proxy retrieval endpoint. Transport failures are
classified here so callers only see the service error hierarchy.
"""

from typing import Any, Optional

import httpx
import structlog

from meshforge.core.config import Settings
from meshforge.models.generation import Stage, StatusReport
from meshforge.services.exceptions import PollingTransientError, SubmissionError
from meshforge.services.generation.prompt_validator import (
    DEFAULT_MAX_PROMPT_LENGTH,
    validate_prompt,
)

logger = structlog.get_logger(__name__)


class RemoteJobClient:
    """Submit/poll client for the two-stage generation service."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        art_style: str = "realistic",
        timeout: float = 30.0,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Service base URL (e.g., "http://localhost:3001/api/ai")
            api_key: Bearer token sent when non-empty
            art_style: Art style requested for every submission
            timeout: Per-request timeout in seconds
            max_prompt_length: Longest prompt accepted by submit()
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.art_style = art_style
        self.timeout = timeout
        self.max_prompt_length = max_prompt_length
        self.transport = transport
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "RemoteJobClient":
        return cls(
            base_url=settings.generation_api_url,
            api_key=settings.generation_api_key,
            art_style=settings.art_style,
            timeout=settings.request_timeout_seconds,
            max_prompt_length=settings.max_prompt_length,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, transport=self.transport
        )

    def proxy_model_url(self, task_id: str) -> str:
        """Locator of the proxy retrieval endpoint for a task."""
        return f"{self.base_url}/proxy-model/{task_id}"

    async def submit(
        self,
        prompt: str,
        stage: Stage,
        extra_params: Optional[dict[str, Any]] = None,
    ) -> str:
        """Submit one stage of the pipeline.

        Args:
            prompt: Text description of the asset
            stage: PREVIEW or REFINE
            extra_params: Stage parameters merged into the request body
                (REFINE requires "preview_task_id")

        Returns:
            Remote task id for the submitted stage

        Raises:
            SubmissionError: Invalid prompt, missing stage parameters, transport
                failure, non-2xx response or a response without a task id
        """
        try:
            prompt = validate_prompt(prompt, self.max_prompt_length)
        except ValueError as e:
            raise SubmissionError(f"Prompt validation failed: {e}") from e

        params = dict(extra_params or {})
        if stage is Stage.REFINE:
            if not params.get("preview_task_id"):
                raise SubmissionError("Refine submission requires preview_task_id")
            params.setdefault(
                "texture_prompt",
                f"{self.art_style} {prompt} texture, detailed surface materials",
            )

        payload = {
            "prompt": prompt,
            "mode": stage.value,
            "art_style": self.art_style,
            **params,
        }

        try:
            async with self._client() as client:
                response = await client.post(f"{self.base_url}/text-to-3d", json=payload)
        except httpx.TimeoutException as e:
            raise SubmissionError(f"Submit {stage.value} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SubmissionError(f"Submit {stage.value} network error: {e}") from e

        if not response.is_success:
            raise SubmissionError(
                f"Submit {stage.value} rejected ({response.status_code}): {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SubmissionError(f"Submit {stage.value} returned invalid JSON") from e

        task_id = data.get("task_id") if isinstance(data, dict) else None
        if not isinstance(task_id, str) or not task_id:
            raise SubmissionError(f"Submit {stage.value} response has no task_id")

        logger.debug("remote.submitted", stage=stage.value, task_id=task_id)
        return task_id

    async def poll(self, task_id: str) -> StatusReport:
        """Fetch the current status of a remote task.

        Returns:
            Parsed status report (RUNNING, SUCCEEDED or FAILED)

        Raises:
            PollingTransientError: No response, non-2xx response or an
                undecodable body
        """
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/text-to-3d/{task_id}/status")
        except httpx.TimeoutException as e:
            raise PollingTransientError(f"Status check timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise PollingTransientError(f"Status check network error: {e}") from e

        if not response.is_success:
            raise PollingTransientError(
                f"Status check failed ({response.status_code}): {response.text[:200]}"
            )

        try:
            return StatusReport.model_validate(response.json())
        except ValueError as e:
            raise PollingTransientError(f"Status check returned unparseable body: {e}") from e

    async def probe_proxy(self, task_id: str) -> Optional[str]:
        """Check whether the proxy endpoint can serve the task's model.

        Returns:
            Proxy locator if the endpoint answered 2xx, None otherwise
        """
        url = self.proxy_model_url(task_id)
        try:
            async with self._client() as client:
                response = await client.head(url)
        except httpx.HTTPError as e:
            logger.warning(
                "remote.proxy_probe_failed",
                task_id=task_id,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return None

        if not response.is_success:
            logger.warning(
                "remote.proxy_unavailable", task_id=task_id, status_code=response.status_code
            )
            return None

        return url
