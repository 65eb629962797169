"""Remote two-stage 3D generation: client, poller, progress and orchestration."""

from meshforge.services.generation.client import RemoteJobClient
from meshforge.services.generation.orchestrator import JobOrchestrator, OrchestratorState
from meshforge.services.generation.poller import StagePoller
from meshforge.services.generation.progress import ProgressEstimator, ProgressFeed

__all__ = [
    "JobOrchestrator",
    "OrchestratorState",
    "ProgressEstimator",
    "ProgressFeed",
    "RemoteJobClient",
    "StagePoller",
]
