"""Service error hierarchy for remote generation and history persistence.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Absorbed by the poll attempt budget
- PermanentError: Terminal for the current job, routes to the fallback result
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on the next attempt.

    Examples:
    - Network timeouts
    - Connection refused / reset
    - Non-2xx status responses from the status endpoint
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that ends the current generation job.

    Examples:
    - Submission rejected by the remote service
    - Remote task reported FAILED
    - Attempt budget exhausted
    """

    pass


# Generation-specific errors
class SubmissionError(PermanentError):
    """Stage submit call failed at the transport or validation level."""

    pass


class PollingTransientError(TransientError):
    """Single poll attempt failed at the transport level."""

    pass


class RemoteFailure(PermanentError):
    """Remote service reported a business-level FAILED status."""

    def __init__(self, message: str, task_id: str | None = None):
        super().__init__(message)
        self.task_id = task_id


class StageTimeoutError(PermanentError):
    """Attempt budget exhausted without a terminal status."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class ResultMissingError(PermanentError):
    """Stage reported SUCCEEDED but the expected model locator is absent."""

    pass
