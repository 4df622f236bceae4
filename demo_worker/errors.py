"""
Error taxonomy for the demo worker.

Every failure the pipeline can record carries a short ``kind`` string that is
written onto the failed step and counted in metrics.
"""

from typing import Optional


class DemoWorkerError(Exception):
    """Base class for worker errors."""

    kind = "error"


class ConfigurationError(DemoWorkerError):
    """A required credential or setting is missing."""

    kind = "configuration"


class ProviderCallError(DemoWorkerError):
    """A vendor call failed in transport or returned a non-success status."""

    kind = "provider_call"

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        prefix = f"{provider} error {status_code}" if status_code else f"{provider} error"
        super().__init__(f"{prefix}: {message}")


class EmptyResponseError(ProviderCallError):
    """The vendor answered successfully but with no usable payload."""

    kind = "empty_response"

    def __init__(self, provider: str, message: str = "empty response"):
        super().__init__(provider, message)


class NoProviderAvailableError(DemoWorkerError):
    """Every configured text provider failed for a request."""

    kind = "no_provider"

    def __init__(self, attempts: dict[str, str]):
        self.attempts = attempts
        detail = "; ".join(f"{name}: {reason}" for name, reason in attempts.items())
        super().__init__(f"All text providers failed ({detail})")


class AvatarJobFailedError(DemoWorkerError):
    """The avatar provider reported the render job as failed."""

    kind = "avatar_failed"


class AvatarTimeoutError(DemoWorkerError, TimeoutError):
    """The avatar job did not finish within the polling budget."""

    kind = "timeout"


class StorageError(DemoWorkerError):
    kind = "storage"


class PersistenceError(DemoWorkerError):
    """A database read or write failed."""

    kind = "persistence"


class ProjectNotFoundError(DemoWorkerError):
    kind = "not_found"


class ProjectStateError(DemoWorkerError):
    """The project is in a state that does not allow the requested action."""

    kind = "invalid_state"


class SessionNotFoundError(DemoWorkerError):
    kind = "not_found"
