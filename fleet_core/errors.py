"""Error kinds raised by the job core."""

from __future__ import annotations

from typing import Any


class JobError(ValueError):
    """Base class for recoverable job-core failures."""


class ValidationError(JobError):
    """Raised when construction input is malformed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidTransitionError(JobError):
    """Raised for backward, skip-ahead, or post-terminal status changes."""

    def __init__(self, current: Any, target: Any, reason: str | None = None) -> None:
        self.current = current
        self.target = target
        detail = reason or "transition not allowed"
        super().__init__(f"Cannot move job from {_label(current)} to {_label(target)}: {detail}")


class PreconditionError(JobError):
    """Raised when a gated action is not currently available for a job."""

    def __init__(self, action: Any, job_id: str | None = None) -> None:
        self.action = action
        self.job_id = job_id
        name = getattr(action, "value", action)
        suffix = f" for job {job_id}" if job_id else ""
        super().__init__(f"Action {name!s} is not available{suffix}")


def _label(status: Any) -> str:
    return str(getattr(status, "value", status))


__all__ = ["JobError", "ValidationError", "InvalidTransitionError", "PreconditionError"]
