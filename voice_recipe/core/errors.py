from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from voice_recipe.jobs.models import Job


class VoiceRecipeError(Exception):
    pass


class MissingCredentialsError(VoiceRecipeError):
    pass


class JobDriverError(VoiceRecipeError):
    """Failure of a submit/poll cycle. ``kind`` tags the failure for callers."""

    kind = "error"

    def __init__(self, message: str, *, job: Job | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.job = job


class TransportError(JobDriverError):
    kind = "transport_error"


class JobFailed(JobDriverError):
    kind = "failed"


class JobTimedOut(JobDriverError):
    kind = "timed_out"


class JobCancelled(JobDriverError):
    kind = "cancelled"


class MalformedOutput(ValueError):
    pass
