"""Exception types shared across the episode generation pipeline.

Collaborators raise these classified errors so that the retry executor can
decide retryability from the error type alone, and so that callers can tell
a transient poll failure apart from a terminal job failure.
"""

from typing import Optional


class NewscastError(Exception):
    """Base class for all newscast errors."""


class TransientError(NewscastError):
    """A failure that may succeed if attempted again (network, timeout, 5xx)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class CollaboratorError(NewscastError):
    """A non-transient failure reported by an external collaborator.

    Covers quota, authentication and other 4xx-style errors.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ValidationError(NewscastError):
    """Invalid input or output. Never retried."""


class EpisodeNotFoundError(NewscastError, LookupError):
    """No episode exists with the requested identifier."""


class JobNotFoundError(NewscastError, LookupError):
    """No job handle is registered for the requested episode."""


class JobSessionExpiredError(NewscastError):
    """The remote system no longer knows the job (expired or unknown session)."""


class PollTransportError(TransientError):
    """A poll attempt could not reach the remote system.

    The job itself is unaffected; the caller may poll again later.
    """


class DeadlineExceededError(NewscastError):
    """An overall deadline imposed on a pipeline run elapsed."""


class WorkflowStepError(NewscastError):
    """A workflow step failed after exhausting its retries.

    Attributes:
        step_name: Name of the step that failed.
        cause: The underlying exception raised by the step.
    """

    def __init__(self, step_name: str, cause: BaseException):
        super().__init__(f"Workflow failed at step {step_name}: {cause}")
        self.step_name = step_name
        self.cause = cause
