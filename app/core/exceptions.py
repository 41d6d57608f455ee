# app/core/exceptions.py

from fastapi import status


class WorkflowError(Exception):
    """
    Base for every error the workflow engine raises.
    All of them are recoverable: the caller decides what to show the user.
    """

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(WorkflowError):
    """Actor lacks the permission or ownership the transition requires."""
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransition(WorkflowError):
    """Current status does not permit the requested operation."""
    status_code = status.HTTP_409_CONFLICT


class MissingReason(WorkflowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(WorkflowError):
    """Lost an optimistic-concurrency race, or a uniqueness rule on save."""
    status_code = status.HTTP_409_CONFLICT


class Unavailable(WorkflowError):
    """
    Repository outage or timeout.

    retryable: safe to simply try again (reads).
    outcome_unknown: a write may or may not have landed; re-fetch the
    subject and redo the read-modify-write instead of retrying the save.
    """
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, retryable: bool = False, outcome_unknown: bool = False):
        super().__init__(message)
        self.retryable = retryable
        self.outcome_unknown = outcome_unknown
