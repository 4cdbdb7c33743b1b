"""Exceptions raised by task pool operations."""


class TaskPoolError(Exception):
    """Base exception for task pool operations."""
    pass


class UnauthenticatedError(TaskPoolError):
    """No caller identity."""
    pass


class PermissionDeniedError(TaskPoolError):
    """Caller lacks the permission, or is not the actor the operation requires."""
    pass


class NotFoundError(TaskPoolError):
    """Entity does not exist."""
    pass


class TaskNotFoundError(NotFoundError):
    pass


class StepNotFoundError(NotFoundError):
    pass


class SuggestionNotFoundError(NotFoundError):
    pass


class ConflictError(TaskPoolError):
    """Precondition violated; state was left unchanged."""
    pass


class TaskNotAvailableError(ConflictError):
    """Task is not open, so it cannot be claimed."""
    pass


class InvalidInputError(TaskPoolError):
    """Malformed input, rejected before any mutation."""
    pass
