from enum import StrEnum


class TaskflowError(Exception):
    """Base exception for the Taskflow backend."""

    pass


class ValidationError(TaskflowError):
    """Raised when a request or rule specification is invalid.

    Nothing is persisted when this is raised.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class AuthorizationError(TaskflowError):
    """Raised when the acting user lacks the role an operation requires."""

    pass


class NotFoundError(TaskflowError):
    """Raised when a rule, project, task or notification does not exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class ActionFailure(StrEnum):
    """Reasons an automation action can fail."""

    INVALID_STATUS = "invalid_status"
    NOT_A_MEMBER = "not_a_member"
    NO_RECIPIENT = "no_recipient"
    TASK_MISSING = "task_missing"
    PROJECT_MISSING = "project_missing"
    PERSISTENCE_FAILURE = "persistence_failure"
    UNEXPECTED_ERROR = "unexpected_error"


class ActionError(TaskflowError):
    """Raised by the action executor; recorded per rule, never fatal to a firing."""

    def __init__(self, reason: ActionFailure, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class StoreError(TaskflowError):
    """Raised by store implementations when a write cannot be applied."""

    pass
