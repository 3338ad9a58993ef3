"""
Workflow error taxonomy.

Every error the follow-up engine raises derives from WorkflowError and
carries a stable machine-readable code plus the HTTP status the API layer
answers with. Errors are raised before any write (or inside a transaction
that is then rolled back), so no partial state is ever persisted.
"""


class WorkflowError(Exception):
    """Base class for follow-up workflow errors."""

    code = "workflow_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()


class TerminalLeadError(WorkflowError):
    """Lead is already won, lost or invalid (workflow ended)."""

    code = "terminal_lead"
    status_code = 409


class OutcomeNotAvailableError(WorkflowError):
    """Outcome is not selectable for the lead's current stage and history."""

    code = "outcome_not_available"
    status_code = 409


class ReasonRequiredError(WorkflowError):
    """Outcome requires a reason from its reason list."""

    code = "reason_required"
    status_code = 422


class ClientStatusRequiredError(WorkflowError):
    """Deal Lost requires an explicit answer to 'is the client still with us'."""

    code = "client_status_required"
    status_code = 422


class UnknownOutcome(WorkflowError):
    """Outcome tag is not part of the outcome catalog."""

    code = "unknown_outcome"
    status_code = 400


class OutcomeRequiredError(WorkflowError):
    """Follow-up task is a decision point; record an outcome to complete it."""

    code = "outcome_required"
    status_code = 409


class NotLeadOwnerError(WorkflowError):
    """Lead is locked to another agent."""

    code = "not_lead_owner"
    status_code = 403


class LeadNotFoundError(WorkflowError):
    """Lead not found."""

    code = "lead_not_found"
    status_code = 404


class TaskNotFoundError(WorkflowError):
    """Task not found."""

    code = "task_not_found"
    status_code = 404


class TaskNotOpenError(WorkflowError):
    """Task is already completed."""

    code = "task_not_open"
    status_code = 409


class LeadNotTerminalError(WorkflowError):
    """Only won, lost or invalid leads can be reopened."""

    code = "lead_not_terminal"
    status_code = 409


class InvalidTargetStageError(WorkflowError):
    """A lead can only be reopened into an active stage."""

    code = "invalid_target_stage"
    status_code = 422


class ConcurrentUpdateError(WorkflowError):
    """Lead changed in another session; reload and retry."""

    code = "concurrent_update"
    status_code = 409
