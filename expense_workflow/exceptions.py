"""
Typed Exception Hierarchy for the Expense Approval Workflow Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (the HTTP layer, batch jobs, tests) must react to
failures precisely.  A lost approval race is an expected, retriable no-op;
a missing manager is a configuration problem the admin must fix; a
persistence failure is an internal error.  Parsing message strings to tell
these apart is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        engine.approve(actor, report_id)
    except InvalidReportStateError as e:
        # Another approver closed the report first -- nothing to do.
        log.info("approval_lost_race", extra={"status": e.current_status})
    except NoPendingApprovalError as e:
        api_response(status=403, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowEngineError (base)
    |
    +-- NotFoundError
    |   +-- ReportNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- WorkflowNotFoundError
    |
    +-- ForbiddenError
    |
    +-- InvalidStateError
    |   +-- InvalidReportStateError
    |
    +-- NoPendingApprovalError
    |
    +-- NoApproverAvailableError
    |
    +-- InvalidArgumentError
    |   +-- MissingRejectionReasonError
    |   +-- InvalidReportError
    |   +-- InvalidExpenseLineError
    |   +-- InvalidWorkflowDefinitionError
    |   +-- DuplicateWorkflowBindingError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category         | Code                        | When Raised
-----------------|-----------------------------|-----------------------------------------
NotFound         | REPORT_NOT_FOUND            | Report ID doesn't exist
                 | EMPLOYEE_NOT_FOUND          | Employee ID doesn't exist in the company
                 | WORKFLOW_NOT_FOUND          | Workflow ID doesn't exist
-----------------|-----------------------------|-----------------------------------------
Forbidden        | FORBIDDEN                   | Actor does not own / cannot see entity
-----------------|-----------------------------|-----------------------------------------
InvalidState     | INVALID_REPORT_STATE        | Operation illegal for report status
                 |                             | (includes lost approve/reject races)
-----------------|-----------------------------|-----------------------------------------
Routing          | NO_PENDING_APPROVAL         | Actor is not a current gating approver
                 | NO_APPROVER_AVAILABLE       | No workflow bound and no manager
-----------------|-----------------------------|-----------------------------------------
InvalidArgument  | MISSING_REJECTION_REASON    | reject() called with blank reason
                 | INVALID_REPORT              | Blank report name
                 | INVALID_EXPENSE_LINE        | Bad merchant / amount / currency
                 | INVALID_WORKFLOW_DEFINITION | Bad mode / roster / percentage
                 | DUPLICATE_WORKFLOW_BINDING  | Employee already bound to a workflow
-----------------|-----------------------------|-----------------------------------------
Internal         | PERSISTENCE_ERROR           | Unexpected database failure

===============================================================================
"""

from __future__ import annotations


class WorkflowEngineError(Exception):
    """
    Base exception for all workflow engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_ENGINE_ERROR"


# Not-found exceptions


class NotFoundError(WorkflowEngineError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class ReportNotFoundError(NotFoundError):
    """Expense report with given ID was not found."""

    code: str = "REPORT_NOT_FOUND"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Expense report not found: {report_id}")


class EmployeeNotFoundError(NotFoundError):
    """Employee with given ID was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str, company_id: str | None = None):
        self.employee_id = employee_id
        self.company_id = company_id
        scope = f" in company {company_id}" if company_id else ""
        super().__init__(f"Employee not found: {employee_id}{scope}")


class WorkflowNotFoundError(NotFoundError):
    """Workflow definition with given ID was not found."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


# Access


class ForbiddenError(WorkflowEngineError):
    """Actor is not allowed to act on the entity."""

    code: str = "FORBIDDEN"

    def __init__(self, actor_id: str, entity_type: str, entity_id: str, reason: str):
        self.actor_id = actor_id
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not act on {entity_type} {entity_id}: {reason}"
        )


# State


class InvalidStateError(WorkflowEngineError):
    """Base exception for operations illegal in the current state."""

    code: str = "INVALID_STATE"


class InvalidReportStateError(InvalidStateError):
    """Operation is not valid for the report's current status.

    Also raised to the loser of an approve/reject race: the report was
    already moved to a terminal status by a concurrent action.
    """

    code: str = "INVALID_REPORT_STATE"

    def __init__(self, report_id: str, current_status: str, operation: str):
        self.report_id = report_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} report {report_id}: status is {current_status}"
        )


# Routing


class NoPendingApprovalError(WorkflowEngineError):
    """The actor holds no PENDING ledger entry for the report."""

    code: str = "NO_PENDING_APPROVAL"

    def __init__(self, report_id: str, approver_id: str):
        self.report_id = report_id
        self.approver_id = approver_id
        super().__init__(
            f"No pending approval for approver {approver_id} on report {report_id}"
        )


class NoApproverAvailableError(WorkflowEngineError):
    """No workflow is bound to the employee and no manager is configured."""

    code: str = "NO_APPROVER_AVAILABLE"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(
            f"No approval workflow or manager found for employee {employee_id}"
        )


# Invalid arguments


class InvalidArgumentError(WorkflowEngineError):
    """Base exception for rejected caller input."""

    code: str = "INVALID_ARGUMENT"


class MissingRejectionReasonError(InvalidArgumentError):
    """A rejection was attempted without a reason."""

    code: str = "MISSING_REJECTION_REASON"

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"A reason is required to reject report {report_id}")


class InvalidReportError(InvalidArgumentError):
    """Report attributes are invalid."""

    code: str = "INVALID_REPORT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid expense report: {reason}")


class InvalidExpenseLineError(InvalidArgumentError):
    """Expense line attributes are invalid."""

    code: str = "INVALID_EXPENSE_LINE"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid expense line field '{field}': {reason}")


class InvalidWorkflowDefinitionError(InvalidArgumentError):
    """Workflow definition violates a structural rule."""

    code: str = "INVALID_WORKFLOW_DEFINITION"

    def __init__(self, reason: str, workflow_name: str | None = None):
        self.reason = reason
        self.workflow_name = workflow_name
        label = f" '{workflow_name}'" if workflow_name else ""
        super().__init__(f"Invalid workflow{label}: {reason}")


class DuplicateWorkflowBindingError(InvalidArgumentError):
    """The employee is already bound to another workflow."""

    code: str = "DUPLICATE_WORKFLOW_BINDING"

    def __init__(self, employee_id: str, existing_workflow_id: str | None = None):
        self.employee_id = employee_id
        self.existing_workflow_id = existing_workflow_id
        super().__init__(
            f"Employee {employee_id} is already assigned to another workflow"
        )


# Internal


class PersistenceError(WorkflowEngineError):
    """Unexpected database failure; the unit of work was rolled back."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")
