"""Pure domain layer: value objects and lifecycle rules, zero I/O."""

from expense_workflow.domain.actor import ActorContext, Employee, EmployeeRole
from expense_workflow.domain.clock import Clock, DeterministicClock, SystemClock
from expense_workflow.domain.report import (
    REPORT_TRANSITIONS,
    TERMINAL_REPORT_STATUSES,
    ApprovalOutcome,
    ApprovalRecord,
    ExpenseLine,
    ExpenseReport,
    LedgerStatus,
    PendingApproval,
    ReportStatus,
)
from expense_workflow.domain.workflow import (
    ApprovalMode,
    ApproverAssignment,
    CustomWorkflowRouting,
    ManagerFallbackRouting,
    Routing,
    WorkflowApprover,
    WorkflowDefinition,
)

__all__ = [
    "ActorContext",
    "ApprovalMode",
    "ApprovalOutcome",
    "ApprovalRecord",
    "ApproverAssignment",
    "Clock",
    "CustomWorkflowRouting",
    "DeterministicClock",
    "Employee",
    "EmployeeRole",
    "ExpenseLine",
    "ExpenseReport",
    "LedgerStatus",
    "ManagerFallbackRouting",
    "PendingApproval",
    "REPORT_TRANSITIONS",
    "ReportStatus",
    "Routing",
    "SystemClock",
    "TERMINAL_REPORT_STATUSES",
    "WorkflowApprover",
    "WorkflowDefinition",
]
