"""Pure calculation engines (zero I/O)."""

from expense_workflow.engines.routing import (
    FALLBACK_STEP_ORDER,
    ApprovalEvaluation,
    approval_percentage,
    evaluate_after_approval,
    initial_assignments,
    next_sequential_approver,
    parallel_threshold_met,
)

__all__ = [
    "FALLBACK_STEP_ORDER",
    "ApprovalEvaluation",
    "approval_percentage",
    "evaluate_after_approval",
    "initial_assignments",
    "next_sequential_approver",
    "parallel_threshold_met",
]
