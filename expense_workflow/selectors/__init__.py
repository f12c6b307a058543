"""Read-only query selectors returning frozen DTOs."""

from expense_workflow.selectors.base import BaseSelector
from expense_workflow.selectors.ledger_selector import LedgerSelector
from expense_workflow.selectors.report_selector import ReportSelector
from expense_workflow.selectors.workflow_selector import WorkflowSelector

__all__ = [
    "BaseSelector",
    "LedgerSelector",
    "ReportSelector",
    "WorkflowSelector",
]
