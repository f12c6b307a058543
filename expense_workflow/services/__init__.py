"""Services for the expense approval workflow (write side)."""

from expense_workflow.services.approval_engine import ApprovalWorkflowEngine
from expense_workflow.services.report_service import ReportService
from expense_workflow.services.routing_resolver import RoutingResolver
from expense_workflow.services.transition_engine import TransitionEngine
from expense_workflow.services.workflow_store import WorkflowStore

__all__ = [
    "ApprovalWorkflowEngine",
    "ReportService",
    "RoutingResolver",
    "TransitionEngine",
    "WorkflowStore",
]
