"""ORM models for the expense approval workflow."""

from expense_workflow.models.approval import ApprovalRecordModel
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.models.report import ExpenseLineModel, ExpenseReportModel
from expense_workflow.models.workflow import (
    WorkflowApproverModel,
    WorkflowDefinitionModel,
)

__all__ = [
    "ApprovalRecordModel",
    "EmployeeModel",
    "ExpenseLineModel",
    "ExpenseReportModel",
    "WorkflowApproverModel",
    "WorkflowDefinitionModel",
]
