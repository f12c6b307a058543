"""
Module: expense_workflow.selectors.report_selector
Responsibility: Read access to expense reports with their lines and ledger.
Architecture position: Engine > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from expense_workflow.domain.report import ExpenseReport
from expense_workflow.exceptions import ReportNotFoundError
from expense_workflow.models.report import ExpenseReportModel
from expense_workflow.selectors.base import BaseSelector


class ReportSelector(BaseSelector[ExpenseReportModel]):
    """Selector for expense reports."""

    def get(self, report_id: UUID) -> ExpenseReport:
        """Fetch one report snapshot (lines and ledger entries included).

        Raises:
            ReportNotFoundError: If no report has this id.
        """
        model = self.session.get(ExpenseReportModel, report_id)
        if model is None:
            raise ReportNotFoundError(str(report_id))
        return model.to_dto()

    def list_for_employee(self, employee_id: UUID) -> list[ExpenseReport]:
        """Reports owned by ``employee_id``, most recently touched first.

        Reports never touched after creation sort by ``created_at``.
        """
        models = self.session.scalars(
            select(ExpenseReportModel)
            .where(ExpenseReportModel.employee_id == employee_id)
            .order_by(
                ExpenseReportModel.last_action_at.desc().nulls_last(),
                ExpenseReportModel.created_at.desc(),
                ExpenseReportModel.id,
            )
        ).all()
        return [m.to_dto() for m in models]
