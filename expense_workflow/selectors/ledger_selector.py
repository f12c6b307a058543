"""
Module: expense_workflow.selectors.ledger_selector
Responsibility: Queries over the approval ledger: entries of a report, the
    PENDING entry an approver acts on, approval counts for parallel quorum
    and the "awaiting my approval" list.
Architecture position: Engine > Selectors.

Invariants enforced:
    - ``count_approved`` counts every APPROVED entry of the report, whoever
      holds it.  The quorum denominator is the roster size of the current
      workflow, not the ledger size.
    - ``pending_for_approver`` only lists reports that are still SUBMITTED;
      PENDING rows left behind on a rejected or approved report are moot.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from expense_workflow.domain.report import (
    ApprovalRecord,
    LedgerStatus,
    PendingApproval,
    ReportStatus,
)
from expense_workflow.models.approval import ApprovalRecordModel
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.models.report import ExpenseReportModel
from expense_workflow.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[ApprovalRecordModel]):
    """Selector for approval ledger entries."""

    def entries_for_report(self, report_id: UUID) -> list[ApprovalRecord]:
        """All ledger entries of a report in routing order."""
        models = self.session.scalars(
            select(ApprovalRecordModel)
            .where(ApprovalRecordModel.report_id == report_id)
            .order_by(ApprovalRecordModel.created_at, ApprovalRecordModel.step_order)
        ).all()
        return [m.to_dto() for m in models]

    def find_pending(self, report_id: UUID, approver_id: UUID) -> ApprovalRecord | None:
        """The PENDING entry for ``(report_id, approver_id)``, or None."""
        model = self._pending_model(report_id, approver_id)
        return model.to_dto() if model is not None else None

    def count_approved(self, report_id: UUID) -> int:
        """Number of APPROVED entries on the report."""
        return self.session.scalar(
            select(func.count(ApprovalRecordModel.id)).where(
                ApprovalRecordModel.report_id == report_id,
                ApprovalRecordModel.status == LedgerStatus.APPROVED.value,
            )
        ) or 0

    def routed_approver_ids(self, report_id: UUID) -> frozenset[UUID]:
        """Approvers holding any ledger entry on the report."""
        return frozenset(
            self.session.scalars(
                select(ApprovalRecordModel.approver_id).where(
                    ApprovalRecordModel.report_id == report_id,
                )
            ).all()
        )

    def pending_for_approver(self, approver_id: UUID) -> list[PendingApproval]:
        """Submitted reports awaiting ``approver_id``, oldest submission first."""
        rows = self.session.execute(
            select(
                ExpenseReportModel.id,
                ExpenseReportModel.name,
                ExpenseReportModel.employee_id,
                EmployeeModel.full_name,
                ExpenseReportModel.submitted_at,
                ApprovalRecordModel.step_order,
            )
            .join(ExpenseReportModel, ApprovalRecordModel.report_id == ExpenseReportModel.id)
            .join(EmployeeModel, ExpenseReportModel.employee_id == EmployeeModel.id)
            .where(
                ApprovalRecordModel.approver_id == approver_id,
                ApprovalRecordModel.status == LedgerStatus.PENDING.value,
                ExpenseReportModel.status == ReportStatus.SUBMITTED.value,
            )
            .order_by(ExpenseReportModel.submitted_at, ExpenseReportModel.id)
        ).all()
        return [
            PendingApproval(
                report_id=row[0],
                report_name=row[1],
                employee_id=row[2],
                employee_name=row[3],
                submitted_at=row[4],
                step_order=row[5],
            )
            for row in rows
        ]

    def _pending_model(self, report_id: UUID, approver_id: UUID) -> ApprovalRecordModel | None:
        return self.session.scalars(
            select(ApprovalRecordModel).where(
                ApprovalRecordModel.report_id == report_id,
                ApprovalRecordModel.approver_id == approver_id,
                ApprovalRecordModel.status == LedgerStatus.PENDING.value,
            )
        ).one_or_none()
