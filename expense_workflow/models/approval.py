"""
Module: expense_workflow.models.approval
Responsibility: ORM persistence for the approval ledger: one row per
    (report, approver) recording that approver's decision on the report.

Architecture position: Engine > Models.  May import from db/base.py only.

Invariants enforced:
    - Ledger status values are limited by ``ck_approval_records_valid_status``.
    - Routing uniqueness: UNIQUE(report_id, approver_id).  An approver is
      activated at most once per report, so a duplicate routing attempt
      fails at the database even if service checks were bypassed.
    - Covering index for the "awaiting my approval" query.

Failure modes:
    - IntegrityError on a duplicate (report_id, approver_id) row.

Audit relevance:
    ``comments`` holds the approval note or the rejection reason and
    ``action_at`` the decision time.  PENDING rows have no ``action_at``.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_workflow.db.base import Base, UUIDString

if TYPE_CHECKING:
    from expense_workflow.domain.report import ApprovalRecord
    from expense_workflow.models.report import ExpenseReportModel


class ApprovalRecordModel(Base):
    """Persistent approval ledger entry."""

    __tablename__ = "approval_records"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="ck_approval_records_valid_status",
        ),
        UniqueConstraint(
            "report_id", "approver_id",
            name="uq_approval_records_approver",
        ),
        Index("ix_approval_records_approver_status", "approver_id", "status"),
        Index("ix_approval_records_report_status", "report_id", "status"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expense_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    step_order: Mapped[int | None] = mapped_column(nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    action_at: Mapped[datetime | None] = mapped_column(nullable=True)

    report: Mapped["ExpenseReportModel"] = relationship(
        "ExpenseReportModel",
        back_populates="approvals",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRecord report={self.report_id} "
            f"approver={self.approver_id} status={self.status}>"
        )

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        from expense_workflow.domain.report import ApprovalRecord, LedgerStatus

        return ApprovalRecord(
            record_id=self.id,
            report_id=self.report_id,
            approver_id=self.approver_id,
            status=LedgerStatus(self.status),
            step_order=self.step_order,
            comments=self.comments,
            created_at=self.created_at,
            action_at=self.action_at,
        )
