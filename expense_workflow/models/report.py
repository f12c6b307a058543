"""
Module: expense_workflow.models.report
Responsibility: ORM persistence for expense reports and their expense lines.
Architecture position: Engine > Models.  May import from db/base.py only.

Invariants enforced:
    - Status values are limited by ``ck_expense_reports_valid_status``.
      Transition rules live in ``domain.report.REPORT_TRANSITIONS`` and are
      checked by the services before every status write.
    - Expense line amounts are strictly positive
      (``ck_expense_lines_positive_amount``).

Failure modes:
    - IntegrityError on an unknown status or a non-positive amount that
      bypassed service validation.

Audit relevance:
    ``last_action_at`` / ``last_action_by_id`` record the most recent
    actor on the report; ``rejection_reason`` is set exactly once, on
    rejection.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_workflow.db.base import Base, UUIDString

if TYPE_CHECKING:
    from expense_workflow.domain.report import ExpenseLine, ExpenseReport
    from expense_workflow.models.approval import ApprovalRecordModel


class ExpenseReportModel(Base):
    """Persistent expense report.

    Contract:
        Created DRAFT by its owner.  Moved to SUBMITTED only by the routing
        resolver and to APPROVED / REJECTED only by the transition engine.
        APPROVED and REJECTED are terminal.
    """

    __tablename__ = "expense_reports"

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'REJECTED')",
            name="ck_expense_reports_valid_status",
        ),
        Index("ix_expense_reports_employee", "employee_id", "last_action_at"),
        Index("ix_expense_reports_company_status", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_action_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_action_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["ExpenseLineModel"]] = relationship(
        "ExpenseLineModel",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="[ExpenseLineModel.expense_date, ExpenseLineModel.created_at]",
        lazy="selectin",
    )

    approvals: Mapped[list["ApprovalRecordModel"]] = relationship(
        "ApprovalRecordModel",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="[ApprovalRecordModel.created_at, ApprovalRecordModel.step_order]",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ExpenseReport {self.id} {self.name!r} status={self.status}>"

    def to_dto(self) -> ExpenseReport:
        """Convert ORM model to frozen domain DTO, lines and ledger included."""
        from expense_workflow.domain.report import ExpenseReport, ReportStatus

        return ExpenseReport(
            report_id=self.id,
            company_id=self.company_id,
            employee_id=self.employee_id,
            name=self.name,
            status=ReportStatus(self.status),
            created_at=self.created_at,
            submitted_at=self.submitted_at,
            last_action_at=self.last_action_at,
            last_action_by_id=self.last_action_by_id,
            rejection_reason=self.rejection_reason,
            lines=tuple(line.to_dto() for line in self.lines),
            approvals=tuple(a.to_dto() for a in self.approvals),
        )


class ExpenseLineModel(Base):
    """A single expense, kept in its original currency."""

    __tablename__ = "expense_lines"

    __table_args__ = (
        CheckConstraint(
            "original_amount > 0",
            name="ck_expense_lines_positive_amount",
        ),
        Index("ix_expense_lines_report", "report_id"),
    )

    report_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("expense_reports.id", ondelete="CASCADE"),
        nullable=False,
    )
    merchant: Mapped[str] = mapped_column(String(255), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    original_amount: Mapped[Decimal] = mapped_column(nullable=False)
    original_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    report: Mapped["ExpenseReportModel"] = relationship(
        "ExpenseReportModel",
        back_populates="lines",
    )

    def __repr__(self) -> str:
        return (
            f"<ExpenseLine {self.id} {self.merchant!r} "
            f"{self.original_amount} {self.original_currency}>"
        )

    def to_dto(self) -> ExpenseLine:
        from expense_workflow.domain.report import ExpenseLine

        return ExpenseLine(
            line_id=self.id,
            report_id=self.report_id,
            merchant=self.merchant,
            expense_date=self.expense_date,
            original_amount=self.original_amount,
            original_currency=self.original_currency,
            category=self.category,
        )
