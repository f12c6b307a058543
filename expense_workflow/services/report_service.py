"""
expense_workflow.services.report_service -- Drafting expense reports.

Responsibility:
    Create DRAFT reports and attach expense lines to them while they are
    still drafts.

Architecture position:
    Engine > Services.  Flush-only.

Invariants enforced:
    - A report is created DRAFT with a non-blank name, for an employee of
      the same company.
    - Lines are added only while the report is DRAFT and only by its owner.
      Adding a line stamps ``last_action_at``.
    - Amounts are positive Decimals kept in their original currency; no
      conversion happens here.

Failure modes:
    - InvalidReportError on a blank name.
    - EmployeeNotFoundError when the owner is not in the company.
    - ForbiddenError when a non-owner adds a line.
    - InvalidReportStateError when the report is no longer DRAFT.
    - InvalidExpenseLineError on a bad merchant, date, amount or currency.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from expense_workflow.domain.report import ExpenseReport, ReportStatus
from expense_workflow.exceptions import (
    EmployeeNotFoundError,
    ForbiddenError,
    InvalidExpenseLineError,
    InvalidReportError,
    InvalidReportStateError,
)
from expense_workflow.logging_config import get_logger
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.models.report import ExpenseLineModel, ExpenseReportModel
from expense_workflow.services.base import BaseService

logger = get_logger("services.report_service")

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _parse_amount(value: object) -> Decimal:
    if isinstance(value, (bool, float)):
        raise InvalidExpenseLineError(
            "original_amount", f"must be a Decimal, int or numeric string, got {type(value).__name__}",
        )
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidExpenseLineError(
            "original_amount", f"not a number: {value!r}",
        ) from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidExpenseLineError("original_amount", "must be greater than zero")
    return amount


class ReportService(BaseService):
    """Creates reports and adds expense lines to drafts."""

    def create_report(self, company_id: UUID, employee_id: UUID, name: str) -> ExpenseReport:
        if name is None or not name.strip():
            raise InvalidReportError("name is required")

        employee = self.session.get(EmployeeModel, employee_id)
        if employee is None or employee.company_id != company_id:
            raise EmployeeNotFoundError(str(employee_id), str(company_id))

        now = self._clock.now()
        report = ExpenseReportModel(
            company_id=company_id,
            employee_id=employee_id,
            name=name.strip(),
            status=ReportStatus.DRAFT.value,
            created_at=now,
            last_action_at=now,
            lines=[],
            approvals=[],
        )
        self.session.add(report)
        self.session.flush()

        logger.info(
            "report_created",
            extra={"report_id": str(report.id), "employee_id": str(employee_id)},
        )
        return report.to_dto()

    def add_expense_line(
        self,
        report_id: UUID,
        acting_employee_id: UUID,
        merchant: str,
        expense_date: date,
        original_amount: Decimal | int | str,
        original_currency: str,
        category: str | None = None,
    ) -> ExpenseReport:
        """Attach one expense to a DRAFT report owned by the caller."""
        report = self._lock_report(report_id)

        if report.employee_id != acting_employee_id:
            raise ForbiddenError(
                str(acting_employee_id), "ExpenseReport", str(report_id),
                "only the report owner may add expense lines",
            )
        if report.status != ReportStatus.DRAFT.value:
            raise InvalidReportStateError(str(report_id), report.status, "add_expense_line")

        if merchant is None or not merchant.strip():
            raise InvalidExpenseLineError("merchant", "is required")
        if not isinstance(expense_date, date) or isinstance(expense_date, datetime):
            raise InvalidExpenseLineError("expense_date", "must be a date")
        amount = _parse_amount(original_amount)
        currency = (original_currency or "").strip().upper()
        if not _CURRENCY_RE.match(currency):
            raise InvalidExpenseLineError(
                "original_currency", f"must be a 3-letter code, got {original_currency!r}",
            )

        now = self._clock.now()
        report.lines.append(
            ExpenseLineModel(
                merchant=merchant.strip(),
                expense_date=expense_date,
                original_amount=amount,
                original_currency=currency,
                category=category.strip() if category and category.strip() else None,
                created_at=now,
            )
        )
        report.last_action_at = now
        self.session.flush()

        logger.info(
            "expense_line_added",
            extra={
                "report_id": str(report_id),
                "amount": str(amount),
                "currency": currency,
            },
        )
        return report.to_dto()
