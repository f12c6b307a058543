"""
Expense report domain types (``expense_workflow.domain.report``).

Responsibility
--------------
The report lifecycle state machine, the approval ledger entry states, and
the frozen DTOs returned to callers.

Architecture position
---------------------
**Domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``REPORT_TRANSITIONS`` defines the only status writes:
  DRAFT -> SUBMITTED (submission), SUBMITTED -> APPROVED / REJECTED
  (transition engine).  A partial approval leaves the report SUBMITTED
  without a status write.  Terminal states have no outgoing edges.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from expense_workflow.exceptions import InvalidReportStateError


class ReportStatus(str, Enum):
    """Expense report lifecycle states."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


REPORT_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.DRAFT: frozenset({ReportStatus.SUBMITTED}),
    ReportStatus.SUBMITTED: frozenset({
        ReportStatus.APPROVED,
        ReportStatus.REJECTED,
    }),
    ReportStatus.APPROVED: frozenset(),
    ReportStatus.REJECTED: frozenset(),
}

TERMINAL_REPORT_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.APPROVED,
    ReportStatus.REJECTED,
})


class LedgerStatus(str, Enum):
    """State of one approver's ledger entry for one report."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def validate_report_transition(
    report_id: UUID,
    current: ReportStatus,
    target: ReportStatus,
    operation: str,
) -> None:
    """Raise ``InvalidReportStateError`` unless ``current -> target`` is legal."""
    if target not in REPORT_TRANSITIONS.get(current, frozenset()):
        raise InvalidReportStateError(str(report_id), current.value, operation)


# =========================================================================
# DTOs
# =========================================================================


@dataclass(frozen=True)
class ApprovalRecord:
    """One approver's decision record for one report. Immutable snapshot."""

    record_id: UUID
    report_id: UUID
    approver_id: UUID
    status: LedgerStatus
    step_order: int | None = None
    comments: str | None = None
    created_at: datetime | None = None
    action_at: datetime | None = None


@dataclass(frozen=True)
class ExpenseLine:
    """A single expense on a report, in its original currency."""

    line_id: UUID
    report_id: UUID
    merchant: str
    expense_date: date
    original_amount: Decimal
    original_currency: str
    category: str | None = None


@dataclass(frozen=True)
class ExpenseReport:
    """Immutable snapshot of an expense report and its ledger."""

    report_id: UUID
    company_id: UUID
    employee_id: UUID
    name: str
    status: ReportStatus
    created_at: datetime | None = None
    submitted_at: datetime | None = None
    last_action_at: datetime | None = None
    last_action_by_id: UUID | None = None
    rejection_reason: str | None = None
    lines: tuple[ExpenseLine, ...] = ()
    approvals: tuple[ApprovalRecord, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_REPORT_STATUSES

    @property
    def pending_approver_ids(self) -> frozenset[UUID]:
        return frozenset(
            a.approver_id for a in self.approvals if a.status == LedgerStatus.PENDING
        )


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of an approve action.

    ``approved`` is True only for the action that moved the report to
    APPROVED, so the caller can react without re-querying.
    """

    approved: bool
    report: ExpenseReport


@dataclass(frozen=True)
class PendingApproval:
    """A report awaiting a specific approver."""

    report_id: UUID
    report_name: str
    employee_id: UUID
    employee_name: str
    submitted_at: datetime | None
    step_order: int | None = None
