"""
BaseService -- abstract base for all workflow services.

Responsibility:
    Common constructor and session-handling contract for every service
    that writes.  Services receive a SQLAlchemy ``Session`` and persist
    with ``session.flush()``, never ``session.commit()``.

Architecture position:
    Engine > Services -- imperative shell.  The ApprovalWorkflowEngine
    facade (or a test harness) owns commit and rollback.

Invariants enforced:
    - Flush-only: services never commit or roll back, so a multi-step
      transition is atomic within the caller's unit of work.
    - Every state-changing action on a report starts by locking the report
      row (``SELECT ... FOR UPDATE`` with ``populate_existing``), which
      serializes read-decide-write per report.

Failure modes:
    - ReportNotFoundError from ``_lock_report`` when the row is missing.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from expense_workflow.domain.clock import Clock, SystemClock
from expense_workflow.exceptions import ReportNotFoundError
from expense_workflow.models.report import ExpenseReportModel


class BaseService(ABC):
    """Base for services: caller-owned session, injectable clock."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _lock_report(self, report_id: UUID) -> ExpenseReportModel:
        """Load the report row under a write lock, refreshing cached state.

        ``populate_existing`` overwrites anything already in the identity
        map, so decisions are taken on the row as it is after the lock was
        granted.
        """
        report = self.session.execute(
            select(ExpenseReportModel)
            .where(ExpenseReportModel.id == report_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if report is None:
            raise ReportNotFoundError(str(report_id))
        return report
