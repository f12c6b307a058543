"""
ApprovalWorkflowEngine -- unit-of-work facade over the workflow services.

Responsibility:
    Public entry point for the transport layer.  Each verb opens its own
    session, runs the flush-only services inside it, commits on success
    and rolls back on any exception.

Architecture position:
    Engine > Services -- the only component that owns transaction
    boundaries.  Callers hand in a verified ``ActorContext``; identity and
    role checks happen before this layer.

Invariants enforced:
    - One unit of work per verb: a multi-step transition (ledger writes
      plus status flip) persists completely or not at all.
    - Every verb runs inside ``LogContext.bind`` with a fresh correlation
      id, the actor, the company and (where known) the report.
    - An actor may only touch reports and workflows of their own company.
    - Domain errors propagate unchanged.  Unexpected ``SQLAlchemyError``s
      are wrapped in ``PersistenceError``.

Failure modes:
    - ForbiddenError on cross-company access.
    - Every typed error of the underlying services.
    - PersistenceError on database failures.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Generator, Iterable
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from expense_workflow.db.engine import session_scope
from expense_workflow.domain.actor import ActorContext
from expense_workflow.domain.clock import Clock, SystemClock
from expense_workflow.domain.report import (
    ApprovalOutcome,
    ExpenseReport,
    PendingApproval,
)
from expense_workflow.domain.workflow import (
    ApprovalMode,
    WorkflowApprover,
    WorkflowDefinition,
)
from expense_workflow.exceptions import (
    EmployeeNotFoundError,
    ForbiddenError,
    MissingRejectionReasonError,
    PersistenceError,
    ReportNotFoundError,
    WorkflowEngineError,
    WorkflowNotFoundError,
)
from expense_workflow.logging_config import LogContext, get_logger
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.models.report import ExpenseReportModel
from expense_workflow.models.workflow import WorkflowDefinitionModel
from expense_workflow.selectors.ledger_selector import LedgerSelector
from expense_workflow.selectors.report_selector import ReportSelector
from expense_workflow.selectors.workflow_selector import WorkflowSelector
from expense_workflow.services.report_service import ReportService
from expense_workflow.services.routing_resolver import RoutingResolver
from expense_workflow.services.transition_engine import TransitionEngine
from expense_workflow.services.workflow_store import WorkflowStore

logger = get_logger("services.approval_engine")


class ApprovalWorkflowEngine:
    """Unit-of-work facade: one session and one transaction per call."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    # -----------------------------------------------------------------
    # Report drafting
    # -----------------------------------------------------------------

    def create_report(self, actor: ActorContext, name: str) -> ExpenseReport:
        with self._unit_of_work(actor, "create_report") as session:
            return ReportService(session, self._clock).create_report(
                actor.company_id, actor.actor_id, name,
            )

    def add_expense_line(
        self,
        actor: ActorContext,
        report_id: UUID,
        merchant: str,
        expense_date: date,
        original_amount: Decimal | int | str,
        original_currency: str,
        category: str | None = None,
    ) -> ExpenseReport:
        with self._unit_of_work(actor, "add_expense_line", report_id) as session:
            self._check_report_company(session, actor, report_id)
            return ReportService(session, self._clock).add_expense_line(
                report_id,
                actor.actor_id,
                merchant,
                expense_date,
                original_amount,
                original_currency,
                category,
            )

    # -----------------------------------------------------------------
    # Routing and transitions
    # -----------------------------------------------------------------

    def submit(self, actor: ActorContext, report_id: UUID) -> ExpenseReport:
        """Submit a DRAFT report owned by the actor."""
        with self._unit_of_work(actor, "submit", report_id) as session:
            self._check_report_company(session, actor, report_id)
            return RoutingResolver(session, self._clock).submit(report_id, actor.actor_id)

    def approve(
        self,
        actor: ActorContext,
        report_id: UUID,
        comments: str | None = None,
    ) -> ApprovalOutcome:
        """Approve as the actor; ``approved`` tells whether this finished the report."""
        with self._unit_of_work(actor, "approve", report_id) as session:
            self._check_report_company(session, actor, report_id)
            return TransitionEngine(session, self._clock).approve(
                report_id, actor.actor_id, comments,
            )

    def reject(self, actor: ActorContext, report_id: UUID, reason: str) -> None:
        """Reject as the actor.  ``reason`` is mandatory."""
        if reason is None or not reason.strip():
            raise MissingRejectionReasonError(str(report_id))
        with self._unit_of_work(actor, "reject", report_id) as session:
            self._check_report_company(session, actor, report_id)
            TransitionEngine(session, self._clock).reject(report_id, actor.actor_id, reason)

    # -----------------------------------------------------------------
    # Workflow administration
    # -----------------------------------------------------------------

    def create_workflow(
        self,
        actor: ActorContext,
        name: str,
        mode: ApprovalMode | str,
        approvers: Iterable[WorkflowApprover],
        min_approval_percentage: Decimal | int | str | None = None,
        bound_employee_id: UUID | None = None,
    ) -> WorkflowDefinition:
        approvers = tuple(approvers)
        with self._unit_of_work(actor, "create_workflow") as session:
            return WorkflowStore(session, self._clock).create_workflow(
                actor.company_id,
                name,
                mode,
                approvers,
                min_approval_percentage=min_approval_percentage,
                bound_employee_id=bound_employee_id,
                actor_id=actor.actor_id,
            )

    def replace_approvers(
        self,
        actor: ActorContext,
        workflow_id: UUID,
        approvers: Iterable[WorkflowApprover],
    ) -> WorkflowDefinition:
        approvers = tuple(approvers)
        with self._unit_of_work(actor, "replace_approvers") as session:
            self._check_workflow_company(session, actor, workflow_id)
            return WorkflowStore(session, self._clock).replace_approvers(workflow_id, approvers)

    def bind_workflow(
        self,
        actor: ActorContext,
        workflow_id: UUID,
        employee_id: UUID | None,
    ) -> WorkflowDefinition:
        with self._unit_of_work(actor, "bind_workflow") as session:
            self._check_workflow_company(session, actor, workflow_id)
            return WorkflowStore(session, self._clock).bind_employee(workflow_id, employee_id)

    def delete_workflow(self, actor: ActorContext, workflow_id: UUID) -> None:
        with self._unit_of_work(actor, "delete_workflow") as session:
            self._check_workflow_company(session, actor, workflow_id)
            WorkflowStore(session, self._clock).delete_workflow(workflow_id)

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def get_report(self, actor: ActorContext, report_id: UUID) -> ExpenseReport:
        with self._unit_of_work(actor, "get_report", report_id) as session:
            self._check_report_company(session, actor, report_id)
            return ReportSelector(session).get(report_id)

    def list_reports(
        self,
        actor: ActorContext,
        employee_id: UUID | None = None,
    ) -> list[ExpenseReport]:
        """Reports of ``employee_id`` (default: the actor), most recent activity first."""
        owner_id = employee_id or actor.actor_id
        with self._unit_of_work(actor, "list_reports") as session:
            employee = session.get(EmployeeModel, owner_id)
            if employee is None:
                raise EmployeeNotFoundError(str(owner_id), str(actor.company_id))
            if employee.company_id != actor.company_id:
                raise ForbiddenError(
                    str(actor.actor_id), "Employee", str(owner_id),
                    "employee belongs to another company",
                )
            return ReportSelector(session).list_for_employee(owner_id)

    def pending_approvals(self, actor: ActorContext) -> list[PendingApproval]:
        """Submitted reports waiting for the actor's decision."""
        with self._unit_of_work(actor, "pending_approvals") as session:
            return LedgerSelector(session).pending_for_approver(actor.actor_id)

    def list_workflows(self, actor: ActorContext) -> list[WorkflowDefinition]:
        with self._unit_of_work(actor, "list_workflows") as session:
            return WorkflowSelector(session).list_for_company(actor.company_id)

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    @contextmanager
    def _unit_of_work(
        self,
        actor: ActorContext,
        operation: str,
        report_id: UUID | None = None,
    ) -> Generator[Session, None, None]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            company_id=str(actor.company_id),
            report_id=str(report_id) if report_id else None,
        ):
            t0 = time.monotonic()
            try:
                with session_scope(self._session_factory) as session:
                    yield session
            except WorkflowEngineError as exc:
                logger.warning(
                    "operation_refused",
                    extra={"operation": operation, "error_code": exc.code},
                )
                raise
            except SQLAlchemyError as exc:
                logger.error(
                    "operation_failed",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise PersistenceError(operation, str(exc)) from exc

            logger.debug(
                "operation_completed",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )

    @staticmethod
    def _check_report_company(
        session: Session, actor: ActorContext, report_id: UUID,
    ) -> None:
        report = session.get(ExpenseReportModel, report_id)
        if report is None:
            raise ReportNotFoundError(str(report_id))
        if report.company_id != actor.company_id:
            raise ForbiddenError(
                str(actor.actor_id), "ExpenseReport", str(report_id),
                "report belongs to another company",
            )

    @staticmethod
    def _check_workflow_company(
        session: Session, actor: ActorContext, workflow_id: UUID,
    ) -> None:
        workflow = session.get(WorkflowDefinitionModel, workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(str(workflow_id))
        if workflow.company_id != actor.company_id:
            raise ForbiddenError(
                str(actor.actor_id), "WorkflowDefinition", str(workflow_id),
                "workflow belongs to another company",
            )
