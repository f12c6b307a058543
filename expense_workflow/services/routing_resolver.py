"""
expense_workflow.services.routing_resolver -- Submission routing.

Responsibility:
    Decide who must approve a report when it is submitted, create their
    PENDING ledger entries and move the report to SUBMITTED.

Architecture position:
    Engine > Services.  Flush-only.  The "which approvers" decision is the
    pure ``engines.routing.initial_assignments``; this service only loads
    inputs and writes results.

Invariants enforced:
    - Only the owner may submit, and only from DRAFT.
    - Routing is ``CustomWorkflowRouting`` when a workflow is bound to the
      employee, otherwise ``ManagerFallbackRouting`` to the direct manager
      at step 1.  With neither, NoApproverAvailableError and no mutation.
    - Ledger entries and the status flip are written in the caller's
      transaction: all of them persist or none do.
    - A SUBMITTED report always has at least one ledger entry.

Failure modes:
    - ReportNotFoundError, ForbiddenError, InvalidReportStateError on
      precondition violations.
    - EmployeeNotFoundError when the owner is not in the company.
    - NoApproverAvailableError when there is no workflow and no manager.
"""

from __future__ import annotations

from uuid import UUID

from expense_workflow.domain.report import (
    ExpenseReport,
    LedgerStatus,
    ReportStatus,
    validate_report_transition,
)
from expense_workflow.domain.workflow import (
    CustomWorkflowRouting,
    ManagerFallbackRouting,
    Routing,
)
from expense_workflow.engines.routing import initial_assignments
from expense_workflow.exceptions import (
    EmployeeNotFoundError,
    ForbiddenError,
    NoApproverAvailableError,
)
from expense_workflow.logging_config import get_logger
from expense_workflow.models.approval import ApprovalRecordModel
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.selectors.workflow_selector import WorkflowSelector
from expense_workflow.services.base import BaseService

logger = get_logger("services.routing_resolver")


class RoutingResolver(BaseService):
    """Computes the initial approver set and submits reports."""

    def resolve(self, company_id: UUID, employee_id: UUID) -> Routing:
        """Routing for a report owned by ``employee_id`` in ``company_id``.

        Raises:
            EmployeeNotFoundError: The employee is not in the company.
            NoApproverAvailableError: No bound workflow and no manager.
        """
        employee = self.session.get(EmployeeModel, employee_id)
        if employee is None or employee.company_id != company_id:
            raise EmployeeNotFoundError(str(employee_id), str(company_id))

        workflow = WorkflowSelector(self.session).find_for_employee(company_id, employee_id)
        if workflow is not None and workflow.roster_size > 0:
            return CustomWorkflowRouting(workflow)

        if employee.manager_id is not None:
            return ManagerFallbackRouting(employee.manager_id)

        raise NoApproverAvailableError(str(employee_id))

    def submit(self, report_id: UUID, acting_employee_id: UUID) -> ExpenseReport:
        """Route a DRAFT report and mark it SUBMITTED."""
        report = self._lock_report(report_id)

        if report.employee_id != acting_employee_id:
            raise ForbiddenError(
                str(acting_employee_id), "ExpenseReport", str(report_id),
                "only the report owner may submit",
            )
        validate_report_transition(
            report_id, ReportStatus(report.status), ReportStatus.SUBMITTED, "submit",
        )

        routing = self.resolve(report.company_id, report.employee_id)
        assignments = initial_assignments(routing)

        now = self._clock.now()
        for assignment in assignments:
            report.approvals.append(
                ApprovalRecordModel(
                    approver_id=assignment.approver_id,
                    status=LedgerStatus.PENDING.value,
                    step_order=assignment.step_order,
                    created_at=now,
                )
            )
        report.status = ReportStatus.SUBMITTED.value
        report.submitted_at = now
        report.last_action_at = now
        self.session.flush()

        logger.info(
            "report_submitted",
            extra={
                "report_id": str(report_id),
                "routing": (
                    "workflow" if isinstance(routing, CustomWorkflowRouting)
                    else "manager_fallback"
                ),
                "mode": (
                    routing.workflow.mode.value
                    if isinstance(routing, CustomWorkflowRouting) else None
                ),
                "approver_ids": [str(a.approver_id) for a in assignments],
            },
        )
        return report.to_dto()
