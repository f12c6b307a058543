"""
expense_workflow.services.transition_engine -- Approval and rejection.

Responsibility:
    Apply one approver's decision to a submitted report: update that
    approver's ledger entry, activate the next sequential approver or
    evaluate the parallel quorum, and move the report to a terminal state
    when the decision completes it.

Architecture position:
    Engine > Services.  Flush-only.  The decision logic is the pure
    ``engines.routing.evaluate_after_approval``.

Invariants enforced:
    - The report row is locked before the ledger is read, so two decisions
      on the same report never interleave their read-decide-write.
    - Only an approver with a PENDING entry may act.  If the entry exists
      but the report is REJECTED, or a rejection finds the report already
      terminal, InvalidReportStateError and nothing is written.
    - An approval on a report that a concurrent approval already moved to
      APPROVED is still recorded in the ledger, with ``approved=False`` and
      no second status write.  No approval is lost.
    - The workflow is re-resolved at approval time: edits to the owner's
      workflow apply to in-flight reports from their next approval on.
    - Any single rejection is final, whatever the mode and however many
      approvals are outstanding.  Other PENDING entries are left as they
      are.
    - Report status writes go through ``validate_report_transition``.

Failure modes:
    - MissingRejectionReasonError on a blank reason (before any I/O).
    - ReportNotFoundError, NoPendingApprovalError, InvalidReportStateError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from expense_workflow.domain.report import (
    ApprovalOutcome,
    LedgerStatus,
    ReportStatus,
    validate_report_transition,
)
from expense_workflow.engines.routing import evaluate_after_approval
from expense_workflow.exceptions import (
    InvalidReportStateError,
    MissingRejectionReasonError,
    NoPendingApprovalError,
)
from expense_workflow.logging_config import get_logger
from expense_workflow.models.approval import ApprovalRecordModel
from expense_workflow.models.report import ExpenseReportModel
from expense_workflow.selectors.ledger_selector import LedgerSelector
from expense_workflow.selectors.workflow_selector import WorkflowSelector
from expense_workflow.services.base import BaseService

logger = get_logger("services.transition_engine")


class TransitionEngine(BaseService):
    """Records approvals and rejections on submitted reports."""

    def approve(
        self,
        report_id: UUID,
        approver_id: UUID,
        comments: str | None = None,
    ) -> ApprovalOutcome:
        """Approve on behalf of ``approver_id``.

        Returns:
            ApprovalOutcome whose ``approved`` is True only when this action
            moved the report to APPROVED.
        """
        report, entry = self._load_actionable(
            report_id, approver_id, "approve", allow_approved=True,
        )

        now = self._clock.now()
        entry.status = LedgerStatus.APPROVED.value
        entry.comments = comments
        entry.action_at = now
        self.session.flush()

        if report.status == ReportStatus.APPROVED.value:
            # Quorum was reached by a concurrent approval; record this one only.
            logger.info(
                "late_approval_recorded",
                extra={"report_id": str(report_id), "approver_id": str(approver_id)},
            )
            return ApprovalOutcome(approved=False, report=report.to_dto())

        ledger = LedgerSelector(self.session)
        workflow = WorkflowSelector(self.session).find_for_employee(
            report.company_id, report.employee_id,
        )
        evaluation = evaluate_after_approval(
            workflow,
            approved_step=entry.step_order,
            approved_count=ledger.count_approved(report.id),
            already_routed=ledger.routed_approver_ids(report.id),
        )

        logger.info(
            "approval_recorded",
            extra={
                "report_id": str(report_id),
                "approver_id": str(approver_id),
                "step_order": entry.step_order,
                "mode": workflow.mode.value if workflow else "manager_fallback",
                "decision_reason": evaluation.reason,
            },
        )

        if evaluation.next_approver is not None:
            nxt = evaluation.next_approver
            report.approvals.append(
                ApprovalRecordModel(
                    approver_id=nxt.approver_id,
                    status=LedgerStatus.PENDING.value,
                    step_order=nxt.step_order,
                    created_at=now,
                )
            )
            self.session.flush()
            logger.info(
                "approver_activated",
                extra={
                    "report_id": str(report_id),
                    "approver_id": str(nxt.approver_id),
                    "step_order": nxt.step_order,
                },
            )

        if evaluation.fully_approved:
            validate_report_transition(
                report_id, ReportStatus(report.status), ReportStatus.APPROVED, "approve",
            )
            report.status = ReportStatus.APPROVED.value
            report.last_action_at = now
            report.last_action_by_id = approver_id
            self.session.flush()
            logger.info(
                "report_approved",
                extra={"report_id": str(report_id), "approver_id": str(approver_id)},
            )

        return ApprovalOutcome(approved=evaluation.fully_approved, report=report.to_dto())

    def reject(self, report_id: UUID, approver_id: UUID, reason: str) -> None:
        """Reject on behalf of ``approver_id``; the report becomes REJECTED."""
        if reason is None or not reason.strip():
            raise MissingRejectionReasonError(str(report_id))

        report, entry = self._load_actionable(report_id, approver_id, "reject")
        validate_report_transition(
            report_id, ReportStatus(report.status), ReportStatus.REJECTED, "reject",
        )

        now = self._clock.now()
        entry.status = LedgerStatus.REJECTED.value
        entry.comments = reason
        entry.action_at = now

        report.status = ReportStatus.REJECTED.value
        report.rejection_reason = reason
        report.last_action_at = now
        report.last_action_by_id = approver_id
        self.session.flush()

        logger.info(
            "report_rejected",
            extra={"report_id": str(report_id), "approver_id": str(approver_id)},
        )

    def _load_actionable(
        self,
        report_id: UUID,
        approver_id: UUID,
        operation: str,
        allow_approved: bool = False,
    ) -> tuple[ExpenseReportModel, ApprovalRecordModel]:
        """Lock the report and find the approver's PENDING entry on it.

        With ``allow_approved`` an APPROVED report is actionable too, so an
        approver who still holds a PENDING entry can have the decision
        recorded after quorum was reached.
        """
        report = self._lock_report(report_id)

        entry = self.session.execute(
            select(ApprovalRecordModel)
            .where(
                ApprovalRecordModel.report_id == report_id,
                ApprovalRecordModel.approver_id == approver_id,
                ApprovalRecordModel.status == LedgerStatus.PENDING.value,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entry is None:
            raise NoPendingApprovalError(str(report_id), str(approver_id))

        actionable = {ReportStatus.SUBMITTED.value}
        if allow_approved:
            actionable.add(ReportStatus.APPROVED.value)
        if report.status not in actionable:
            logger.info(
                "stale_approval_action",
                extra={
                    "report_id": str(report_id),
                    "approver_id": str(approver_id),
                    "status": report.status,
                    "operation": operation,
                },
            )
            raise InvalidReportStateError(str(report_id), report.status, operation)

        return report, entry
