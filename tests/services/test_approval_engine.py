"""
Tests for the ApprovalWorkflowEngine facade.

Every call here runs in its own committed unit of work, so these tests use
``committed_org`` and the real session factory instead of the
rollback-isolated ``session`` fixture.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from expense_workflow.domain.actor import ActorContext, EmployeeRole
from expense_workflow.domain.report import LedgerStatus, ReportStatus
from expense_workflow.domain.workflow import WorkflowApprover
from expense_workflow.exceptions import (
    ForbiddenError,
    InvalidReportStateError,
    MissingRejectionReasonError,
    NoApproverAvailableError,
    PersistenceError,
    ReportNotFoundError,
    WorkflowNotFoundError,
)
from expense_workflow.logging_config import LogContext
from expense_workflow.selectors.ledger_selector import LedgerSelector
from expense_workflow.selectors.report_selector import ReportSelector
from expense_workflow.services.approval_engine import ApprovalWorkflowEngine


@pytest.fixture
def admin(committed_org):
    return committed_org.actor(committed_org.admin_id, EmployeeRole.ADMIN)


@pytest.fixture
def employee(committed_org):
    return committed_org.actor(committed_org.employee_id)


@pytest.fixture
def submitted_report(approval_engine, employee):
    """A report with one line, submitted by ``employee``."""
    report = approval_engine.create_report(employee, "Client visit")
    approval_engine.add_expense_line(
        employee, report.report_id, "Hotel Adlon", date(2024, 1, 3), Decimal("240.00"), "EUR",
    )
    return approval_engine.submit(employee, report.report_id)


class TestEndToEnd:

    def test_draft_submit_and_manager_approval(self, approval_engine, committed_org, employee):
        org = committed_org
        report = approval_engine.create_report(employee, "Client visit")
        approval_engine.add_expense_line(
            employee, report.report_id, "Hotel Adlon", date(2024, 1, 3), Decimal("240.00"), "EUR",
        )

        submitted = approval_engine.submit(employee, report.report_id)
        assert submitted.status is ReportStatus.SUBMITTED

        manager = org.actor(org.manager_id, EmployeeRole.MANAGER)
        (pending,) = approval_engine.pending_approvals(manager)
        assert pending.report_id == report.report_id
        assert pending.employee_name == "Eli Employee"

        outcome = approval_engine.approve(manager, report.report_id, comments="fine")
        assert outcome.approved is True

        stored = approval_engine.get_report(employee, report.report_id)
        assert stored.status is ReportStatus.APPROVED
        assert stored.last_action_by_id == org.manager_id
        assert stored.lines[0].original_amount == Decimal("240.00")
        assert stored.lines[0].original_currency == "EUR"
        assert approval_engine.pending_approvals(manager) == []

    def test_sequential_chain(self, approval_engine, committed_org, admin, employee):
        org = committed_org
        approval_engine.create_workflow(
            admin, "Two step", "SEQUENTIAL",
            [WorkflowApprover(org.approver_a, 1), WorkflowApprover(org.approver_b, 2)],
            bound_employee_id=org.employee_id,
        )
        report = approval_engine.create_report(employee, "Conference")
        approval_engine.submit(employee, report.report_id)

        a = org.actor(org.approver_a, EmployeeRole.MANAGER)
        b = org.actor(org.approver_b, EmployeeRole.MANAGER)
        assert approval_engine.pending_approvals(b) == []
        assert approval_engine.approve(a, report.report_id).approved is False
        assert [p.report_id for p in approval_engine.pending_approvals(b)] == [report.report_id]
        assert approval_engine.approve(b, report.report_id).approved is True

    def test_parallel_rejection(self, approval_engine, committed_org, admin, employee):
        org = committed_org
        approval_engine.create_workflow(
            admin, "Committee", "PARALLEL",
            [WorkflowApprover(org.approver_a), WorkflowApprover(org.approver_b), WorkflowApprover(org.approver_c)],
            min_approval_percentage=Decimal("60"),
            bound_employee_id=org.employee_id,
        )
        report = approval_engine.create_report(employee, "Offsite")
        approval_engine.submit(employee, report.report_id)

        approval_engine.reject(
            org.actor(org.approver_c, EmployeeRole.MANAGER), report.report_id, "Not budgeted",
        )

        stored = approval_engine.get_report(employee, report.report_id)
        assert stored.status is ReportStatus.REJECTED
        assert stored.rejection_reason == "Not budgeted"
        with pytest.raises(InvalidReportStateError):
            approval_engine.approve(org.actor(org.approver_a, EmployeeRole.MANAGER), report.report_id)

    def test_list_reports(self, approval_engine, committed_org, employee):
        org = committed_org
        first = approval_engine.create_report(employee, "First")
        second = approval_engine.create_report(employee, "Second")

        mine = approval_engine.list_reports(employee)
        assert {r.report_id for r in mine} == {first.report_id, second.report_id}

        manager = org.actor(org.manager_id, EmployeeRole.MANAGER)
        assert len(approval_engine.list_reports(manager, org.employee_id)) == 2
        assert approval_engine.list_reports(manager) == []

    def test_workflow_administration(self, approval_engine, committed_org, admin):
        org = committed_org
        wf = approval_engine.create_workflow(
            admin, "Solo", "SEQUENTIAL", [WorkflowApprover(org.approver_a, 1)],
        )
        approval_engine.replace_approvers(admin, wf.workflow_id, [WorkflowApprover(org.approver_b, 1)])
        bound = approval_engine.bind_workflow(admin, wf.workflow_id, org.employee_id)
        assert bound.bound_employee_id == org.employee_id
        assert [a.approver_id for a in bound.chain] == [org.approver_b]

        (listed,) = approval_engine.list_workflows(admin)
        assert listed.workflow_id == wf.workflow_id

        approval_engine.delete_workflow(admin, wf.workflow_id)
        assert approval_engine.list_workflows(admin) == []
        with pytest.raises(WorkflowNotFoundError):
            approval_engine.delete_workflow(admin, wf.workflow_id)


class TestCompanyIsolation:

    def test_report_of_another_company(self, approval_engine, committed_org, submitted_report):
        outsider = ActorContext(actor_id=committed_org.manager_id, company_id=uuid4())
        with pytest.raises(ForbiddenError):
            approval_engine.approve(outsider, submitted_report.report_id)
        with pytest.raises(ForbiddenError):
            approval_engine.get_report(outsider, submitted_report.report_id)

    def test_workflow_of_another_company(self, approval_engine, committed_org, admin):
        wf = approval_engine.create_workflow(
            admin, "Solo", "SEQUENTIAL", [WorkflowApprover(committed_org.approver_a, 1)],
        )
        outsider = ActorContext(
            actor_id=committed_org.admin_id, company_id=uuid4(), role=EmployeeRole.ADMIN,
        )
        with pytest.raises(ForbiddenError):
            approval_engine.delete_workflow(outsider, wf.workflow_id)
        assert len(approval_engine.list_workflows(admin)) == 1

    def test_unknown_report(self, approval_engine, employee):
        with pytest.raises(ReportNotFoundError):
            approval_engine.submit(employee, uuid4())


class TestUnitOfWork:

    def test_failed_submit_changes_nothing(self, approval_engine, committed_org):
        orphan = committed_org.actor(committed_org.orphan_id)
        report = approval_engine.create_report(orphan, "No manager")

        with pytest.raises(NoApproverAvailableError):
            approval_engine.submit(orphan, report.report_id)

        stored = approval_engine.get_report(orphan, report.report_id)
        assert stored.status is ReportStatus.DRAFT
        assert stored.approvals == ()

    def test_failure_midway_rolls_back_ledger_write(
        self, approval_engine, committed_org, admin, employee, monkeypatch,
    ):
        org = committed_org
        approval_engine.create_workflow(
            admin, "Pair", "PARALLEL",
            [WorkflowApprover(org.approver_a), WorkflowApprover(org.approver_b)],
            min_approval_percentage=50,
            bound_employee_id=org.employee_id,
        )
        report = approval_engine.create_report(employee, "Offsite")
        approval_engine.submit(employee, report.report_id)

        def _boom(self, report_id):
            raise RuntimeError("counter unavailable")

        # The ledger entry is already flushed as APPROVED when this fires.
        monkeypatch.setattr(LedgerSelector, "count_approved", _boom)
        with pytest.raises(RuntimeError):
            approval_engine.approve(org.actor(org.approver_a), report.report_id)
        monkeypatch.undo()

        stored = approval_engine.get_report(employee, report.report_id)
        assert stored.status is ReportStatus.SUBMITTED
        assert {a.status for a in stored.approvals} == {LedgerStatus.PENDING}

    def test_database_error_is_wrapped(
        self, approval_engine, employee, submitted_report, monkeypatch, captured_logs,
    ):
        def _fail(self, report_id):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ReportSelector, "get", _fail)
        with pytest.raises(PersistenceError) as exc_info:
            approval_engine.get_report(employee, submitted_report.report_id)

        assert exc_info.value.operation == "get_report"
        assert isinstance(exc_info.value.__cause__, OperationalError)
        failures = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert failures and failures[0]["level"] == "ERROR"

    def test_blank_reason_rejected_before_opening_a_session(self, committed_org):
        def _no_session():
            raise AssertionError("a session was opened")

        engine = ApprovalWorkflowEngine(_no_session)
        manager = committed_org.actor(committed_org.manager_id, EmployeeRole.MANAGER)
        with pytest.raises(MissingRejectionReasonError):
            engine.reject(manager, uuid4(), "  ")


class TestFacadeLogging:

    def test_each_call_gets_its_own_correlation_id(
        self, approval_engine, committed_org, employee, captured_logs,
    ):
        report = approval_engine.create_report(employee, "Trip")
        approval_engine.submit(employee, report.report_id)

        records = captured_logs()
        created = next(r for r in records if r["message"] == "report_created")
        submitted = next(r for r in records if r["message"] == "report_submitted")
        assert created["correlation_id"] != submitted["correlation_id"]
        assert submitted["actor_id"] == str(committed_org.employee_id)
        assert submitted["company_id"] == str(committed_org.company_id)
        assert submitted["report_id"] == str(report.report_id)

        completed = [
            r for r in records
            if r["message"] == "operation_completed"
            and r["correlation_id"] == submitted["correlation_id"]
        ]
        assert completed[0]["operation"] == "submit"
        assert completed[0]["duration_ms"] >= 0

        assert LogContext.get_all() == {}

    def test_refusal_is_logged_with_error_code(self, approval_engine, employee, captured_logs):
        with pytest.raises(ReportNotFoundError):
            approval_engine.submit(employee, uuid4())

        (refused,) = [r for r in captured_logs() if r["message"] == "operation_refused"]
        assert refused["error_code"] == "REPORT_NOT_FOUND"
        assert refused["operation"] == "submit"

    def test_refusal_rolls_back_quietly(self, approval_engine, employee, captured_logs):
        with pytest.raises(ReportNotFoundError):
            approval_engine.submit(employee, uuid4())

        records = captured_logs()
        (rolled_back,) = [r for r in records if r["message"] == "transaction_rolled_back"]
        assert rolled_back["level"] == "INFO"
        assert rolled_back["error_code"] == "REPORT_NOT_FOUND"
        assert "traceback" not in rolled_back
        assert [r["message"] for r in records if r["level"] == "WARNING"] == ["operation_refused"]
