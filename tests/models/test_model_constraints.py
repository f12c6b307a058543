"""
Database-level guards on the ORM models.

These constraints back up the service checks: each test bypasses the
services and writes rows directly.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from expense_workflow.models.approval import ApprovalRecordModel
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.models.report import ExpenseReportModel
from expense_workflow.models.workflow import WorkflowApproverModel, WorkflowDefinitionModel


def _report(session, org, clock):
    report = ExpenseReportModel(
        company_id=org.company_id,
        employee_id=org.employee_id,
        name="Direct insert",
        status="SUBMITTED",
        created_at=clock.now(),
    )
    session.add(report)
    session.flush()
    return report


class TestEmployeeModel:

    def test_validator_rejects_self_manager(self, org):
        employee_id = uuid4()
        with pytest.raises(ValueError, match="own manager"):
            EmployeeModel(
                id=employee_id,
                company_id=org.company_id,
                full_name="Self Managed",
                email="self@example.com",
                manager_id=employee_id,
            )

    def test_to_dto(self, session, org):
        dto = session.get(EmployeeModel, org.employee_id).to_dto()
        assert dto.employee_id == org.employee_id
        assert dto.manager_id == org.manager_id
        assert dto.role.value == "EMPLOYEE"


class TestLedgerConstraints:

    def test_one_entry_per_approver_per_report(self, session, org, clock):
        report = _report(session, org, clock)
        session.add(ApprovalRecordModel(
            report_id=report.id, approver_id=org.approver_a,
            status="PENDING", created_at=clock.now(),
        ))
        session.flush()

        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.add(ApprovalRecordModel(
                    report_id=report.id, approver_id=org.approver_a,
                    status="PENDING", created_at=clock.now(),
                ))
                session.flush()

    def test_status_check_constraint(self, session, org, clock):
        report = _report(session, org, clock)
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.add(ApprovalRecordModel(
                    report_id=report.id, approver_id=org.approver_b,
                    status="MAYBE", created_at=clock.now(),
                ))
                session.flush()

    def test_report_status_check_constraint(self, session, org, clock):
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.add(ExpenseReportModel(
                    company_id=org.company_id, employee_id=org.employee_id,
                    name="Bad", status="ARCHIVED", created_at=clock.now(),
                ))
                session.flush()


class TestWorkflowConstraints:

    def _workflow(self, org, clock, employee_id, approver_id):
        return WorkflowDefinitionModel(
            company_id=org.company_id,
            name="Direct",
            mode="PARALLEL",
            bound_employee_id=employee_id,
            created_at=clock.now(),
            approvers=[WorkflowApproverModel(approver_id=approver_id)],
        )

    def test_one_workflow_per_employee(self, session, org, clock):
        session.add(self._workflow(org, clock, org.employee_id, org.approver_a))
        session.flush()
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                session.add(self._workflow(org, clock, org.employee_id, org.approver_b))
                session.flush()

    def test_unbound_workflows_do_not_collide(self, session, org, clock):
        session.add(self._workflow(org, clock, None, org.approver_a))
        session.add(self._workflow(org, clock, None, org.approver_b))
        session.flush()

    def test_approver_once_per_workflow(self, session, org, clock):
        with pytest.raises(IntegrityError):
            with session.begin_nested():
                wf = self._workflow(org, clock, None, org.approver_a)
                wf.approvers.append(WorkflowApproverModel(approver_id=org.approver_a))
                session.add(wf)
                session.flush()
