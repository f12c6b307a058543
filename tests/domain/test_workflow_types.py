"""Tests for workflow definition validation and report lifecycle types."""

from decimal import Decimal
from uuid import uuid4

import pytest

from expense_workflow.domain.report import (
    REPORT_TRANSITIONS,
    TERMINAL_REPORT_STATUSES,
    ApprovalRecord,
    ExpenseReport,
    LedgerStatus,
    ReportStatus,
    validate_report_transition,
)
from expense_workflow.domain.workflow import (
    ApprovalMode,
    WorkflowApprover,
    WorkflowDefinition,
    normalize_percentage,
    validate_roster,
    validate_workflow_definition,
)
from expense_workflow.exceptions import (
    InvalidReportStateError,
    InvalidWorkflowDefinitionError,
)

A, B, C = uuid4(), uuid4(), uuid4()


class TestValidateWorkflowDefinition:

    def test_sequential_drops_percentage(self):
        mode, roster, pct = validate_workflow_definition(
            "Finance chain", "SEQUENTIAL",
            [WorkflowApprover(A, 1), WorkflowApprover(B, 2)],
            min_approval_percentage=75,
        )
        assert mode is ApprovalMode.SEQUENTIAL
        assert len(roster) == 2
        assert pct is None

    def test_parallel_normalizes_percentage(self):
        _, _, pct = validate_workflow_definition(
            "Board", ApprovalMode.PARALLEL,
            [WorkflowApprover(A), WorkflowApprover(B)],
            min_approval_percentage="66.5",
        )
        assert pct == Decimal("66.5")

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_name_required(self, name):
        with pytest.raises(InvalidWorkflowDefinitionError):
            validate_workflow_definition(name, "SEQUENTIAL", [WorkflowApprover(A, 1)])

    def test_unknown_mode(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match="unknown approval mode"):
            validate_workflow_definition("x", "ROUND_ROBIN", [WorkflowApprover(A, 1)])

    def test_parallel_requires_percentage(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match="required"):
            validate_workflow_definition("x", "PARALLEL", [WorkflowApprover(A)])

    @pytest.mark.parametrize("pct", [-1, Decimal("100.01"), "abc", "NaN", True])
    def test_percentage_out_of_range_or_garbage(self, pct):
        with pytest.raises(InvalidWorkflowDefinitionError):
            normalize_percentage(pct)

    @pytest.mark.parametrize("pct", [0, 100, Decimal("0.5")])
    def test_percentage_bounds_inclusive(self, pct):
        assert normalize_percentage(pct) == Decimal(str(pct))


class TestValidateRoster:

    def test_empty_roster(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match="at least one approver"):
            validate_roster(ApprovalMode.PARALLEL, [])

    def test_duplicate_approver(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match="only once"):
            validate_roster(ApprovalMode.PARALLEL, [WorkflowApprover(A), WorkflowApprover(A)])

    def test_sequential_needs_steps(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match="needs a step_order"):
            validate_roster(ApprovalMode.SEQUENTIAL, [WorkflowApprover(A, 1), WorkflowApprover(B)])

    def test_sequential_steps_distinct(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match="distinct"):
            validate_roster(
                ApprovalMode.SEQUENTIAL, [WorkflowApprover(A, 1), WorkflowApprover(B, 1)],
            )

    def test_step_must_be_positive(self):
        with pytest.raises(InvalidWorkflowDefinitionError, match=">= 1"):
            validate_roster(ApprovalMode.PARALLEL, [WorkflowApprover(A, 0)])

    def test_parallel_allows_missing_and_shared_steps(self):
        roster = validate_roster(
            ApprovalMode.PARALLEL,
            [WorkflowApprover(A, 1), WorkflowApprover(B, 1), WorkflowApprover(C)],
        )
        assert len(roster) == 3


class TestWorkflowDefinition:

    def test_chain_sorted_by_step(self):
        wf = WorkflowDefinition(
            workflow_id=uuid4(), company_id=uuid4(), name="wf",
            mode=ApprovalMode.SEQUENTIAL,
            approvers=(WorkflowApprover(C, 3), WorkflowApprover(A, 1), WorkflowApprover(B, 2)),
        )
        assert [a.approver_id for a in wf.chain] == [A, B, C]
        assert wf.roster_size == 3

    def test_definition_is_frozen(self):
        wf = WorkflowDefinition(
            workflow_id=uuid4(), company_id=uuid4(), name="wf",
            mode=ApprovalMode.PARALLEL, approvers=(WorkflowApprover(A),),
            min_approval_percentage=Decimal("50"),
        )
        with pytest.raises(AttributeError):
            wf.name = "changed"


class TestReportLifecycle:

    def test_terminal_states_have_no_exits(self):
        for status in TERMINAL_REPORT_STATUSES:
            assert REPORT_TRANSITIONS[status] == frozenset()

    @pytest.mark.parametrize(
        "current,target",
        [
            (ReportStatus.DRAFT, ReportStatus.SUBMITTED),
            (ReportStatus.SUBMITTED, ReportStatus.APPROVED),
            (ReportStatus.SUBMITTED, ReportStatus.REJECTED),
        ],
    )
    def test_legal_edges(self, current, target):
        validate_report_transition(uuid4(), current, target, "op")

    @pytest.mark.parametrize(
        "current,target",
        [
            (ReportStatus.DRAFT, ReportStatus.APPROVED),
            (ReportStatus.SUBMITTED, ReportStatus.SUBMITTED),
            (ReportStatus.APPROVED, ReportStatus.REJECTED),
            (ReportStatus.REJECTED, ReportStatus.APPROVED),
            (ReportStatus.APPROVED, ReportStatus.SUBMITTED),
        ],
    )
    def test_illegal_edges(self, current, target):
        report_id = uuid4()
        with pytest.raises(InvalidReportStateError) as exc_info:
            validate_report_transition(report_id, current, target, "op")
        assert exc_info.value.current_status == current.value
        assert exc_info.value.report_id == str(report_id)

    def test_pending_approver_ids(self):
        report_id = uuid4()
        report = ExpenseReport(
            report_id=report_id, company_id=uuid4(), employee_id=uuid4(),
            name="r", status=ReportStatus.SUBMITTED,
            approvals=(
                ApprovalRecord(uuid4(), report_id, A, LedgerStatus.APPROVED),
                ApprovalRecord(uuid4(), report_id, B, LedgerStatus.PENDING),
            ),
        )
        assert report.pending_approver_ids == frozenset({B})
        assert report.is_terminal is False
