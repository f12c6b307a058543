"""
expense_workflow.engines.routing -- Pure approval routing calculations.

Responsibility:
    Decide which approvers to activate at submission, which approver comes
    next in a sequential chain, and whether a parallel quorum is met.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import expense_workflow/domain/ types.

Invariants enforced:
    - Sequential chains advance to the approver with the smallest
      ``step_order`` strictly greater than the step just approved
      (ascending, strict ``>``).
    - Parallel quorum uses exact decimal arithmetic:
      ``approved * 100 >= min_pct * total``.  No float rounding at the
      threshold boundary.
    - Purity: no clock access, no I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Collection
from uuid import UUID

from expense_workflow.domain.workflow import (
    ApprovalMode,
    ApproverAssignment,
    CustomWorkflowRouting,
    ManagerFallbackRouting,
    Routing,
    WorkflowApprover,
    WorkflowDefinition,
)

# Step order given to the direct manager when no workflow is bound.
FALLBACK_STEP_ORDER = 1


def initial_assignments(routing: Routing) -> tuple[ApproverAssignment, ...]:
    """Approvers to activate with PENDING entries when a report is submitted.

    - Manager fallback: the manager alone, at step 1.
    - SEQUENTIAL: only the first approver of the chain.
    - PARALLEL: every configured approver, each keeping its step order
      for traceability (not for gating).
    """
    if isinstance(routing, ManagerFallbackRouting):
        return (ApproverAssignment(routing.manager_id, FALLBACK_STEP_ORDER),)

    if not isinstance(routing, CustomWorkflowRouting):
        raise TypeError(f"Unsupported routing: {routing!r}")

    chain = routing.workflow.chain
    if routing.workflow.mode == ApprovalMode.SEQUENTIAL:
        first = chain[0]
        return (ApproverAssignment(first.approver_id, first.step_order),)

    return tuple(ApproverAssignment(a.approver_id, a.step_order) for a in chain)


def next_sequential_approver(
    chain: tuple[WorkflowApprover, ...],
    after_step: int | None,
    already_routed: Collection[UUID] = frozenset(),
) -> WorkflowApprover | None:
    """The approver with the smallest ``step_order`` strictly greater than ``after_step``.

    ``chain`` must be sorted ascending (``WorkflowDefinition.chain``).
    ``after_step=None`` means "before the first step".  Approvers in
    ``already_routed`` (those already holding a ledger entry on the report,
    possible only after the workflow was edited mid-flight) are skipped.

    Returns None when the chain is exhausted.
    """
    for approver in chain:
        if approver.step_order is None:
            continue
        if after_step is not None and approver.step_order <= after_step:
            continue
        if approver.approver_id in already_routed:
            continue
        return approver
    return None


def approval_percentage(approved_count: int, total_approvers: int) -> Decimal:
    """``approved_count / total_approvers * 100`` as an exact Decimal."""
    if total_approvers <= 0:
        raise ValueError(f"total_approvers must be positive, got {total_approvers}")
    return Decimal(approved_count) * 100 / Decimal(total_approvers)


def parallel_threshold_met(
    approved_count: int,
    total_approvers: int,
    min_approval_percentage: Decimal,
) -> bool:
    """True when ``approved_count / total_approvers * 100 >= min_approval_percentage``."""
    if total_approvers <= 0:
        raise ValueError(f"total_approvers must be positive, got {total_approvers}")
    return Decimal(approved_count) * 100 >= Decimal(min_approval_percentage) * total_approvers


@dataclass(frozen=True)
class ApprovalEvaluation:
    """What should happen after one ledger entry was approved."""

    fully_approved: bool
    next_approver: WorkflowApprover | None = None
    approved_count: int | None = None
    total_approvers: int | None = None
    reason: str = ""


def evaluate_after_approval(
    workflow: WorkflowDefinition | None,
    approved_step: int | None,
    approved_count: int,
    already_routed: Collection[UUID] = frozenset(),
) -> ApprovalEvaluation:
    """Decide the consequence of an approval against the *current* workflow.

    Args:
        workflow: The workflow bound to the report owner now, or None when
            the report is on the manager-fallback path.
        approved_step: ``step_order`` of the entry just approved.
        approved_count: APPROVED ledger entries on the report, including
            the one just approved.
        already_routed: Approvers that already hold a ledger entry.

    Returns:
        ApprovalEvaluation; ``fully_approved`` and ``next_approver`` are
        never both set.
    """
    if workflow is None or workflow.roster_size == 0:
        # Same rule as routing at submission: an empty roster routes like no workflow.
        return ApprovalEvaluation(
            fully_approved=True,
            reason="Manager approval is sufficient",
        )

    if workflow.mode == ApprovalMode.SEQUENTIAL:
        nxt = next_sequential_approver(workflow.chain, approved_step, already_routed)
        if nxt is not None:
            return ApprovalEvaluation(
                fully_approved=False,
                next_approver=nxt,
                reason=f"Advanced to step {nxt.step_order}",
            )
        return ApprovalEvaluation(
            fully_approved=True,
            reason="Final sequential step approved",
        )

    total = workflow.roster_size
    met = parallel_threshold_met(
        approved_count, total, workflow.min_approval_percentage or Decimal("0"),
    )
    return ApprovalEvaluation(
        fully_approved=met,
        approved_count=approved_count,
        total_approvers=total,
        reason=(
            f"{approved_count}/{total} approvals "
            f"({'meets' if met else 'below'} {workflow.min_approval_percentage}%)"
        ),
    )
