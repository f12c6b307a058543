"""
Workflow domain types (``expense_workflow.domain.workflow``).

Responsibility
--------------
Pure value objects for approval workflows: the approval mode, the
configured approver roster, and the routing decision made for a submitting
employee.

Architecture position
---------------------
**Domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* A routing decision is a tagged union: either a custom workflow bound to
  the employee or a fallback to the employee's direct manager.  There is
  no "routing with no approver"; that case is ``NoApproverAvailableError``.
* ``WorkflowDefinition.chain`` is an immutable roster sorted by ascending
  ``step_order``; approvers without a step sort last, ties are broken by
  approver id so the order is deterministic.
* Roster rules (``validate_workflow_definition``): non-blank name, at least
  one approver, no approver twice, SEQUENTIAL needs distinct step orders
  on every approver, PARALLEL needs a percentage in [0, 100].
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable
from uuid import UUID

from expense_workflow.exceptions import InvalidWorkflowDefinitionError


class ApprovalMode(str, Enum):
    """How the configured approvers are activated."""

    SEQUENTIAL = "SEQUENTIAL"
    PARALLEL = "PARALLEL"


@dataclass(frozen=True)
class WorkflowApprover:
    """One configured approver of a workflow."""

    approver_id: UUID
    step_order: int | None = None


def _chain_key(approver: WorkflowApprover) -> tuple[bool, int, str]:
    return (
        approver.step_order is None,
        approver.step_order if approver.step_order is not None else 0,
        str(approver.approver_id),
    )


@dataclass(frozen=True)
class WorkflowDefinition:
    """Immutable snapshot of a configured approval workflow."""

    workflow_id: UUID
    company_id: UUID
    name: str
    mode: ApprovalMode
    approvers: tuple[WorkflowApprover, ...]
    min_approval_percentage: Decimal | None = None
    bound_employee_id: UUID | None = None

    @property
    def chain(self) -> tuple[WorkflowApprover, ...]:
        """Approvers in routing order (ascending ``step_order``)."""
        return tuple(sorted(self.approvers, key=_chain_key))

    @property
    def roster_size(self) -> int:
        return len(self.approvers)


# =========================================================================
# Routing decision (tagged union)
# =========================================================================


@dataclass(frozen=True)
class CustomWorkflowRouting:
    """The submitting employee is bound to a configured workflow."""

    workflow: WorkflowDefinition


@dataclass(frozen=True)
class ManagerFallbackRouting:
    """No workflow is bound; the direct manager is the sole approver."""

    manager_id: UUID


Routing = CustomWorkflowRouting | ManagerFallbackRouting


@dataclass(frozen=True)
class ApproverAssignment:
    """An approver to activate with a PENDING ledger entry."""

    approver_id: UUID
    step_order: int | None


# =========================================================================
# Validation
# =========================================================================


def normalize_percentage(value: object, workflow_name: str | None = None) -> Decimal:
    """Coerce a configured percentage to Decimal and check it is in [0, 100]."""
    if isinstance(value, bool) or value is None:
        raise InvalidWorkflowDefinitionError(
            "min_approval_percentage is required for PARALLEL mode", workflow_name,
        )
    try:
        pct = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidWorkflowDefinitionError(
            f"min_approval_percentage is not a number: {value!r}", workflow_name,
        ) from None
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise InvalidWorkflowDefinitionError(
            f"min_approval_percentage must be between 0 and 100, got {value}",
            workflow_name,
        )
    return pct


def validate_roster(
    mode: ApprovalMode,
    approvers: Iterable[WorkflowApprover],
    workflow_name: str | None = None,
) -> tuple[WorkflowApprover, ...]:
    """Check roster rules and return the roster as a tuple."""
    roster = tuple(approvers)
    if not roster:
        raise InvalidWorkflowDefinitionError(
            "at least one approver is required", workflow_name,
        )

    approver_ids = [a.approver_id for a in roster]
    if len(set(approver_ids)) != len(approver_ids):
        raise InvalidWorkflowDefinitionError(
            "an approver may appear only once per workflow", workflow_name,
        )

    for a in roster:
        if a.step_order is not None and a.step_order < 1:
            raise InvalidWorkflowDefinitionError(
                f"step_order must be >= 1, got {a.step_order}", workflow_name,
            )

    if mode == ApprovalMode.SEQUENTIAL:
        steps = [a.step_order for a in roster]
        if any(s is None for s in steps):
            raise InvalidWorkflowDefinitionError(
                "every SEQUENTIAL approver needs a step_order", workflow_name,
            )
        if len(set(steps)) != len(steps):
            raise InvalidWorkflowDefinitionError(
                "SEQUENTIAL step orders must be distinct", workflow_name,
            )

    return roster


def validate_workflow_definition(
    name: str,
    mode: ApprovalMode | str,
    approvers: Iterable[WorkflowApprover],
    min_approval_percentage: object = None,
) -> tuple[ApprovalMode, tuple[WorkflowApprover, ...], Decimal | None]:
    """Validate a workflow definition before it is stored.

    Returns:
        ``(mode, roster, percentage)`` normalized.  The percentage is
        ``None`` for SEQUENTIAL workflows, where it has no meaning.

    Raises:
        InvalidWorkflowDefinitionError: on any rule violation.
    """
    if not name or not name.strip():
        raise InvalidWorkflowDefinitionError("name is required")
    try:
        resolved_mode = ApprovalMode(mode)
    except ValueError:
        raise InvalidWorkflowDefinitionError(
            f"unknown approval mode {mode!r}", name,
        ) from None

    roster = validate_roster(resolved_mode, approvers, name)

    pct: Decimal | None = None
    if resolved_mode == ApprovalMode.PARALLEL:
        pct = normalize_percentage(min_approval_percentage, name)

    return resolved_mode, roster, pct
