"""
expense_workflow.services.workflow_store -- Workflow definition writes.

Responsibility:
    Create workflows, replace their approver rosters, bind or unbind the
    employee a workflow applies to, and delete workflows.  Reads go through
    ``WorkflowSelector``.

Architecture position:
    Engine > Services.  Flush-only.  Roster rules come from the pure
    ``domain.workflow`` validators.

Invariants enforced:
    - At most one workflow per employee.  Checked up front and guarded by
      UNIQUE(bound_employee_id); the constraint violation is mapped to
      DuplicateWorkflowBindingError inside a savepoint so the caller's
      transaction survives.
    - Approvers and the bound employee belong to the workflow's company.
    - SEQUENTIAL workflows store no percentage.
    - Edits apply prospectively: in-flight reports are routed against the
      current definition on their next approval.

Failure modes:
    - InvalidWorkflowDefinitionError on any roster or percentage rule.
    - DuplicateWorkflowBindingError when the employee is already bound.
    - WorkflowNotFoundError for an unknown workflow id.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from expense_workflow.domain.workflow import (
    ApprovalMode,
    WorkflowApprover,
    WorkflowDefinition,
    validate_roster,
    validate_workflow_definition,
)
from expense_workflow.exceptions import (
    DuplicateWorkflowBindingError,
    InvalidWorkflowDefinitionError,
    WorkflowNotFoundError,
)
from expense_workflow.logging_config import get_logger
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.models.workflow import (
    WorkflowApproverModel,
    WorkflowDefinitionModel,
)
from expense_workflow.services.base import BaseService

logger = get_logger("services.workflow_store")


class WorkflowStore(BaseService):
    """Writes workflow definitions and their rosters."""

    def create_workflow(
        self,
        company_id: UUID,
        name: str,
        mode: ApprovalMode | str,
        approvers: Iterable[WorkflowApprover],
        min_approval_percentage: Decimal | int | str | None = None,
        bound_employee_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> WorkflowDefinition:
        """Validate and store a new workflow.

        Returns:
            The stored workflow as a frozen DTO.

        Raises:
            InvalidWorkflowDefinitionError: On a rule violation.
            DuplicateWorkflowBindingError: If ``bound_employee_id`` already
                has a workflow.
        """
        resolved_mode, roster, pct = validate_workflow_definition(
            name, mode, approvers, min_approval_percentage,
        )
        name = name.strip()
        self._check_company_members(company_id, [a.approver_id for a in roster], name)
        if bound_employee_id is not None:
            self._check_company_members(company_id, [bound_employee_id], name)
            self._check_not_bound(bound_employee_id)

        model = WorkflowDefinitionModel(
            company_id=company_id,
            name=name,
            mode=resolved_mode.value,
            min_approval_percentage=pct,
            bound_employee_id=bound_employee_id,
            created_at=self._clock.now(),
            created_by_id=actor_id,
            approvers=[
                WorkflowApproverModel(approver_id=a.approver_id, step_order=a.step_order)
                for a in roster
            ],
        )
        self.session.add(model)
        self._flush_binding(bound_employee_id)

        logger.info(
            "workflow_created",
            extra={
                "workflow_id": str(model.id),
                "mode": resolved_mode.value,
                "approver_count": len(roster),
                "bound_employee_id": str(bound_employee_id) if bound_employee_id else None,
            },
        )
        return model.to_dto()

    def replace_approvers(
        self,
        workflow_id: UUID,
        approvers: Iterable[WorkflowApprover],
    ) -> WorkflowDefinition:
        """Replace the whole roster of a workflow."""
        model = self._lock_workflow(workflow_id)
        roster = validate_roster(ApprovalMode(model.mode), approvers, model.name)
        self._check_company_members(
            model.company_id, [a.approver_id for a in roster], model.name,
        )

        # Old rows must be gone before the new ones hit uq_workflow_approvers_approver.
        model.approvers.clear()
        self.session.flush()
        for a in roster:
            model.approvers.append(
                WorkflowApproverModel(approver_id=a.approver_id, step_order=a.step_order)
            )
        self.session.flush()

        logger.info(
            "workflow_approvers_replaced",
            extra={"workflow_id": str(workflow_id), "approver_count": len(roster)},
        )
        return model.to_dto()

    def bind_employee(
        self,
        workflow_id: UUID,
        employee_id: UUID | None,
    ) -> WorkflowDefinition:
        """Point the workflow at ``employee_id``, or unbind it with None."""
        model = self._lock_workflow(workflow_id)
        if employee_id is not None and employee_id != model.bound_employee_id:
            self._check_company_members(model.company_id, [employee_id], model.name)
            self._check_not_bound(employee_id)

        model.bound_employee_id = employee_id
        self._flush_binding(employee_id)

        logger.info(
            "workflow_binding_changed",
            extra={
                "workflow_id": str(workflow_id),
                "bound_employee_id": str(employee_id) if employee_id else None,
            },
        )
        return model.to_dto()

    def delete_workflow(self, workflow_id: UUID) -> None:
        """Delete a workflow and its roster.

        Reports in flight for the formerly bound employee fall back to
        manager routing on their next approval.
        """
        model = self._lock_workflow(workflow_id)
        self.session.delete(model)
        self.session.flush()
        logger.info("workflow_deleted", extra={"workflow_id": str(workflow_id)})

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    def _lock_workflow(self, workflow_id: UUID) -> WorkflowDefinitionModel:
        model = self.session.execute(
            select(WorkflowDefinitionModel)
            .where(WorkflowDefinitionModel.id == workflow_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return model

    def _check_company_members(
        self, company_id: UUID, employee_ids: list[UUID], workflow_name: str,
    ) -> None:
        found = set(
            self.session.scalars(
                select(EmployeeModel.id).where(
                    EmployeeModel.id.in_(employee_ids),
                    EmployeeModel.company_id == company_id,
                )
            ).all()
        )
        missing = [e for e in employee_ids if e not in found]
        if missing:
            raise InvalidWorkflowDefinitionError(
                f"not employees of company {company_id}: "
                + ", ".join(str(m) for m in missing),
                workflow_name,
            )

    def _check_not_bound(self, employee_id: UUID) -> None:
        existing = self.session.scalars(
            select(WorkflowDefinitionModel.id).where(
                WorkflowDefinitionModel.bound_employee_id == employee_id,
            )
        ).first()
        if existing is not None:
            raise DuplicateWorkflowBindingError(str(employee_id), str(existing))

    def _flush_binding(self, employee_id: UUID | None) -> None:
        """Flush inside a savepoint, mapping a lost binding race to a typed error."""
        savepoint = self.session.begin_nested()
        try:
            self.session.flush()
        except IntegrityError as exc:
            savepoint.rollback()
            if employee_id is None:
                raise
            logger.warning(
                "workflow_binding_conflict",
                extra={"employee_id": str(employee_id)},
            )
            raise DuplicateWorkflowBindingError(str(employee_id)) from exc
        savepoint.commit()
