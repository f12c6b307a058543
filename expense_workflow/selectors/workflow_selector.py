"""
Module: expense_workflow.selectors.workflow_selector
Responsibility: Read access to workflow definitions, including the lookup
    that routing uses to find the workflow bound to an employee.
Architecture position: Engine > Selectors.

Invariants enforced:
    - Lookup is an explicit function of ``(company_id, employee_id)``.  A
      workflow bound to the employee but owned by another company is not
      returned.
    - Results are frozen ``WorkflowDefinition`` snapshots; later edits do
      not change a snapshot already handed out.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from expense_workflow.domain.workflow import WorkflowDefinition
from expense_workflow.exceptions import WorkflowNotFoundError
from expense_workflow.models.workflow import WorkflowDefinitionModel
from expense_workflow.selectors.base import BaseSelector


class WorkflowSelector(BaseSelector[WorkflowDefinitionModel]):
    """Selector for workflow definitions."""

    def find_for_employee(
        self, company_id: UUID, employee_id: UUID,
    ) -> WorkflowDefinition | None:
        """The workflow currently bound to ``employee_id``, or None."""
        model = self.session.scalars(
            select(WorkflowDefinitionModel).where(
                WorkflowDefinitionModel.company_id == company_id,
                WorkflowDefinitionModel.bound_employee_id == employee_id,
            )
        ).one_or_none()
        return model.to_dto() if model is not None else None

    def get(self, workflow_id: UUID) -> WorkflowDefinition:
        """Fetch one workflow.

        Raises:
            WorkflowNotFoundError: If no workflow has this id.
        """
        model = self.session.get(WorkflowDefinitionModel, workflow_id)
        if model is None:
            raise WorkflowNotFoundError(str(workflow_id))
        return model.to_dto()

    def list_for_company(self, company_id: UUID) -> list[WorkflowDefinition]:
        """All workflows of a company ordered by name."""
        models = self.session.scalars(
            select(WorkflowDefinitionModel)
            .where(WorkflowDefinitionModel.company_id == company_id)
            .order_by(WorkflowDefinitionModel.name, WorkflowDefinitionModel.created_at)
        ).all()
        return [m.to_dto() for m in models]
