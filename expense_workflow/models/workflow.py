"""
Module: expense_workflow.models.workflow
Responsibility: ORM persistence for approval workflow definitions and
    their approver rosters.
Architecture position: Engine > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one workflow per employee: UNIQUE(bound_employee_id).
    - An approver appears once per workflow: UNIQUE(workflow_id, approver_id).
    - ``min_approval_percentage`` is within [0, 100] when present.

Failure modes:
    - IntegrityError on a second binding of the same employee
      (uq_workflow_definitions_bound_employee); the store maps it to
      DuplicateWorkflowBindingError.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expense_workflow.db.base import Base, UUIDString

if TYPE_CHECKING:
    from expense_workflow.domain.workflow import WorkflowApprover, WorkflowDefinition


class WorkflowDefinitionModel(Base):
    """A configured approval workflow, optionally bound to one employee."""

    __tablename__ = "workflow_definitions"

    __table_args__ = (
        CheckConstraint(
            "mode IN ('SEQUENTIAL', 'PARALLEL')",
            name="ck_workflow_definitions_valid_mode",
        ),
        CheckConstraint(
            "min_approval_percentage IS NULL OR "
            "(min_approval_percentage >= 0 AND min_approval_percentage <= 100)",
            name="ck_workflow_definitions_percentage_range",
        ),
        UniqueConstraint(
            "bound_employee_id",
            name="uq_workflow_definitions_bound_employee",
        ),
        Index("ix_workflow_definitions_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    min_approval_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(9, 4), nullable=True,
    )
    bound_employee_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    approvers: Mapped[list["WorkflowApproverModel"]] = relationship(
        "WorkflowApproverModel",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowApproverModel.step_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowDefinition {self.id} {self.name!r} mode={self.mode}>"

    def to_dto(self) -> WorkflowDefinition:
        """Convert ORM model to frozen domain DTO."""
        from expense_workflow.domain.workflow import ApprovalMode, WorkflowDefinition

        return WorkflowDefinition(
            workflow_id=self.id,
            company_id=self.company_id,
            name=self.name,
            mode=ApprovalMode(self.mode),
            approvers=tuple(a.to_dto() for a in self.approvers),
            min_approval_percentage=self.min_approval_percentage,
            bound_employee_id=self.bound_employee_id,
        )


class WorkflowApproverModel(Base):
    """One approver slot on a workflow roster."""

    __tablename__ = "workflow_approvers"

    __table_args__ = (
        UniqueConstraint(
            "workflow_id", "approver_id",
            name="uq_workflow_approvers_approver",
        ),
        CheckConstraint(
            "step_order IS NULL OR step_order >= 1",
            name="ck_workflow_approvers_step_positive",
        ),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=False,
    )
    step_order: Mapped[int | None] = mapped_column(nullable=True)

    workflow: Mapped["WorkflowDefinitionModel"] = relationship(
        "WorkflowDefinitionModel",
        back_populates="approvers",
    )

    def __repr__(self) -> str:
        return f"<WorkflowApprover {self.approver_id} step={self.step_order}>"

    def to_dto(self) -> WorkflowApprover:
        from expense_workflow.domain.workflow import WorkflowApprover

        return WorkflowApprover(approver_id=self.approver_id, step_order=self.step_order)
