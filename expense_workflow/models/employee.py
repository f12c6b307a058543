"""
Module: expense_workflow.models.employee
Responsibility: ORM persistence for the employee directory that routing
    reads: company membership, role and the direct-manager link.
Architecture position: Engine > Models.  May import from db/base.py only.

Invariants enforced:
    - An employee is never their own manager: check constraint
      ``ck_employees_no_self_manager`` plus an ORM validator that fails
      before the flush.

Failure modes:
    - ValueError from the validator on ``manager_id == id``.
    - IntegrityError on duplicate email (uq_employees_email).

Audit relevance:
    Owned by the administrative component.  The engine only reads it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from expense_workflow.db.base import Base, UUIDString

if TYPE_CHECKING:
    from expense_workflow.domain.actor import Employee


class EmployeeModel(Base):
    """Directory entry for one employee of one company."""

    __tablename__ = "employees"

    __table_args__ = (
        CheckConstraint(
            "manager_id IS NULL OR manager_id <> id",
            name="ck_employees_no_self_manager",
        ),
        CheckConstraint(
            "role IN ('EMPLOYEE', 'MANAGER', 'ADMIN')",
            name="ck_employees_valid_role",
        ),
        UniqueConstraint("email", name="uq_employees_email"),
        Index("ix_employees_company", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="EMPLOYEE")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    manager_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=True,
    )

    @validates("manager_id")
    def _validate_manager(self, key, value):
        if value is not None and self.id is not None and value == self.id:
            raise ValueError("an employee cannot be their own manager")
        return value

    def __repr__(self) -> str:
        return f"<Employee {self.id} {self.full_name} ({self.role})>"

    def to_dto(self) -> Employee:
        """Convert ORM model to frozen domain DTO."""
        from expense_workflow.domain.actor import Employee, EmployeeRole

        return Employee(
            employee_id=self.id,
            company_id=self.company_id,
            full_name=self.full_name,
            role=EmployeeRole(self.role),
            manager_id=self.manager_id,
            is_active=self.is_active,
        )
