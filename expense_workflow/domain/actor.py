"""
Actor and directory types (``expense_workflow.domain.actor``).

The engine trusts the verified caller context handed over by the
authentication layer and only reads the employee directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class EmployeeRole(str, Enum):
    """Directory roles.  Access checks on them happen outside the engine."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class ActorContext:
    """Verified identity of the caller: who, in which company, with what role."""

    actor_id: UUID
    company_id: UUID
    role: EmployeeRole = EmployeeRole.EMPLOYEE


@dataclass(frozen=True)
class Employee:
    """Read-only directory entry."""

    employee_id: UUID
    company_id: UUID
    full_name: str
    role: EmployeeRole
    manager_id: UUID | None = None
    is_active: bool = True
