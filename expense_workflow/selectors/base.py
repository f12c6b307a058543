"""
Module: expense_workflow.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
Architecture position: Engine > Selectors.  May import from db/, models/
    and domain/ DTOs.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never call ``session.add()``,
      ``session.delete()``, ``session.flush()`` or ``session.commit()``.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from expense_workflow.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Base for selectors: holds the caller's session, performs no writes."""

    def __init__(self, session: Session):
        self.session = session
