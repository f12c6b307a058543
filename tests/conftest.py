"""
Pytest fixtures for the expense workflow test suite.

Provides:
- A session-scoped engine and schema (SQLite file by default)
- Rollback-isolated sessions for service tests
- A committing session factory for facade and concurrency tests
- An employee directory builder and a deterministic clock

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the temporary SQLite file.
"""

import json
import logging
import os
from dataclasses import dataclass
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from expense_workflow.db.base import Base
from expense_workflow.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from expense_workflow.domain.actor import ActorContext, EmployeeRole
from expense_workflow.domain.clock import DeterministicClock
from expense_workflow.domain.workflow import ApprovalMode, WorkflowApprover
from expense_workflow.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from expense_workflow.models.employee import EmployeeModel
from expense_workflow.services.approval_engine import ApprovalWorkflowEngine
from expense_workflow.services.report_service import ReportService
from expense_workflow.services.routing_resolver import RoutingResolver
from expense_workflow.services.transition_engine import TransitionEngine
from expense_workflow.services.workflow_store import WorkflowStore


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture expense_workflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            assert any(r["message"] == "report_submitted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("expense_workflow")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: real threads against committed data"
    )


# =============================================================================
# Session-scoped DB infrastructure
# =============================================================================


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory):
    """One engine for the whole run: $DATABASE_URL or a temporary SQLite file."""
    db_url = os.environ.get("DATABASE_URL") or (
        f"sqlite:///{tmp_path_factory.mktemp('db') / 'expense_workflow_test.db'}"
    )
    eng = init_engine_from_url(
        db_url, echo=False,
        pool_size=20, max_overflow=10, pool_timeout=30,
        sqlite_busy_timeout_seconds=30.0,
    )
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables(db_engine)
    create_tables(db_engine)
    yield
    drop_tables(db_engine)


def _delete_all_rows(engine) -> None:
    """Delete every row, children first.

    Used by tests that really commit and therefore cannot rely on the
    rollback isolation of the ``session`` fixture.
    """
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# =============================================================================
# Per-test sessions
# =============================================================================


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Database session whose work is rolled back after the test.

    The session joins an outer transaction on a dedicated connection
    (``join_transaction_mode="create_savepoint"``), so commits and
    savepoints inside the test never reach the database.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(
        bind=conn,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    yield sess
    sess.close()
    if trans.is_active:
        trans.rollback()
    conn.close()


@pytest.fixture
def session_factory(db_tables, db_engine) -> Generator[sessionmaker[Session], None, None]:
    """The real, committing session factory.  Tables are emptied afterwards."""
    _delete_all_rows(db_engine)
    yield get_session_factory()
    _delete_all_rows(db_engine)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


# =============================================================================
# Employee directory builders
# =============================================================================


@dataclass(frozen=True)
class Org:
    """A small company: an employee with a manager plus three approvers."""

    company_id: UUID
    manager_id: UUID
    employee_id: UUID
    approver_a: UUID
    approver_b: UUID
    approver_c: UUID
    orphan_id: UUID
    admin_id: UUID

    def actor(self, employee_id: UUID, role: EmployeeRole = EmployeeRole.EMPLOYEE) -> ActorContext:
        return ActorContext(actor_id=employee_id, company_id=self.company_id, role=role)


def add_employee(
    session: Session,
    company_id: UUID,
    name: str,
    manager_id: UUID | None = None,
    role: str = "EMPLOYEE",
) -> UUID:
    employee_id = uuid4()
    session.add(
        EmployeeModel(
            id=employee_id,
            company_id=company_id,
            full_name=name,
            email=f"{name.lower().replace(' ', '.')}.{employee_id.hex[:8]}@example.com",
            role=role,
            manager_id=manager_id,
        )
    )
    session.flush()
    return employee_id


def build_org(session: Session, company_id: UUID | None = None) -> Org:
    company_id = company_id or uuid4()
    manager_id = add_employee(session, company_id, "Maya Manager", role="MANAGER")
    return Org(
        company_id=company_id,
        manager_id=manager_id,
        employee_id=add_employee(session, company_id, "Eli Employee", manager_id=manager_id),
        approver_a=add_employee(session, company_id, "Ada Approver", role="MANAGER"),
        approver_b=add_employee(session, company_id, "Ben Approver", role="MANAGER"),
        approver_c=add_employee(session, company_id, "Cam Approver", role="MANAGER"),
        orphan_id=add_employee(session, company_id, "Oli Orphan"),
        admin_id=add_employee(session, company_id, "Ari Admin", role="ADMIN"),
    )


@pytest.fixture
def org(session) -> Org:
    return build_org(session)


@pytest.fixture
def hire(session, org):
    """Add one more employee to the directory (default: ``org``'s company)."""

    def _hire(name, manager_id=None, role="EMPLOYEE", company_id=None):
        return add_employee(session, company_id or org.company_id, name, manager_id, role)

    return _hire


@pytest.fixture
def committed_org(session_factory) -> Org:
    with session_factory() as sess:
        result = build_org(sess)
        sess.commit()
    return result


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def store(session, clock) -> WorkflowStore:
    return WorkflowStore(session, clock)


@pytest.fixture
def resolver(session, clock) -> RoutingResolver:
    return RoutingResolver(session, clock)


@pytest.fixture
def transitions(session, clock) -> TransitionEngine:
    return TransitionEngine(session, clock)


@pytest.fixture
def reports(session, clock) -> ReportService:
    return ReportService(session, clock)


@pytest.fixture
def approval_engine(session_factory, clock) -> ApprovalWorkflowEngine:
    return ApprovalWorkflowEngine(session_factory, clock)


@pytest.fixture
def bind_workflow(store, org):
    """Create a workflow bound to ``org.employee_id``.

    Usage::

        wf = bind_workflow("SEQUENTIAL", [(org.approver_a, 1), (org.approver_b, 2)])
    """

    def _bind(mode, approvers, pct=None, employee_id=None, name="Travel approvals"):
        return store.create_workflow(
            org.company_id,
            name,
            ApprovalMode(mode),
            [WorkflowApprover(a, s) for a, s in approvers],
            min_approval_percentage=pct,
            bound_employee_id=employee_id or org.employee_id,
            actor_id=org.admin_id,
        )

    return _bind


@pytest.fixture
def draft_report(reports, org):
    """Factory for a DRAFT report owned by ``org.employee_id``."""

    def _draft(name="Berlin offsite", employee_id=None):
        return reports.create_report(org.company_id, employee_id or org.employee_id, name)

    return _draft
