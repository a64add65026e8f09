"""Shared fixtures: a throwaway SQLite database per test."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from kpigate.database import Base, build_engine, build_session_maker
from kpigate.engine.notifications import NotificationChannel
from kpigate.engine.workflow import ApprovalWorkflow
from kpigate.models import EvaluationRecord, UnlockRequest  # noqa: F401


@pytest.fixture()
def db_path(tmp_path):
    """Temporary SQLite file with the schema created."""
    path = tmp_path / "kpigate.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return path


@pytest.fixture()
def session_maker(db_path):
    # NullPool: every checkout opens a fresh aiosqlite connection on the
    # calling event loop.
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return build_session_maker(engine)


@pytest.fixture()
def channel():
    return NotificationChannel()


@pytest.fixture()
def workflow(session_maker, channel):
    return ApprovalWorkflow(session_maker, channel, timeout=5.0)