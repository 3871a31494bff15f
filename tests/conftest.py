import importlib
import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["SECRET_KEY"] = "test-secret"

    import app.inventsight.core.config as config
    import app.inventsight.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


class SteppingClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


@pytest.fixture()
def client(tmp_path: Path):
    db_path = tmp_path / "test.db"
    app, session = _setup_app(f"sqlite+pysqlite:///{db_path}")

    from app.inventsight.core.metrics import metrics

    metrics.reset()

    with TestClient(app) as client:
        yield client

    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.inventsight.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clock():
    return SteppingClock()


@pytest.fixture()
def service(db_session, clock):
    from app.inventsight.repos.transfers import TransferRepository
    from app.inventsight.services.transfers import TransferRequestService

    return TransferRequestService(TransferRepository(db_session), clock=clock)
