import os

# Keep the module-level engine off the real data directory
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from chaispas.database import Base, get_db
from chaispas.main import app
from chaispas.models import Choice, DecisionRecord


@pytest.fixture
def make_record():
    """Factory for decision records built from a list of choice texts."""
    counter = {"n": 0}
    start = datetime(2026, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

    def _make(texts, selected=0, decision_time=100, record_id=None):
        counter["n"] += 1
        n = counter["n"]
        choices = [
            Choice(id=f"c{n}-{i}", text=text, number=i + 1) for i, text in enumerate(texts)
        ]
        return DecisionRecord(
            id=record_id or f"d{n}",
            timestamp=start + timedelta(minutes=n),
            choices=choices,
            selected_choice=choices[selected],
            decision_time=decision_time,
        )

    return _make


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path}/test.db")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
