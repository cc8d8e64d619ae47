from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from combattracker.api.deps import get_runtime
from combattracker.api.main import app
from combattracker.core.persistence.runtime_store import SqlEncounterGateway
from combattracker.core.runtime import EncounterRuntime
from combattracker.db.base import Base
import combattracker.db.session as db_session
import combattracker.db.init_db as db_init
from combattracker.db.deps import get_db


@pytest.fixture(scope="session")
def engine():
    # one in-memory SQLite connection shared by the whole session
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    return eng


@pytest.fixture(scope="session")
def TestingSessionLocal(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="session", autouse=True)
def _patch_db(engine, TestingSessionLocal):
    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    db_init.engine = engine

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def fresh_db(engine):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def runtime(fresh_db, TestingSessionLocal):
    return EncounterRuntime(SqlEncounterGateway(TestingSessionLocal))


@pytest.fixture()
def client(fresh_db, TestingSessionLocal, runtime):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_runtime] = lambda: runtime
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def encounter_id(client):
    r = client.post("/encounters", json={"name": "Goblin ambush"})
    assert r.status_code == 201, r.text
    return r.json()["id"]
