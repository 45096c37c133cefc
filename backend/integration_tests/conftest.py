import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import text


if os.environ.get("RUN_INTEGRATION_TESTS") != "1":
    pytest.skip(
        "Integration tests are disabled. Set RUN_INTEGRATION_TESTS=1 to enable.",
        allow_module_level=True,
    )

if not os.environ.get("DATABASE_URL"):
    pytest.skip("DATABASE_URL must be set for integration tests.", allow_module_level=True)

os.environ.setdefault("SECRET_KEY", "integration-test-secret")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from campus_events.api import app  # noqa: E402
from campus_events.config import settings  # noqa: E402
from campus_events.database import Base, build_engine, build_session_factory, get_db  # noqa: E402

engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)


def _run_migrations() -> None:
    backend_root = Path(__file__).resolve().parents[1]
    alembic_ini = backend_root / "alembic.ini"
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(backend_root / "alembic"))
    command.upgrade(config, "head")


@pytest.fixture(scope="session", autouse=True)
def _ensure_schema():
    _run_migrations()
    yield
    Base.metadata.drop_all(bind=engine)
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE IF EXISTS alembic_version"))
        connection.execute(text("DROP TYPE IF EXISTS userrole"))
    engine.dispose()


@pytest.fixture()
def session_factory():
    return SessionLocal


@pytest.fixture()
def db_session():
    db = SessionLocal()
    try:
        tables = [t.name for t in Base.metadata.sorted_tables]
        if tables:
            db.execute(text(f"TRUNCATE TABLE {', '.join(tables)} RESTART IDENTITY CASCADE"))
            db.commit()
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def helpers(client, db_session):
    def register_user(email: str, role: str = "student") -> str:
        resp = client.post(
            "/api/auth/register",
            json={"name": email.split("@")[0], "email": email, "password": "password123", "role": role},
        )
        assert resp.status_code == 201
        return resp.json()["token"]

    def auth_header(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    return {
        "client": client,
        "db": db_session,
        "register_user": register_user,
        "auth_header": auth_header,
    }
