import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")

from campus_events import auth, models
from campus_events import api as api_module
from campus_events.api import app
from campus_events.config import settings
from campus_events.database import Base, build_engine, build_session_factory, get_db

engine = build_engine(settings.database_url)
SessionLocal = build_session_factory(engine)


@pytest.fixture(scope="session", autouse=True)
def _ensure_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session():
    db = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    api_module._RATE_LIMIT_STORE.clear()
    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def helpers(client, db_session):
    def register_user(email: str, role: str = "student", password: str = "password123", **fields) -> str:
        payload = {"name": email.split("@")[0], "email": email, "password": password, "role": role, **fields}
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["token"]

    def register_student(email: str, **fields) -> str:
        return register_user(email, role="student", **fields)

    def register_organizer(email: str = "org@college.edu", **fields) -> str:
        return register_user(email, role="organizer", **fields)

    def login(email: str, password: str = "password123") -> str:
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    def make_admin(email: str = "admin@college.edu", password: str = "admin123") -> models.User:
        admin = models.User(
            name="Admin",
            email=email,
            password_hash=auth.get_password_hash(password),
            role=models.UserRole.admin,
        )
        db_session.add(admin)
        db_session.commit()
        db_session.refresh(admin)
        return admin

    def future_time(days: int = 1) -> str:
        return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()

    def auth_header(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    def create_event(token: str, **overrides) -> dict:
        payload = {
            "title": "Test Event",
            "description": "Descriere",
            "category": "tech",
            "date": future_time(),
            "venue": "Main Hall",
            "capacity": 10,
            **overrides,
        }
        resp = client.post("/api/events", json=payload, headers=auth_header(token))
        assert resp.status_code == 201, resp.text
        return resp.json()

    def user_id(email: str) -> int:
        user = db_session.query(models.User).filter(models.User.email == email).first()
        assert user is not None
        return int(user.id)

    return {
        "client": client,
        "db": db_session,
        "register_user": register_user,
        "register_student": register_student,
        "register_organizer": register_organizer,
        "login": login,
        "make_admin": make_admin,
        "future_time": future_time,
        "auth_header": auth_header,
        "create_event": create_event,
        "user_id": user_id,
    }
