from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from staff_auth.core.database import Base, get_db
from staff_auth.core.errors import register_error_handlers
from staff_auth.core.rate_limiter import InMemoryLoginRateLimiter
from staff_auth.deps import get_login_rate_limiter, get_reset_notifier
import staff_auth.models  # noqa: F401
from staff_auth.models.staff_user import StaffUser
from staff_auth.models.tenant import Tenant
from staff_auth.repositories.sql import SqlSessionRepository, SqlUserRepository
from staff_auth.routers.auth import router as auth_router
from staff_auth.routers.dashboards import router as dashboards_router
from staff_auth.routers.staff import router as staff_router
from staff_auth.services.account_lockout import AccountLockoutGuard
from staff_auth.services.passwords import hash_password
from staff_auth.services.session_store import SessionStore
from tests.fakes import (
    FakeClock,
    InMemoryResetTokenRepository,
    InMemorySessionRepository,
    InMemoryUserRepository,
    RecordingAuditTrail,
    RecordingNotifier,
)
from tests.fixtures_data import KNOWN_PASSWORD, STAFF_BY_ROLE, TENANT_ONE, TENANT_TWO


@pytest.fixture(scope="session")
def known_password_hash() -> str:
    # bcrypt custa caro: um hash por sessão de testes.
    return hash_password(KNOWN_PASSWORD)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository(tenants=(TENANT_ONE["id"], TENANT_TWO["id"]))


@pytest.fixture
def session_repo() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def reset_repo() -> InMemoryResetTokenRepository:
    return InMemoryResetTokenRepository()


@pytest.fixture
def audit() -> RecordingAuditTrail:
    return RecordingAuditTrail()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store(session_repo, users, clock) -> SessionStore:
    return SessionStore(session_repo, users, clock=clock)


@pytest.fixture
def lockout(users, clock) -> AccountLockoutGuard:
    return AccountLockoutGuard(users, clock=clock)


@pytest.fixture
def make_user(users, known_password_hash):
    def _make(staff_key: str = "waiter", *, tenant_id: int = TENANT_ONE["id"], email: str | None = None, **overrides):
        data = dict(STAFF_BY_ROLE[staff_key])
        if email:
            data["email"] = email
        user = users.create(
            tenant_id=tenant_id,
            email=data["email"],
            name=data["name"],
            role=data["role"],
            password_hash=known_password_hash,
        )
        for key, value in overrides.items():
            setattr(user, key, value)
        return user

    return _make


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite só emite BEGIN sozinho antes de DML; sem isso SAVEPOINT não funciona.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    db = factory()
    db.add_all([Tenant(**TENANT_ONE), Tenant(**TENANT_TWO)])
    db.commit()
    db.close()

    yield factory

    engine.dispose()


@pytest.fixture
def seed_staff(session_factory, known_password_hash):
    def _seed(staff_key: str = "waiter", *, tenant_id: int = TENANT_ONE["id"], email: str | None = None, **overrides) -> int:
        data = dict(STAFF_BY_ROLE[staff_key])
        db = session_factory()
        try:
            user = StaffUser(
                tenant_id=tenant_id,
                email=email or data["email"],
                name=data["name"],
                role=data["role"],
                password_hash=known_password_hash,
                is_active=True,
                failed_attempt_count=0,
            )
            for key, value in overrides.items():
                setattr(user, key, value)
            db.add(user)
            db.commit()
            return user.id
        finally:
            db.close()

    return _seed


@pytest.fixture
def build_client(session_factory):
    def _build(*, limiter=None, notifier=None, raise_server_exceptions: bool = True) -> TestClient:
        app = FastAPI()
        register_error_handlers(app)
        app.include_router(auth_router)
        app.include_router(dashboards_router)
        app.include_router(staff_router)

        def _get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        login_limiter = limiter or InMemoryLoginRateLimiter()
        reset_notifier = notifier or RecordingNotifier()
        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_login_rate_limiter] = lambda: login_limiter
        app.dependency_overrides[get_reset_notifier] = lambda: reset_notifier
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    return _build



@pytest.fixture
def issue_session(session_factory):
    def _issue(user_id: int, *, remember_me: bool = False) -> str:
        db = session_factory()
        try:
            users = SqlUserRepository(db)
            store = SessionStore(SqlSessionRepository(db), users)
            issued = store.create(users.get_by_id(user_id), remember_me)
            db.commit()
            return issued.token
        finally:
            db.close()

    return _issue
