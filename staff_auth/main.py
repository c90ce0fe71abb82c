import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staff_auth.core.config import CORS_ORIGINS, DATABASE_URL, ENV, IS_PROD
from staff_auth.core.database import Base, SessionLocal, engine
from staff_auth.core.errors import ValidationError, register_error_handlers
from staff_auth.core.logging_setup import configure_logging
from staff_auth.core.startup_checks import (
    ensure_auth_tables_exist,
    ensure_migrations_applied,
    validate_database_environment,
)
from staff_auth.middleware.observability import ObservabilityMiddleware
import staff_auth.models  # garante que os models são importados antes do create_all

from staff_auth.models.tenant import Tenant
from staff_auth.repositories.sql import SqlUserRepository
from staff_auth.routers.auth import router as auth_router
from staff_auth.routers.dashboards import router as dashboards_router
from staff_auth.routers.staff import router as staff_router
from staff_auth.services.auth_audit import AuditTrail
from staff_auth.services.staff_provisioning import StaffProvisioningService

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[ADMIN_BOOTSTRAP]"
DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_TENANT_ID = 1
DEFAULT_ADMIN_NAME = "Admin"
DEFAULT_ADMIN_ROLE = "owner"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Staff Auth API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

register_error_handlers(app)


def _bootstrap_initial_admin() -> None:
    if IS_PROD:
        logger.info("%s skipped in production", BOOTSTRAP_PREFIX)
        return

    dev_admin_password = os.getenv("DEV_ADMIN_PASSWORD", "").strip()
    if not dev_admin_password:
        logger.info("%s skipped: configure DEV_ADMIN_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    dev_admin_email = os.getenv("DEV_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL).strip() or DEFAULT_ADMIN_EMAIL
    dev_admin_name = os.getenv("DEV_ADMIN_NAME", DEFAULT_ADMIN_NAME).strip() or DEFAULT_ADMIN_NAME
    tenant_id_raw = os.getenv("DEV_ADMIN_TENANT_ID", str(DEFAULT_ADMIN_TENANT_ID)).strip()
    try:
        dev_admin_tenant_id = int(tenant_id_raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid DEV_ADMIN_TENANT_ID: {tenant_id_raw}") from exc

    db = SessionLocal()
    try:
        users = SqlUserRepository(db)
        if users.find_staff_by_email(dev_admin_email) is not None:
            logger.info("%s exists tenant_id=%s", BOOTSTRAP_PREFIX, dev_admin_tenant_id)
            return

        if not users.tenant_exists(dev_admin_tenant_id):
            db.add(Tenant(id=dev_admin_tenant_id, name="Restaurante"))
            db.flush()

        provisioned = StaffProvisioningService(users, audit=AuditTrail(db)).create_staff_user(
            tenant_id=dev_admin_tenant_id,
            email=dev_admin_email,
            name=dev_admin_name,
            role=DEFAULT_ADMIN_ROLE,
            password=dev_admin_password,
        )
        db.commit()
        logger.info(
            "%s created success id=%s tenant_id=%s",
            BOOTSTRAP_PREFIX,
            provisioned.user.id,
            dev_admin_tenant_id,
        )
    except ValidationError as exc:
        db.rollback()
        logger.error("%s rejected: %s", BOOTSTRAP_PREFIX, exc.message)
    except Exception:
        db.rollback()
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        # Em produção, use migrations.
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        ensure_auth_tables_exist(engine)
        _bootstrap_initial_admin()
    except Exception:
        logger.exception("%s ERROR startup failed env=%s", BOOTSTRAP_PREFIX, ENV)
        raise


# Routers
app.include_router(auth_router)
app.include_router(dashboards_router)
app.include_router(staff_router)


@app.get("/health")
def health():
    return {"status": "ok"}
