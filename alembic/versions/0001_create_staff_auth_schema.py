from __future__ import annotations

from alembic import op

from staff_auth.core.database import Base
import staff_auth.models  # noqa: F401

revision = "0001_create_staff_auth_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
