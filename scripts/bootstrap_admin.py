#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from staff_auth.core.config import DEV_BOOTSTRAP_ALLOW, IS_DEV  # noqa: E402
from staff_auth.core.database import SessionLocal, engine  # noqa: E402
from staff_auth.core.errors import ValidationError  # noqa: E402
from staff_auth.core.startup_checks import ensure_auth_tables_exist  # noqa: E402
from staff_auth.models.staff_user import STAFF_ROLES  # noqa: E402
from staff_auth.repositories.sql import SqlUserRepository  # noqa: E402
from staff_auth.services.auth_audit import AuditTrail  # noqa: E402
from staff_auth.services.staff_provisioning import StaffProvisioningService  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cria um usuário de staff (bootstrap DEV).")
    parser.add_argument("--tenant", type=int, required=True, help="Tenant ID")
    parser.add_argument("--email", required=True, help="Email do usuário")
    parser.add_argument("--password", help="Senha; omitida gera uma senha temporária")
    parser.add_argument("--name", required=True, help="Nome do usuário")
    parser.add_argument("--role", default="admin", choices=STAFF_ROLES, help="Role do usuário")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Permite executar sem DEV_BOOTSTRAP_ALLOW=1",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if not DEV_BOOTSTRAP_ALLOW and not args.force:
        print(
            "Bootstrap DEV desabilitado. "
            "Defina DEV_BOOTSTRAP_ALLOW=1 ou use --force."
        )
        return 1

    try:
        ensure_auth_tables_exist(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        service = StaffProvisioningService(SqlUserRepository(db), audit=AuditTrail(db))
        provisioned = service.create_staff_user(
            tenant_id=args.tenant,
            email=args.email,
            name=args.name,
            role=args.role,
            password=args.password,
        )
        db.commit()
        user = provisioned.user
        summary = f"Staff created: tenant={user.tenant_id} email={user.email} role={user.role}"
    except ValidationError as exc:
        db.rollback()
        print(exc.message)
        return 1
    finally:
        db.close()

    print(summary)
    if IS_DEV and provisioned.temporary_password:
        print(f"Resumo DEV -> Senha temporária: {provisioned.temporary_password}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
