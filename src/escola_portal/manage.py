"""
escola_portal.manage

Operator CLI: `python -m escola_portal.manage create-admin ...`.

Responsibilities:
- Bootstrap the first admin account without going through the HTTP API.
- Stay idempotent: an existing email is reported, never overwritten.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from escola_portal.auth.credentials import normalize_identifier
from escola_portal.auth.passwords import hash_password
from escola_portal.db.init_db import init_db
from escola_portal.db.repositories.principals import PrincipalRepo
from escola_portal.db.session import create_engine, create_sessionmaker
from escola_portal.observability.logging import configure_logging, get_logger
from escola_portal.settings import Settings, get_settings

log = get_logger(__name__)


async def create_admin(settings: Settings, *, email: str, name: str, password: str) -> bool:
    """
    Create an admin account. Returns False if the email is already taken.
    """

    engine = create_engine(settings)
    try:
        if settings.env in ("dev", "test"):
            await init_db(engine)
        async with create_sessionmaker(engine)() as session:
            repo = PrincipalRepo(session)
            email = normalize_identifier(email)
            if await repo.admin_by_email(email) is not None:
                log.info("admin_exists", email=email)
                return False
            password_hash = await asyncio.to_thread(
                hash_password, password, rounds=settings.bcrypt_rounds
            )
            admin = await repo.create_admin(name=name, email=email, password_hash=password_hash)
            await session.commit()
            log.info("admin_created", admin_id=admin.id, email=email)
            return True
    finally:
        await engine.dispose()


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="escola_portal.manage")
    commands = parser.add_subparsers(dest="command", required=True)

    admin = commands.add_parser("create-admin", help="Create an admin account")
    admin.add_argument("--email", required=True)
    admin.add_argument("--name", default="Administrador")
    admin.add_argument("--password", required=True)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    if args.command == "create-admin":
        created = asyncio.run(
            create_admin(settings, email=args.email, name=args.name, password=args.password)
        )
        print("admin created" if created else "admin already exists")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual entry point
    sys.exit(main())
