"""
Operator commands.

    python -m facecheck.cli create-admin admin@example.com
    python -m facecheck.cli init-db
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys

from facecheck.db.base import Base
from facecheck.db.session import async_session_factory, engine
from facecheck.main import app  # noqa: F401  registers every model on Base.metadata
from facecheck.services.admin import AdminProvisioningError, create_admin


async def _init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


async def _create_admin(email: str, password: str) -> None:
    await _init_db()
    async with async_session_factory() as session:
        await create_admin(session, email, password)
    await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="facecheck")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="provision an admin account")
    create.add_argument("email")
    create.add_argument(
        "--password-stdin",
        action="store_true",
        help="read the password from stdin instead of prompting",
    )
    sub.add_parser("init-db", help="create database tables")

    args = parser.parse_args(argv)

    if args.command == "init-db":
        asyncio.run(_init_db())
        print("OK: database tables created")
        return 0

    if args.password_stdin:
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Repeat password: "):
            print("ERROR: passwords do not match", file=sys.stderr)
            return 1

    try:
        asyncio.run(_create_admin(args.email, password))
    except AdminProvisioningError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    print(f"OK: admin {args.email.strip().lower()} created")
    return 0


if __name__ == "__main__":
    sys.exit(main())
