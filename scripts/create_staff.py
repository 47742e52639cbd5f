#!/usr/bin/env python3
"""
Create a Lazla staff account (admin or driver).

Staff cannot sign up through the API; operators provision them here.
The password is read from STAFF_PASSWORD or prompted for.

Usage:
    # Admin, password prompted
    python3 scripts/create_staff.py --username alice --email alice@lazla.example

    # Driver with WhatsApp contact
    STAFF_PASSWORD=... python3 scripts/create_staff.py --username bob --role driver \
        --whatsapp +251911000000
"""

import argparse
import asyncio
import getpass
import os
import sys

from sqlalchemy.exc import IntegrityError

from lazla_api.db.models import Staff
from lazla_api.db.session import close_engines, get_write_session
from lazla_api.exceptions import InvalidInputError
from lazla_api.models.api import StaffRole
from lazla_api.observability import get_logger, setup_logging
from lazla_api.services.credentials import CredentialHasher

logger = get_logger(__name__)


def _read_password() -> str:
    password = os.getenv("STAFF_PASSWORD")
    if password:
        return password
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("Passwords do not match", file=sys.stderr)
        sys.exit(1)
    return password


async def create_staff(
    username: str,
    email: str | None,
    password: str,
    role: StaffRole,
    whatsapp_number: str | None,
) -> int:
    """Insert the staff row and return its id."""
    hashed_password = CredentialHasher().hash(password)
    staff = Staff(
        username=username.strip().lower(),
        email=email.strip().lower() if email else None,
        hashed_password=hashed_password,
        role=role.value,
        whatsapp_number=whatsapp_number,
    )
    try:
        async with get_write_session() as session:
            session.add(staff)
            await session.commit()
            return staff.id
    finally:
        await close_engines()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a staff account")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", default=None)
    parser.add_argument(
        "--role", choices=[r.value for r in StaffRole], default=StaffRole.ADMIN.value
    )
    parser.add_argument("--whatsapp", dest="whatsapp_number", default=None)
    args = parser.parse_args()

    setup_logging()
    password = _read_password()

    try:
        staff_id = asyncio.run(
            create_staff(
                args.username,
                args.email,
                password,
                StaffRole(args.role),
                args.whatsapp_number,
            )
        )
    except InvalidInputError as e:
        print(f"Invalid password: {e.message}", file=sys.stderr)
        sys.exit(1)
    except IntegrityError:
        print("A staff account with that username or email already exists", file=sys.stderr)
        sys.exit(1)

    logger.info("staff_created", staff_id=staff_id, role=args.role)
    print(f"Created staff {args.username} (id={staff_id}, role={args.role})")


if __name__ == "__main__":
    main()
