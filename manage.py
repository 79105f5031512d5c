#!/usr/bin/env python3
"""
Newsletter operator management.

Usage:
  python manage.py create-user admin
  python manage.py create-user admin --database-url sqlite:///newsletter.db

The password is read interactively (twice) and never echoed or accepted on
the command line, so it does not end up in shell history.

Environment variables:
  DATABASE_URL  Database to write to (default: the application's configured database)
  SECRET_KEY    Required unless DEBUG=true (shared with the web app settings)
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.passwords import hash_password
from auth.store import UserStore
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 12


def _read_password() -> Optional[str]:
    password = getpass.getpass("  Password: ")
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return None
    if getpass.getpass("  Confirm password: ") != password:
        print("  [!] Passwords do not match.")
        return None
    return password


def create_user(username: str, database_url: str) -> int:
    """Create an operator account. Returns a process exit status."""
    username = username.strip()
    if not username:
        print("  [!] Username is required.")
        return 2
    password = _read_password()
    if password is None:
        return 2

    store = UserStore(database_url)
    try:
        user_id = store.create_user(username, hash_password(password))
    except IntegrityError:
        print(f"  [!] A user named '{username}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created user '{username}' ({user_id}).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Newsletter operator management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create an operator account for /login and /newsletters")
    create.add_argument("username", help="Login name for the new operator")
    create.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (defaults to the DATABASE_URL setting)",
    )

    args = parser.parse_args(argv)
    if args.command == "create-user":
        database_url = args.database_url or get_settings().database_url
        return create_user(args.username, database_url)
    return 2


if __name__ == "__main__":
    sys.exit(main())
