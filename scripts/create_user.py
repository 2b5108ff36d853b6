import argparse
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from blogapi import schemas
from blogapi.database import Database, DuplicateEmailError, resolve_database_path
from blogapi.errors import SchemaValidationError


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a blog user directly in the database")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to BLOGAPI_DB_PATH or data/blog.sqlite3)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    try:
        request = schemas.CREATE_USER_REQUEST.validate({"name": args.name, "email": args.email.strip()})
    except SchemaValidationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    db_env = args.db_path or os.getenv("BLOGAPI_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()

    try:
        user = database.create_user(email=request.email, name=request.name)
    except DuplicateEmailError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
