"""
Admin command line for the accounts service.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from heirloom.app import create_app
from heirloom.config import get_settings
from heirloom.db import Database
from heirloom.users import UserStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="heirloom", description="Heirloom admin tools")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override DATABASE_URL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create missing tables and indexes")
    sub.add_parser("list-users", help="Print every user, newest first")

    delete = sub.add_parser(
        "delete-user",
        help="Hard-delete a user with profile, approvers, recipients and notes",
    )
    delete.add_argument("user_id", type=str)
    delete.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the deletion (required)",
    )

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", type=str, default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3000)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s:%(message)s",
    )

    if args.command == "serve":
        if args.database_url:
            settings = settings.model_copy(update={"database_url": args.database_url})
        uvicorn.run(
            create_app(settings=settings),
            host=args.host,
            port=args.port,
            log_level=settings.log_level.lower(),
        )
        return 0

    database = Database(args.database_url or settings.database_url)
    try:
        database.ensure_schema()
        users = UserStore(database)

        if args.command == "init-db":
            return 0

        if args.command == "list-users":
            for user in users.list_all():
                print(f"{user.id}\t{user.email}\t{user.name}\t{user.created_at}")
            return 0

        if args.command == "delete-user":
            if not args.yes:
                logger.error("Refusing to delete %s without --yes", args.user_id)
                return 2
            if not users.delete(args.user_id):
                logger.error("User %s not found", args.user_id)
                return 1
            return 0
    finally:
        database.dispose()
    return 1


if __name__ == "__main__":
    sys.exit(main())
