"""Command-line interface for the users CRUD service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import Sequence

from userservice.config import ServiceConfig, load_service_config, resolve_config_path
from userservice.database import Database, StoreError

logger = logging.getLogger("userservice.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users CRUD service utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (defaults to USERS_SERVICE_CONFIG or config/service.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the users table and exit")
    subparsers.add_parser("list-users", help="Print every stored user")

    create_parser = subparsers.add_parser("create-user", help="Insert a user from the shell")
    create_parser.add_argument("name", help="Display name for the user")
    create_parser.add_argument("email", help="Email address for the user")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP users service")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: 8000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users", "create-user"}

    # Global options precede the subcommand.
    head: list[str] = []
    rest = args_list
    if rest and rest[0].startswith("--config="):
        head, rest = rest[:1], rest[1:]
    elif rest[:1] == ["--config"]:
        head, rest = rest[:2], rest[2:]

    if not rest:
        rest = ["serve"]
    elif rest[0] not in known_commands and rest[0] not in ("-h", "--help"):
        rest = ["serve", *rest]

    return parser.parse_args([*head, *rest])


def _load_config(args: argparse.Namespace) -> ServiceConfig:
    config_path = resolve_config_path(args.config or os.getenv("USERS_SERVICE_CONFIG"))
    try:
        config = load_service_config(config_path).with_environment()
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration in {config_path}: {exc}") from exc

    overrides = {}
    if getattr(args, "host", None):
        overrides["host"] = args.host
    if getattr(args, "port", None):
        overrides["port"] = args.port
    return replace(config, **overrides)


def _initialise_database(config: ServiceConfig) -> Database:
    try:
        database = Database(config.database_path)
        database.initialize()
    except (StoreError, OSError) as exc:
        logger.critical("Unable to open database at %s: %s", config.database_path, exc)
        raise SystemExit(1) from exc
    logger.info("Database initialised at %s", config.database_path)
    return database


def _serve(*, database: Database, config: ServiceConfig) -> None:
    from userservice.api import create_app
    import uvicorn

    logger.info("Starting users API on http://%s:%s", config.host, config.port)

    app = create_app(database=database)
    # uvicorn exits the process itself when the listener cannot bind.
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level,
    )


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently stored.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  Email")
    print("-" * 64)
    for user in users:
        print(f"{user.id:>4}  {user.name or '':<24}  {user.email or '<no email>'}")


def _create_user(database: Database, name: str, email: str) -> int:
    try:
        user = database.create_user(name.strip(), email.strip())
    except StoreError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    config = _load_config(args)

    logging.basicConfig(
        level=logging.DEBUG if config.log_level == "trace" else config.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    database = _initialise_database(config)

    if args.command == "serve":
        _serve(database=database, config=config)
    elif args.command == "list-users":
        _list_users(database)
    elif args.command == "create-user":
        return _create_user(database, args.name, args.email)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
