"""
CLI management commands for the portal.

Usage:
    python -m portal.cli.commands serve
    python -m portal.cli.commands init-config --path .env
    python -m portal.cli.commands init-db
    python -m portal.cli.commands purge-sessions
    python -m portal.cli.commands mock-cas --port 3000
"""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path

import uvicorn

from portal.auth.sessions import SessionRepository, StorageError
from portal.core.settings import Settings, write_default_env
from portal.db.engine import Database
from portal.dev.cas_mock import MockCasConfig, create_mock_cas_app
from portal.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _configure_logging(settings: Settings) -> None:
    log_file = Path(settings.log_file) / "portal.log" if settings.log_file else None
    setup_logging(level=settings.log_level, log_file=log_file)


def cmd_serve(settings: Settings) -> None:
    """Check the database, create tables and run the HTTP server."""
    from portal.main import create_app

    _configure_logging(settings)
    database = Database.from_settings(settings)
    try:
        elapsed = database.ping()
        logger.info(f"Database reachable ({elapsed:.1f} ms)")
        database.create_all()
    except Exception as e:
        logger.error(f"Database unavailable: {e}")
        database.dispose("startup failure")
        sys.exit(1)

    app = create_app(settings, database=database)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


def cmd_init_config(path: Path) -> None:
    """Write a .env file with freshly generated secrets."""
    try:
        write_default_env(path)
    except FileExistsError:
        logger.error(f"{path} already exists, refusing to overwrite it")
        sys.exit(1)
    logger.info(f"Wrote default configuration to {path}")


def cmd_init_db(settings: Settings) -> None:
    """Create all tables."""
    database = Database.from_settings(settings)
    try:
        database.create_all()
        logger.info("Database tables created")
    except Exception as e:
        logger.error(f"Table creation failed: {e}")
        sys.exit(1)
    finally:
        database.dispose("init-db")


def cmd_purge_sessions(settings: Settings) -> None:
    """Delete sessions past their maximum age."""
    database = Database.from_settings(settings)
    db = database.SessionLocal()
    try:
        max_age = timedelta(seconds=settings.security.session.token.cookie_max_age)
        removed = SessionRepository(db).purge_expired(max_age)
        logger.info(f"Purged {removed} expired session(s)")
    except StorageError as e:
        logger.error(f"Purge failed: {e}")
        sys.exit(1)
    finally:
        db.close()
        database.dispose("purge-sessions")


def cmd_mock_cas(config: MockCasConfig) -> None:
    """Run the mock CAS server."""
    logger.info(f"Mock CAS on http://{config.host}:{config.port}/cas (ticket {config.ticket})")
    uvicorn.run(create_mock_cas_app(config), host=config.host, port=config.port, log_config=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Photos portal management commands",
        prog="portal"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Run the portal HTTP server")

    init_config = subparsers.add_parser(
        "init-config",
        help="Write a .env file with generated secrets"
    )
    init_config.add_argument("--path", type=Path, default=Path(".env"))

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("purge-sessions", help="Delete expired sessions")

    mock_cas = subparsers.add_parser("mock-cas", help="Run a mock CAS server")
    mock_cas.add_argument("--host", default="127.0.0.1")
    mock_cas.add_argument("--port", type=int, default=3000)
    mock_cas.add_argument("--ticket", default="ST-12345")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "init-config":
        setup_logging()
        cmd_init_config(args.path)
        return

    if args.command == "mock-cas":
        setup_logging()
        cmd_mock_cas(MockCasConfig(host=args.host, port=args.port, ticket=args.ticket))
        return

    settings = Settings()
    if args.command == "serve":
        cmd_serve(settings)
    elif args.command == "init-db":
        _configure_logging(settings)
        cmd_init_db(settings)
    elif args.command == "purge-sessions":
        _configure_logging(settings)
        cmd_purge_sessions(settings)


if __name__ == "__main__":
    main()
