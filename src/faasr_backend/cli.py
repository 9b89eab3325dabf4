"""CLI entrypoint: run the server or check the configuration."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from pydantic import ValidationError

from faasr_backend import __version__
from faasr_backend.config import BackendSettings
from faasr_backend.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="faasr-backend",
        description="FaaSr GitHub App backend",
    )
    parser.add_argument("--version", action="version", version=f"faasr-backend {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")

    subparsers.add_parser(
        "check-config",
        help="Print configuration warnings; exit non-zero if there are any",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = BackendSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    if args.command == "check-config":
        warnings = settings.configuration_warnings()
        for warning in warnings:
            print(f"warning: {warning}")
        if not warnings:
            print("Configuration OK")
        return 1 if warnings else 0

    if args.command == "serve":
        configure_logging(settings.log_level)

        from faasr_backend.server.app import create_app

        logger.info("Starting server", extra={"host": args.host, "port": args.port})
        uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
