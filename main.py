"""Command-line interface for the blog API service."""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

import yaml

from blogapi import __version__
from blogapi.config import Settings, load_settings
from blogapi.contract import REGISTRY
from blogapi.database import Database

logger = logging.getLogger("blogapi.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Blog API service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the blog database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: BLOGAPI_HOST or 127.0.0.1)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: BLOGAPI_PORT or 3000)",
    )

    openapi_parser = subparsers.add_parser("openapi", help="Write the API contract as an OpenAPI document")
    openapi_parser.add_argument(
        "--format",
        choices=("json", "yaml"),
        default="json",
        help="Output format (default: json)",
    )
    openapi_parser.add_argument(
        "--output",
        default=None,
        help="File to write; prints to stdout when omitted",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "openapi"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _render_contract(output_format: str) -> str:
    from blogapi.api import API_TITLE

    document = REGISTRY.openapi(title=API_TITLE, version=__version__)
    if output_format == "yaml":
        return yaml.safe_dump(document, sort_keys=False)
    return json.dumps(document, indent=2) + "\n"


def _write_contract(output_format: str, output: str | None) -> None:
    rendered = _render_contract(output_format)
    if output is None:
        sys.stdout.write(rendered)
        return
    path = Path(output).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(rendered, encoding="utf-8")
    logger.info("Wrote %s contract to %s", output_format, path)


def _serve(*, settings: Settings, database: Database, host: str | None, port: int | None) -> None:
    from blogapi.api import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting blog API on http://%s:%s", bind_host, bind_port)

    app = create_app(settings=settings, database=database, initialize_database=False)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    args = _parse_args(argv)

    if args.command == "openapi":
        _write_contract(args.format, args.output)
        return

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
