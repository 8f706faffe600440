#!/usr/bin/env python3
"""Prepare a fresh memorial site database.

Creates the tables, ensures an administrator account exists and seeds the
default settings, funeral programme and featured gallery image. Safe to run
repeatedly: existing content is left untouched and an existing admin account
is only re-keyed with the supplied password.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from dotenv import load_dotenv


def _ensure_project_path() -> None:
    project_root = Path(__file__).resolve().parents[1]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


_ensure_project_path()
load_dotenv()

from candlelight import create_app  # noqa: E402
from candlelight.errors import MemorialError  # noqa: E402
from candlelight.services import bootstrap  # noqa: E402

LOGGER = logging.getLogger("bootstrap_site")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration name (development, testing, production)",
    )
    parser.add_argument(
        "--admin-username",
        default=None,
        help="Admin username (default: ADMIN_USERNAME)",
    )
    parser.add_argument(
        "--admin-password",
        default=None,
        help="Admin password (default: ADMIN_PASSWORD)",
    )
    parser.add_argument(
        "--admin-name",
        default=None,
        help="Admin display name (default: ADMIN_NAME)",
    )
    parser.add_argument(
        "--skip-samples",
        action="store_true",
        help="Do not seed default settings, programme or gallery content",
    )
    parser.add_argument(
        "--no-create-tables",
        action="store_true",
        help="Assume migrations already created the schema",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging output",
    )
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(message)s",
        force=True,
    )


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    app = create_app(args.config)
    config = app.config
    with app.app_context():
        try:
            bootstrap.bootstrap(
                admin_username=args.admin_username or config.get("ADMIN_USERNAME"),
                admin_password=args.admin_password or config.get("ADMIN_PASSWORD"),
                admin_name=args.admin_name or config.get("ADMIN_NAME") or "Administrator",
                create_tables=not args.no_create_tables,
                seed_samples=not args.skip_samples,
            )
        except MemorialError as exc:
            LOGGER.error("Bootstrap failed: %s", exc.message)
            return 1

    LOGGER.info("Bootstrap complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
