"""CareMatch command line entry point."""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

from carematch.canonical import CanonicalResolver, OpenAISemanticMatcher
from carematch.config import LOG_PATH, ensure_data_dir, load_settings
from carematch.models import CanonicalEntry, CanonicalKey
from carematch.storage import DatabaseEntrySource, get_session, init_db, seed_entries

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Configure application logging."""
    ensure_data_dir()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)

    log_path = str(LOG_PATH.resolve())
    has_file_handler = any(
        isinstance(handler, logging.FileHandler)
        and handler.baseFilename == log_path
        for handler in root_logger.handlers
    )
    if not has_file_handler:
        file_handler = logging.FileHandler(LOG_PATH, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def load_seed_file(path: Path) -> dict:
    """Read canonical entries grouped by key from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return {
        CanonicalKey(key): [CanonicalEntry.model_validate(item) for item in items or []]
        for key, items in data.items()
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="carematch", description="Canonical entity resolution")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--db", type=Path, default=None, help="SQLite database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve raw values to canonical entries")
    resolve.add_argument("key", choices=[k.value for k in CanonicalKey])
    resolve.add_argument("values", nargs="+", help="Raw values to resolve")
    resolve.add_argument("--no-ai", action="store_true", help="Skip the semantic stage")

    seed = sub.add_parser("seed", help="Load canonical entries from a YAML file")
    seed.add_argument("file", type=Path)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the application."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    settings = load_settings(args.config)
    init_db(args.db or settings.db_path)

    if args.command == "seed":
        seeds = load_seed_file(args.file)
        with get_session() as session:
            total = sum(seed_entries(session, key, entries) for key, entries in seeds.items())
        print(f"Seeded {total} canonical entries")
        return 0

    matcher = None
    if not args.no_ai:
        if os.getenv("OPENAI_API_KEY"):
            matcher = OpenAISemanticMatcher(model=settings.openai_model)
        else:
            logger.warning("OPENAI_API_KEY not set; semantic matching disabled")

    resolver = CanonicalResolver.from_settings(DatabaseEntrySource(), settings, matcher)
    results = asyncio.run(resolver.resolve_batch((args.key, value) for value in args.values))
    print(json.dumps([r.to_dict() for r in results], indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
