#!/usr/bin/env python3
"""Crawl AniList ids or seasonal pages and store their provider mappings."""
import argparse
import asyncio
import os
import sys
import time
from typing import Optional


def _duration_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crawl canonical ids and store provider mappings.")
    parser.add_argument("type", choices=["anime", "manga"], help="Media type to crawl.")
    parser.add_argument(
        "--mode",
        choices=["ids", "seasonal"],
        default="seasonal",
        help="'ids' walks every AniList id, 'seasonal' pages through trending lists."
    )
    parser.add_argument("--max-ids", type=int, default=None, help="Stop after this many ids (ids mode).")
    parser.add_argument("--max-pages", type=int, default=None, help="Pages to crawl (seasonal mode).")
    parser.add_argument("--wait", type=int, default=None, help="Milliseconds between items.")
    parser.add_argument("--export", default="", help="Write the stored records to this JSON file afterwards.")
    parser.add_argument("--config", default="", help="Path to an AniSync JSON config file.")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    from anisync_app.config import load_settings  # pylint: disable=import-outside-toplevel
    from anisync_app.database import create_db_engine, init_database, make_session_factory
    from anisync_app.log import log, set_debug
    from anisync_app.store import MappingStore
    from anisync_app.sync import Sync

    settings = load_settings(args.config or None)
    set_debug(settings.debug)

    engine = create_db_engine(settings.database_url)
    init_database(engine)
    sync = Sync(settings, store=MappingStore(make_session_factory(engine)))

    start = time.time()
    if args.mode == "ids":
        records = await sync.crawl(args.type, max_ids=args.max_ids, wait_ms=args.wait)
    else:
        records = await sync.crawl_seasonal(args.type, max_pages=args.max_pages, wait_ms=args.wait)
    log(f"Crawl finished: {len(records)} record(s) in {_duration_ms(start)} ms")

    if args.export:
        await sync.export(args.type, args.export)
        log(f"Wrote export to {args.export}")
    return 0


def main() -> int:
    args = parse_args()
    sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
