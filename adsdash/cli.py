"""AdsDash — Command Line Sync.

Usage:
    python -m adsdash.cli history --since 2025-08-01
    python -m adsdash.cli history --since 2025-08-01 --until 2025-12-31 --delay-ms 1500
    python -m adsdash.cli day --date 2025-10-03

Runs against the database and Meta credentials configured in .env.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from sqlmodel import Session

from adsdash.config import settings
from adsdash.connectors.meta.client import MetaClient, MetaConfig
from adsdash.connectors.meta.endpoints import MetaAdsSource
from adsdash.core.dates import get_yesterday, validate_date
from adsdash.core.errors import AdsDashError, FatalUpstreamError, classify_fatal
from adsdash.database import _mask_url, db_url, engine, init_db
from adsdash.models.dashboard_models import ChunkResult, SyncRangeResult
from adsdash.sync.orchestrator import run_history_sync, sync_meta_for_day

EXIT_ERROR = 1
EXIT_FATAL = 2


def print_chunk(chunk: ChunkResult, result: Optional[SyncRangeResult]) -> None:
    if chunk.ok:
        detail = ""
        if result is not None:
            detail = f" ({result.ad_rows} Meta rows -> {result.metrics_upserted} in daily_metrics)"
        print(f"OK    {chunk.since} .. {chunk.until}{detail}")
    else:
        print(f"ERROR {chunk.since} .. {chunk.until}: {chunk.error or 'unknown'}")


def print_remediation(exc: FatalUpstreamError) -> None:
    print(f"\n--- {exc.kind} ---\n", file=sys.stderr)
    print(exc.remediation, file=sys.stderr)
    print(f"\nMeta said: {exc.meta_message}", file=sys.stderr)
    print("Check the token with GET /meta/validate-token, then run the command again.\n", file=sys.stderr)


async def _run_history(args: argparse.Namespace) -> int:
    since = validate_date(args.since) or settings.history_default_since
    until = validate_date(args.until) or get_yesterday()
    print(f"Database: {_mask_url(db_url)}")
    print(f"Syncing Meta Ads history from {since} until {until} (monthly chunks)...\n")

    async with MetaClient(MetaConfig.from_settings()) as client:
        with Session(engine) as session:
            output = await run_history_sync(
                session,
                MetaAdsSource(client),
                since,
                until,
                settings.default_channel_id,
                delay_between_chunks_ms=args.delay_ms,
                on_chunk=print_chunk,
            )

    print("\n--- Summary ---")
    print(f"Period: {output.since} .. {output.until}")
    print(f"Chunks (months): {output.chunks_total}")
    print(f"Succeeded: {output.success}")
    print(f"Failed: {output.errors}")
    return 0 if output.errors == 0 else EXIT_ERROR


async def _run_day(args: argparse.Namespace) -> int:
    date = validate_date(args.date) or get_yesterday()
    async with MetaClient(MetaConfig.from_settings()) as client:
        with Session(engine) as session:
            result = await sync_meta_for_day(
                session, MetaAdsSource(client), date, settings.default_channel_id
            )
    print(
        f"{result.date}: {result.campaigns} campaigns, {result.ad_rows} ad rows, "
        f"{result.metrics_upserted} metrics upserted, {result.dropped_rows} dropped, "
        f"{result.results} results, {result.conversations_started} conversations started"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adsdash", description="Sync Meta Ads metrics into the dashboard database"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    history = sub.add_parser("history", help="Backfill month by month")
    history.add_argument("--since", help=f"Start date (YYYY-MM-DD), default {settings.history_default_since}")
    history.add_argument("--until", help="End date (YYYY-MM-DD), default yesterday")
    history.add_argument(
        "--delay-ms",
        type=int,
        default=settings.history_chunk_delay_ms,
        help="Pause between monthly chunks in milliseconds",
    )
    history.set_defaults(handler=_run_history)

    day = sub.add_parser("day", help="Sync a single day")
    day.add_argument("--date", help="Day to sync (YYYY-MM-DD), default yesterday")
    day.set_defaults(handler=_run_day)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    init_db()
    try:
        return asyncio.run(args.handler(args))
    except FatalUpstreamError as e:
        print_remediation(e)
        return EXIT_FATAL
    except AdsDashError as e:
        fatal = classify_fatal(e)
        if fatal is not None:
            print_remediation(fatal)
            return EXIT_FATAL
        print(f"Sync failed: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
