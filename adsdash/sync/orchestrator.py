"""AdsDash — Meta Sync Orchestrators.

Three entry points of increasing scope:
  single day → date range (one insights request) → history backfill
  (monthly chunks, run one after another with a delay between them).

Every write is an idempotent upsert, so any of them can be re-run safely.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlmodel import Session

from adsdash.config import settings
from adsdash.connectors.meta.transformer import normalize_insight_row
from adsdash.core.dates import get_yesterday, monthly_chunks, validate_date
from adsdash.core.errors import ConfigError, ValidationError, classify_fatal
from adsdash.core.logging import get_logger
from adsdash.models.dashboard_models import (
    ChunkResult,
    HistorySyncOutput,
    SyncDayResult,
    SyncRangeResult,
)
from adsdash.sync import store
from adsdash.sync.reconciler import (
    SyncContext,
    build_metric_records,
    reconcile_campaigns,
)

logger = get_logger("sync.orchestrator")

META_CHANNEL_ID = "meta_ads"
META_CHANNEL_NAME = "Meta Ads"


class MetricsSource(Protocol):
    async def fetch_campaigns(self) -> List[Dict[str, Any]]: ...

    async def fetch_ad_insights(self, since: str, until: str) -> List[Dict[str, Any]]: ...


ChunkCallback = Callable[[ChunkResult, Optional[SyncRangeResult]], None]


async def _sync_window(
    session: Session,
    source: MetricsSource,
    since: str,
    until: str,
    channel_id: str,
    batch_size: int,
) -> tuple[SyncRangeResult, List[Dict[str, Any]]]:
    """Fetch, reconcile, normalize and persist one window."""
    started = time.monotonic()
    logger.info(
        "Meta sync starting",
        extra={"channel_id": channel_id, "since": since, "until": until},
    )
    store.upsert_channel(session, channel_id, META_CHANNEL_NAME)

    campaigns = await source.fetch_campaigns()
    ctx = SyncContext(session, channel_id)
    reconcile_campaigns(ctx, campaigns)

    insights = await source.fetch_ad_insights(since, until)
    records = build_metric_records(ctx, insights, default_date=since)
    written = store.upsert_daily_metrics(session, records, batch_size)

    result = SyncRangeResult(
        since=since,
        until=until,
        campaigns=len(campaigns),
        ad_rows=len(insights),
        metrics_upserted=written,
        dropped_rows=ctx.dropped_rows,
    )
    logger.info(
        f"Synced {written} metric rows from {len(insights)} insight rows",
        extra={
            "channel_id": channel_id,
            "since": since,
            "until": until,
            "duration_ms": round((time.monotonic() - started) * 1000),
        },
    )
    return result, insights


async def sync_meta_for_day(
    session: Session,
    source: MetricsSource,
    date: str,
    channel_id: str = META_CHANNEL_ID,
    batch_size: Optional[int] = None,
) -> SyncDayResult:
    """Sync one calendar day."""
    window, insights = await _sync_window(
        session,
        source,
        date,
        date,
        channel_id,
        batch_size or settings.metrics_batch_size,
    )
    normalized = [normalize_insight_row(r) for r in insights]
    return SyncDayResult(
        date=date,
        campaigns=window.campaigns,
        ad_rows=window.ad_rows,
        metrics_upserted=window.metrics_upserted,
        dropped_rows=window.dropped_rows,
        results=sum(n["results"] for n in normalized),
        conversations_started=sum(n["conversations_started"] for n in normalized),
    )


async def sync_meta_for_range(
    session: Session,
    source: MetricsSource,
    since: str,
    until: str,
    channel_id: str = META_CHANNEL_ID,
    batch_size: Optional[int] = None,
) -> SyncRangeResult:
    """Sync [since, until] with a single insights request (source paginates)."""
    if not validate_date(since) or not validate_date(until):
        raise ValidationError("since and until must be YYYY-MM-DD")
    if since > until:
        raise ValidationError("since must not be after until")
    result, _ = await _sync_window(
        session,
        source,
        since,
        until,
        channel_id,
        batch_size or settings.metrics_batch_size,
    )
    return result


async def _check_access(source: MetricsSource) -> None:
    """Fail on bad credentials or account access before any row is touched."""
    try:
        await source.fetch_campaigns()
    except ConfigError:
        raise
    except Exception as exc:
        fatal = classify_fatal(exc)
        if fatal is not None:
            logger.error(f"History sync refused to start: {fatal.kind}")
            raise fatal from exc
        # transient failures are left to the chunks
        logger.warning(f"Access check failed, continuing: {exc}")


async def run_history_sync(
    session: Session,
    source: MetricsSource,
    since: str,
    until: Optional[str] = None,
    channel_id: str = META_CHANNEL_ID,
    delay_between_chunks_ms: Optional[int] = None,
    on_chunk: Optional[ChunkCallback] = None,
) -> HistorySyncOutput:
    """Backfill [since, until] (until defaults to yesterday) month by month.

    Credentials and account access are checked first. Then the most recent
    day's rows are deleted so a partial day from an earlier failed run is not
    counted twice. A failing chunk is recorded and
    the run moves on, except for an expired token or a missing ad-account
    permission, which abort the remaining chunks.
    """
    until = until or get_yesterday()
    if not validate_date(since) or not validate_date(until):
        raise ValidationError("since and until must be YYYY-MM-DD")
    if since > until:
        raise ValidationError(f"since ({since}) must not be after {until}")
    delay_ms = (
        settings.history_chunk_delay_ms
        if delay_between_chunks_ms is None
        else delay_between_chunks_ms
    )

    await _check_access(source)
    deleted = store.delete_metrics_for_dates(session, channel_id, [until])
    logger.info(
        f"History sync starting, cleared {deleted} rows for {until}",
        extra={"channel_id": channel_id, "since": since, "until": until},
    )

    chunks = monthly_chunks(since, until)
    details: List[ChunkResult] = []

    for i, (chunk_since, chunk_until) in enumerate(chunks):
        try:
            result = await sync_meta_for_range(
                session, source, chunk_since, chunk_until, channel_id
            )
        except ConfigError:
            raise
        except Exception as exc:
            session.rollback()
            message = str(exc)
            chunk = ChunkResult(since=chunk_since, until=chunk_until, ok=False, error=message)
            details.append(chunk)
            if on_chunk:
                on_chunk(chunk, None)
            fatal = classify_fatal(exc)
            if fatal is not None:
                logger.error(
                    f"History sync aborted at chunk {i + 1}/{len(chunks)}: {fatal.kind}",
                    extra={"since": chunk_since, "until": chunk_until},
                )
                raise fatal from exc
            logger.warning(
                f"Chunk {i + 1}/{len(chunks)} failed: {message}",
                extra={"since": chunk_since, "until": chunk_until},
            )
        else:
            chunk = ChunkResult(since=chunk_since, until=chunk_until, ok=True)
            details.append(chunk)
            if on_chunk:
                on_chunk(chunk, result)

        if i < len(chunks) - 1 and delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)

    success = sum(1 for d in details if d.ok)
    output = HistorySyncOutput(
        since=since,
        until=until,
        chunks_total=len(chunks),
        success=success,
        errors=len(details) - success,
        details=details,
    )
    logger.info(
        f"History sync finished: {output.success}/{output.chunks_total} chunks ok",
        extra={"channel_id": channel_id, "since": since, "until": until},
    )
    return output
