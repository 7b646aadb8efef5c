"""AdsDash — Meta Sync Routes.

Manual triggers for the three sync scopes plus the cron entry point used by
the hosting platform's scheduler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlmodel import Session

from adsdash.api.deps import get_metrics_source
from adsdash.config import settings
from adsdash.connectors.meta.endpoints import MetaAdsSource
from adsdash.core.dates import get_yesterday, validate_date
from adsdash.core.logging import get_logger
from adsdash.database import get_session
from adsdash.sync.orchestrator import (
    run_history_sync,
    sync_meta_for_day,
    sync_meta_for_range,
)

logger = get_logger("api.sync")

router = APIRouter(prefix="/api", tags=["Sync"])


@router.post("/sync/meta")
async def sync_meta_day(
    date: Optional[str] = None,
    session: Session = Depends(get_session),
    source: MetaAdsSource = Depends(get_metrics_source),
):
    """Sync one day (defaults to yesterday)."""
    day = validate_date(date) or get_yesterday()
    result = await sync_meta_for_day(session, source, day, settings.default_channel_id)
    return {"ok": True, **result.model_dump()}


@router.post("/sync/meta/range")
async def sync_meta_range(
    since: Optional[str] = None,
    until: Optional[str] = None,
    session: Session = Depends(get_session),
    source: MetaAdsSource = Depends(get_metrics_source),
):
    """Sync [since, until] with one insights request. Both dates are required."""
    result = await sync_meta_for_range(
        session, source, since or "", until or "", settings.default_channel_id
    )
    return {"ok": True, **result.model_dump()}


@router.post("/sync/meta/history")
async def sync_meta_history(
    since: Optional[str] = None,
    until: Optional[str] = None,
    session: Session = Depends(get_session),
    source: MetaAdsSource = Depends(get_metrics_source),
):
    """Backfill month by month. Can take minutes for long ranges."""
    output = await run_history_sync(
        session,
        source,
        validate_date(since) or settings.history_default_since,
        validate_date(until),
        settings.default_channel_id,
    )
    return {"ok": True, **output.model_dump()}


@router.get("/cron/sync-meta")
async def cron_sync_meta(
    authorization: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    source: MetaAdsSource = Depends(get_metrics_source),
):
    """Scheduled sync of yesterday. Requires `Bearer <CRON_SECRET>` when one is set."""
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        logger.warning("Cron call rejected", extra={"endpoint": "/api/cron/sync-meta"})
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = await sync_meta_for_day(
        session, source, get_yesterday(), settings.default_channel_id
    )
    return {"ok": True, **result.model_dump()}
