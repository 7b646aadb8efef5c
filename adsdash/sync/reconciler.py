"""AdsDash — External → Internal Identifier Reconciliation.

Maps Meta campaign / ad set / ad ids onto internal row ids. Each external id
is upserted at most once per sync pass; the mappings live on a SyncContext
created per pass, never at module level.
"""

from typing import Any, Dict, List, Optional, Set

from sqlalchemy.exc import DBAPIError
from sqlmodel import Session

from adsdash.connectors.meta.transformer import normalize_insight_row
from adsdash.core.errors import ReconciliationGapError
from adsdash.core.logging import get_logger
from adsdash.core.schema import capabilities, is_missing_table
from adsdash.sync import store

logger = get_logger("sync.reconciler")


class SyncContext:
    """Caches and counters scoped to one sync pass."""

    def __init__(self, session: Session, channel_id: str):
        self.session = session
        self.channel_id = channel_id
        self.campaigns: Dict[str, int] = {}
        # "<campaign internal id>:<external id>" → internal id
        self.ad_sets: Dict[str, int] = {}
        self.ads: Dict[str, int] = {}
        self.missing_campaign_ids: Set[str] = set()
        self.dropped_rows = 0

    @staticmethod
    def child_key(campaign_id: int, external_id: str) -> str:
        return f"{campaign_id}:{external_id}"


def reconcile_campaigns(ctx: SyncContext, campaigns: List[Dict[str, Any]]) -> None:
    """Upsert every listed campaign and remember its internal id."""
    for c in campaigns:
        external_id = str(c["external_id"])
        if external_id in ctx.campaigns:
            continue
        ctx.campaigns[external_id] = store.upsert_campaign(
            ctx.session,
            ctx.channel_id,
            external_id,
            c.get("name") or external_id,
            c.get("objective"),
        )
    logger.info(
        f"Reconciled {len(ctx.campaigns)} campaigns",
        extra={"channel_id": ctx.channel_id},
    )


def resolve_ad_set(
    ctx: SyncContext, campaign_id: int, row: Dict[str, Any]
) -> Optional[int]:
    """Internal ad-set id for the row, upserting on first encounter."""
    external_id = row.get("adset_id")
    if not external_id or not capabilities.available("ad_sets"):
        return None
    external_id = str(external_id)
    key = ctx.child_key(campaign_id, external_id)
    if key not in ctx.ad_sets:
        try:
            ctx.ad_sets[key] = store.upsert_ad_set(
                ctx.session, campaign_id, external_id, row.get("adset_name") or ""
            )
        except DBAPIError as exc:
            ctx.session.rollback()
            if not is_missing_table(exc, "ad_sets"):
                raise
            capabilities.mark_missing("ad_sets")
            return None
    return ctx.ad_sets[key]


def resolve_ad(ctx: SyncContext, campaign_id: int, row: Dict[str, Any]) -> int:
    external_id = str(row["ad_id"])
    key = ctx.child_key(campaign_id, external_id)
    if key not in ctx.ads:
        ad_set_id = resolve_ad_set(ctx, campaign_id, row)
        ctx.ads[key] = store.upsert_ad(
            ctx.session,
            campaign_id,
            external_id,
            row.get("ad_name") or "",
            ad_set_id,
        )
    return ctx.ads[key]


def build_metric_records(
    ctx: SyncContext,
    insights: List[Dict[str, Any]],
    default_date: str,
) -> List[Dict[str, Any]]:
    """Resolve every insight row and normalize it into a daily metric record.

    Rows whose campaign is unknown are dropped. If none of a non-empty fetch
    resolves, the campaign listing and the insights disagree on the account
    and ReconciliationGapError is raised.
    """
    records: Dict[tuple, Dict[str, Any]] = {}
    for row in insights:
        campaign_external = str(row.get("campaign_id") or "")
        ad_external = str(row.get("ad_id") or "")
        if not campaign_external or not ad_external:
            ctx.dropped_rows += 1
            continue

        campaign_id = ctx.campaigns.get(campaign_external)
        if campaign_id is None:
            ctx.missing_campaign_ids.add(campaign_external)
            ctx.dropped_rows += 1
            continue

        ad_id = resolve_ad(ctx, campaign_id, row)
        day = row.get("date_start") or default_date
        # A repeated (ad, day) in one fetch keeps the last row
        records[(campaign_id, ad_id, day)] = {
            "channel_id": ctx.channel_id,
            "campaign_id": campaign_id,
            "ad_id": ad_id,
            "date": day,
            **normalize_insight_row(row),
        }

    if insights and not records:
        raise ReconciliationGapError(
            sorted(ctx.missing_campaign_ids), list(ctx.campaigns), len(ctx.campaigns)
        )
    if ctx.dropped_rows:
        logger.warning(
            f"Dropped {ctx.dropped_rows} insight rows without a known campaign/ad "
            f"(unknown campaigns: {', '.join(sorted(ctx.missing_campaign_ids)[:5]) or '-'})",
            extra={"channel_id": ctx.channel_id},
        )
    return list(records.values())
