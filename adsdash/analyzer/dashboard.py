"""AdsDash — Dashboard Aggregation Query.

Runs the data flow behind the marketing dashboard:
  load metric rows → attach names → filter → totals
  → previous-period baseline (ranges only) → per-day chart series
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import Session

from adsdash.analyzer.comparison import compute_deltas
from adsdash.analyzer.lookups import (
    ad_lookup,
    campaign_lookup,
    channel_name,
    load_metric_rows,
)
from adsdash.core.dates import previous_period
from adsdash.core.errors import ValidationError
from adsdash.core.logging import get_logger
from adsdash.core.metric_registry import TOTAL_FIELDS, get_metric
from adsdash.models.dashboard_models import (
    ChartPoint,
    DashboardData,
    DashboardFilters,
    DashboardTotals,
    RowByCampaignAd,
)

logger = get_logger("analyzer.dashboard")


def leads_gerais(results: int, leads: int, conversations_started: int) -> int:
    """Prefer `results`; rows synced before it existed fall back to the sum."""
    return results if results > 0 else leads + conversations_started


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class _Dimensions:
    """Name / objective / ad-set lookups for a set of metric rows."""

    def __init__(self, session: Session, metric_rows: Iterable[Dict[str, Any]]):
        metric_rows = list(metric_rows)
        self.campaigns = campaign_lookup(session, {r["campaign_id"] for r in metric_rows})
        self.ads = ad_lookup(session, {r["ad_id"] for r in metric_rows})

    def campaign_name(self, campaign_id: int) -> str:
        return self.campaigns.get(campaign_id, {}).get("name", "")

    def objective(self, campaign_id: int) -> str:
        return self.campaigns.get(campaign_id, {}).get("objective", "")

    def ad_name(self, ad_id: int) -> str:
        return self.ads.get(ad_id, {}).get("name", "")

    def ad_set_id(self, ad_id: int) -> Optional[int]:
        return self.ads.get(ad_id, {}).get("ad_set_id")


def _build_rows(
    metric_rows: List[Dict[str, Any]],
    dims: _Dimensions,
    channel: str,
    with_date: bool,
) -> List[RowByCampaignAd]:
    rows = []
    for m in metric_rows:
        leads = _int(m.get("leads"))
        conversations = _int(m.get("conversations_started"))
        results = _int(m.get("results"))
        rows.append(
            RowByCampaignAd(
                campaign_id=m["campaign_id"],
                campaign_name=dims.campaign_name(m["campaign_id"]),
                ad_id=m["ad_id"],
                ad_name=dims.ad_name(m["ad_id"]),
                date=m["date"] if with_date else None,
                channel_name=channel,
                objective=dims.objective(m["campaign_id"]),
                impressions=_int(m.get("impressions")),
                link_clicks=_int(m.get("link_clicks")),
                spend_brl=_float(m.get("spend_brl")),
                leads=leads,
                leads_gerais=leads_gerais(results, leads, conversations),
                results=results,
                conversations_started=conversations,
            )
        )
    return rows


def apply_filters(
    rows: List[RowByCampaignAd],
    filters: Optional[DashboardFilters],
    dims: _Dimensions,
) -> List[RowByCampaignAd]:
    """AND of every non-empty filter; an empty list restricts nothing."""
    if filters is None or filters.is_empty():
        return rows
    if filters.campaign_ids:
        wanted = set(filters.campaign_ids)
        rows = [r for r in rows if r.campaign_id in wanted]
    if filters.ad_set_ids:
        wanted = set(filters.ad_set_ids)
        rows = [r for r in rows if dims.ad_set_id(r.ad_id) in wanted]
    if filters.ad_ids:
        wanted = set(filters.ad_ids)
        rows = [r for r in rows if r.ad_id in wanted]
    if filters.objective:
        rows = [r for r in rows if dims.objective(r.campaign_id) == filters.objective]
    return rows


def sum_totals(rows: Iterable[RowByCampaignAd]) -> DashboardTotals:
    sums: Dict[str, float] = defaultdict(float)
    for r in rows:
        for name in TOTAL_FIELDS:
            sums[name] += getattr(r, name)
    values = {}
    for name in TOTAL_FIELDS:
        metric = get_metric(name)
        values[name] = int(sums[name]) if metric.is_integer else round(sums[name], 2)
    return DashboardTotals(**values)


def build_chart_data(
    metric_rows: List[Dict[str, Any]],
    dims: _Dimensions,
    campaign_ids: Optional[List[int]] = None,
) -> List[ChartPoint]:
    """Per-day, per-campaign sums; only the campaign filter applies here."""
    wanted = set(campaign_ids or [])
    points: Dict[tuple, ChartPoint] = {}
    for m in metric_rows:
        campaign_id = m["campaign_id"]
        if wanted and campaign_id not in wanted:
            continue
        key = (m["date"], campaign_id)
        point = points.get(key)
        if point is None:
            point = points[key] = ChartPoint(
                date=m["date"],
                campaign_id=campaign_id,
                campaign_name=dims.campaign_name(campaign_id),
            )
        leads = _int(m.get("leads"))
        conversations = _int(m.get("conversations_started"))
        results = _int(m.get("results"))
        point.leads += leads
        point.conversations_started += conversations
        point.results += results
        point.leads_gerais += leads_gerais(results, leads, conversations)
    return sorted(points.values(), key=lambda p: (p.date, p.campaign_name, p.campaign_id))


def load_dashboard_data(
    session: Session,
    date_or_since: str,
    channel_id: str,
    until: Optional[str] = None,
    filters: Optional[DashboardFilters] = None,
) -> DashboardData:
    """Aggregate persisted metrics for a day, or for [since, until] when `until` is given."""
    is_range = bool(until)
    since = date_or_since
    until = until if is_range else date_or_since
    if since > until:
        raise ValidationError(f"since ({since}) must not be after until ({until})")

    metric_rows = load_metric_rows(session, channel_id, since, until)
    dims = _Dimensions(session, metric_rows)
    channel = channel_name(session, channel_id)

    rows = apply_filters(_build_rows(metric_rows, dims, channel, is_range), filters, dims)
    totals = sum_totals(rows)

    data = DashboardData(
        date=since,
        since=since if is_range else None,
        until=until if is_range else None,
        channel_id=channel_id,
        totals=totals,
        rows=rows,
        chart_data=build_chart_data(
            metric_rows, dims, filters.campaign_ids if filters else None
        ),
    )

    if is_range:
        prev_since, prev_until = previous_period(since, until)
        prev_metric_rows = load_metric_rows(session, channel_id, prev_since, prev_until)
        prev_dims = _Dimensions(session, prev_metric_rows)
        prev_rows = apply_filters(
            _build_rows(prev_metric_rows, prev_dims, channel, True), filters, prev_dims
        )
        data.previous_totals = sum_totals(prev_rows)
        data.deltas = compute_deltas(totals, data.previous_totals)

    logger.info(
        f"Dashboard loaded: {len(rows)} rows",
        extra={"channel_id": channel_id, "since": since, "until": until},
    )
    return data
