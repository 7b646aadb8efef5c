"""AdsDash — Read-side Loaders.

Metric rows and dimension lookups for the dashboard queries. Optional
columns are read through the schema-capability fallback, so an older schema
yields empty objectives / no ad sets instead of a failed query.
"""

from typing import Any, Dict, Iterable, List

from sqlalchemy.exc import DBAPIError
from sqlmodel import Session, select

from adsdash.core.schema import capabilities, is_missing_table, run_with_fallback
from adsdash.models.marketing_models import Ad, AdSet, Campaign, Channel, DailyMetric

METRIC_COLUMNS = (
    "date",
    "campaign_id",
    "ad_id",
    "impressions",
    "link_clicks",
    "spend_brl",
    "leads",
    "conversations_started",
)


def load_metric_rows(
    session: Session, channel_id: str, since: str, until: str
) -> List[Dict[str, Any]]:
    """Persisted metric rows of a channel for [since, until], oldest first."""

    def attempt(skip: set) -> List[Dict[str, Any]]:
        names = list(METRIC_COLUMNS)
        if "results" not in skip:
            names.append("results")
        columns = [getattr(DailyMetric, n) for n in names]
        stmt = (
            select(*columns)
            .where(
                DailyMetric.channel_id == channel_id,
                DailyMetric.date >= since,
                DailyMetric.date <= until,
            )
            .order_by(DailyMetric.date, DailyMetric.id)  # type: ignore
        )
        return [dict(row._mapping) for row in session.exec(stmt).all()]

    return run_with_fallback(session, "daily_metrics", ("results",), attempt)


def campaign_lookup(session: Session, ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """id → {name, objective}; objective is "" when unknown or unavailable."""
    ids = list(ids)
    if not ids:
        return {}

    def attempt(skip: set) -> Dict[int, Dict[str, Any]]:
        columns = [Campaign.id, Campaign.name]
        if "objective" not in skip:
            columns.append(Campaign.objective)
        stmt = select(*columns).where(Campaign.id.in_(ids))  # type: ignore
        lookup = {}
        for row in session.exec(stmt).all():
            data = row._mapping
            lookup[data["id"]] = {
                "name": data["name"] or "",
                "objective": data.get("objective") or "",
            }
        return lookup

    return run_with_fallback(session, "campaigns", ("objective",), attempt)


def ad_lookup(session: Session, ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """id → {name, campaign_id, ad_set_id}."""
    ids = list(ids)
    if not ids:
        return {}

    def attempt(skip: set) -> Dict[int, Dict[str, Any]]:
        columns = [Ad.id, Ad.name, Ad.campaign_id]
        if "ad_set_id" not in skip:
            columns.append(Ad.ad_set_id)
        stmt = select(*columns).where(Ad.id.in_(ids))  # type: ignore
        lookup = {}
        for row in session.exec(stmt).all():
            data = row._mapping
            lookup[data["id"]] = {
                "name": data["name"] or "",
                "campaign_id": data["campaign_id"],
                "ad_set_id": data.get("ad_set_id"),
            }
        return lookup

    return run_with_fallback(session, "ads", ("ad_set_id",), attempt)


def ad_set_rows(
    session: Session, ids: Iterable[int], campaign_ids: Iterable[int]
) -> List[Dict[str, Any]]:
    """Ad sets by id within the given campaigns; empty if the table is absent."""
    ids, campaign_ids = list(ids), list(campaign_ids)
    if not ids or not campaign_ids or not capabilities.available("ad_sets"):
        return []
    stmt = (
        select(AdSet.id, AdSet.name, AdSet.campaign_id)
        .where(AdSet.id.in_(ids), AdSet.campaign_id.in_(campaign_ids))  # type: ignore
        .order_by(AdSet.name)
    )
    try:
        return [dict(row._mapping) for row in session.exec(stmt).all()]
    except DBAPIError as exc:
        session.rollback()
        if not is_missing_table(exc, "ad_sets"):
            raise
        capabilities.mark_missing("ad_sets")
        return []


def channel_name(session: Session, channel_id: str) -> str:
    channel = session.get(Channel, channel_id)
    return channel.name if channel else ""


def enabled_channels(session: Session) -> List[Channel]:
    stmt = select(Channel).where(Channel.enabled == True).order_by(Channel.name)  # noqa: E712
    return list(session.exec(stmt).all())
