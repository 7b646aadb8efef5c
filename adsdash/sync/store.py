"""AdsDash — Idempotent Writes.

Every write is an INSERT ... ON CONFLICT DO UPDATE on the table's unique key,
so re-running a sync overwrites instead of duplicating (last write wins).
Dimension upserts commit one at a time; metric rows commit per batch.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import column, delete
from sqlalchemy import table as sa_table
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session

from adsdash.core.schema import run_with_fallback
from adsdash.core.logging import get_logger
from adsdash.models.marketing_models import (
    AD_NAME_MAX_LENGTH,
    Ad,
    AdSet,
    Campaign,
    Channel,
    DailyMetric,
)

logger = get_logger("sync.store")

METRIC_KEY = ("channel_id", "campaign_id", "ad_id", "date")


def _insert(session: Session, model, columns: Iterable[str]):
    """Dialect-specific INSERT supporting ON CONFLICT.

    The target lists only the columns being written (plus `id`), so Python-side
    defaults of omitted columns never re-enter the statement.
    """
    model_columns = model.__table__.c
    names = dict.fromkeys(["id", *columns])
    table = sa_table(
        model.__tablename__,
        *[column(n, model_columns[n].type) for n in names if n in model_columns],
    )
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)


def _upsert_stmt(
    session: Session,
    model,
    values: Dict[str, Any] | List[Dict[str, Any]],
    key: Sequence[str],
):
    columns = values[0] if isinstance(values, list) else values
    stmt = _insert(session, model, columns).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(key),
        set_={c: getattr(stmt.excluded, c) for c in columns if c not in key},
    )
    return stmt


def _upsert_returning_id(session: Session, model, values, key) -> int:
    stmt = _upsert_stmt(session, model, values, key)
    stmt = stmt.returning(stmt.table.c.id)
    row_id = session.exec(stmt).scalar_one()  # type: ignore
    session.commit()
    return row_id


def truncate_name(name: Optional[str], fallback: str) -> str:
    return (name or fallback)[:AD_NAME_MAX_LENGTH]


def upsert_channel(
    session: Session, channel_id: str, name: str, enabled: bool = True
) -> None:
    values = {"id": channel_id, "name": name, "enabled": enabled}
    session.exec(_upsert_stmt(session, Channel, values, ("id",)))  # type: ignore
    session.commit()


def upsert_campaign(
    session: Session,
    channel_id: str,
    external_id: str,
    name: str,
    objective: Optional[str] = None,
) -> int:
    """Insert or update a campaign; returns its internal id."""

    def attempt(skip: set) -> int:
        values = {"channel_id": channel_id, "external_id": external_id, "name": name}
        if "objective" not in skip:
            values["objective"] = objective
        return _upsert_returning_id(
            session, Campaign, values, ("channel_id", "external_id")
        )

    return run_with_fallback(session, "campaigns", ("objective",), attempt)


def upsert_ad_set(session: Session, campaign_id: int, external_id: str, name: str) -> int:
    values = {
        "campaign_id": campaign_id,
        "external_id": external_id,
        "name": truncate_name(name, external_id),
    }
    return _upsert_returning_id(session, AdSet, values, ("campaign_id", "external_id"))


def upsert_ad(
    session: Session,
    campaign_id: int,
    external_id: str,
    name: str,
    ad_set_id: Optional[int] = None,
) -> int:
    """Insert or update an ad; an unknown ad set leaves the stored link untouched."""

    def attempt(skip: set) -> int:
        values: Dict[str, Any] = {
            "campaign_id": campaign_id,
            "external_id": external_id,
            "name": truncate_name(name, external_id),
        }
        if ad_set_id is not None and "ad_set_id" not in skip:
            values["ad_set_id"] = ad_set_id
        return _upsert_returning_id(
            session, Ad, values, ("campaign_id", "external_id")
        )

    return run_with_fallback(session, "ads", ("ad_set_id",), attempt)


def upsert_daily_metrics(
    session: Session,
    records: Sequence[Dict[str, Any]],
    batch_size: int = 100,
) -> int:
    """Upsert metric records in batches; returns the number of rows written."""
    written = 0
    for start in range(0, len(records), batch_size):
        batch = list(records[start : start + batch_size])

        def attempt(skip: set) -> int:
            values = [{k: v for k, v in r.items() if k not in skip} for r in batch]
            session.exec(_upsert_stmt(session, DailyMetric, values, METRIC_KEY))  # type: ignore
            session.commit()
            return len(values)

        written += run_with_fallback(session, "daily_metrics", ("results",), attempt)
    logger.info(f"Upserted {written} daily metric rows")
    return written


def delete_metrics_for_dates(
    session: Session, channel_id: str, dates: Iterable[str]
) -> int:
    """Remove a channel's metric rows for the given dates."""
    stmt = delete(DailyMetric).where(
        DailyMetric.channel_id == channel_id,
        DailyMetric.date.in_(list(dates)),  # type: ignore
    )
    deleted = session.exec(stmt).rowcount  # type: ignore
    session.commit()
    return deleted or 0
