"""AdsDash — Optional Column Capabilities.

Some deployments run with an older schema (no `campaigns.objective`,
`ads.ad_set_id`, `daily_metrics.results`, or no `ad_sets` table at all).
The first statement that trips over a missing column records that fact for
the rest of the process so later statements leave the column out up front.
"""

from typing import Callable, Iterable, Optional, Set, Tuple, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlmodel import Session

from adsdash.core.errors import SchemaDriftError
from adsdash.core.logging import get_logger

logger = get_logger("schema")

T = TypeVar("T")

WHOLE_TABLE = "*"


class SchemaCapabilities:
    """Process-wide record of optional columns/tables the store lacks."""

    def __init__(self) -> None:
        self._missing: Set[Tuple[str, str]] = set()

    def available(self, table: str, column: str = WHOLE_TABLE) -> bool:
        if (table, WHOLE_TABLE) in self._missing:
            return False
        return (table, column) not in self._missing

    def mark_missing(self, table: str, column: str = WHOLE_TABLE) -> None:
        if (table, column) not in self._missing:
            self._missing.add((table, column))
            target = table if column == WHOLE_TABLE else f"{table}.{column}"
            logger.warning(f"Schema drift: {target} not available, skipping from now on")

    def missing_columns(self, table: str, optional: Iterable[str]) -> Set[str]:
        return {c for c in optional if not self.available(table, c)}

    def reset(self) -> None:
        self._missing.clear()


capabilities = SchemaCapabilities()


def _db_message(exc: Exception) -> str:
    return str(getattr(exc, "orig", None) or exc).lower()


def drifted_column(exc: Exception, candidates: Iterable[str]) -> Optional[str]:
    """Which optional column a DB error says is missing, if any."""
    message = _db_message(exc)
    if "column" not in message or "violates" in message or "constraint" in message:
        return None
    for column in candidates:
        if column.lower() in message:
            return column
    return None


def is_missing_table(exc: Exception, table: str) -> bool:
    message = _db_message(exc)
    return table.lower() in message and (
        "no such table" in message
        or "does not exist" in message
        or "schema cache" in message
    )


def run_with_fallback(
    session: Session,
    table: str,
    optional: Iterable[str],
    attempt: Callable[[Set[str]], T],
) -> T:
    """Run `attempt(skip)` leaving out optional columns the store lacks.

    A missing optional column is remembered and the attempt is retried once
    without it. If the retry fails too, SchemaDriftError is raised.
    """
    optional = tuple(optional)
    skip = capabilities.missing_columns(table, optional)
    try:
        return attempt(skip)
    except DBAPIError as exc:
        session.rollback()
        column = drifted_column(exc, [c for c in optional if c not in skip])
        if column is None:
            raise
        capabilities.mark_missing(table, column)

    try:
        return attempt(skip | {column})
    except DBAPIError as retry_exc:
        session.rollback()
        raise SchemaDriftError(table, column, str(retry_exc.orig)) from retry_exc
