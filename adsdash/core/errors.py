"""AdsDash — Error Taxonomy.

Recoverable errors (schema drift, partial reconciliation gaps, a single
backfill chunk failing upstream) are handled where they occur. Everything
else propagates to the HTTP / CLI boundary with its kind and original message.
"""

import re
from typing import Iterable, Optional


class AdsDashError(Exception):
    """Base class for every error raised by AdsDash."""


class ConfigError(AdsDashError):
    """Required credential or account id is not configured."""


class ValidationError(AdsDashError):
    """Malformed query or sync parameters."""


class UpstreamError(AdsDashError):
    """Raised when the Meta API returns a non-2xx response."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        error_code: int = 0,
        body: str = "",
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.body = body
        super().__init__(message)


class FatalUpstreamError(UpstreamError):
    """Upstream failure that no amount of retrying will fix."""

    kind = "META_FATAL"
    remediation = ""

    def __init__(self, meta_message: str, status_code: int = 0, error_code: int = 0):
        self.meta_message = meta_message
        super().__init__(self.kind, status_code, error_code, meta_message)


class MetaAccessTokenExpiredError(FatalUpstreamError):
    kind = "META_ACCESS_TOKEN_EXPIRED"
    remediation = (
        "The Meta access token expired or is invalid. Generate a new token "
        "with ads_read, ads_management and business_management permissions "
        "and update META_ACCESS_TOKEN."
    )


class MetaAdAccountPermissionError(FatalUpstreamError):
    kind = "META_AD_ACCOUNT_PERMISSION"
    remediation = (
        "The ad account owner has not granted ads_read or ads_management to "
        "this app / system user. Grant access in Business Settings and retry."
    )


class SchemaDriftError(AdsDashError):
    """The store rejected an optional column even after retrying without it."""

    def __init__(self, table: str, column: str, detail: str = ""):
        self.table = table
        self.column = column
        message = f"{table}.{column} is not available in the database schema"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ReconciliationGapError(AdsDashError):
    """No insight row could be mapped to a known campaign."""

    def __init__(self, missing_ids: Iterable[str], known_ids: Iterable[str], known_count: int):
        self.missing_ids = list(missing_ids)
        self.known_ids = list(known_ids)
        self.known_count = known_count
        sample = ", ".join(self.missing_ids[:5]) or "-"
        known = ", ".join(self.known_ids[:5]) or "-"
        super().__init__(
            f"No rows persisted: insight campaign_id values (e.g. {sample}) do not "
            f"match the campaigns listed for the account (e.g. {known}). "
            f"Campaigns mapped: {known_count}. Check that the campaign listing and "
            f"the insights endpoint point at the same ad account."
        )


# ── Fatal upstream detection ──

_TOKEN_PATTERNS = ("Session has expired", "Error validating access token")
_PERMISSION_PATTERNS = ("has NOT grant ads_management or ads_read",)
_TOKEN_CODE = re.compile(r'"code"\s*:\s*190\b')
_PERMISSION_CODE = re.compile(r'"code"\s*:\s*200\b')


def classify_fatal(exc: Exception) -> Optional[FatalUpstreamError]:
    """Return the fatal error an upstream failure maps to, if any."""
    if isinstance(exc, FatalUpstreamError):
        return exc
    message = str(exc)
    if isinstance(exc, UpstreamError) and exc.body:
        message = f"{message} {exc.body}"
    status_code = getattr(exc, "status_code", 0)
    error_code = getattr(exc, "error_code", 0)

    if (
        any(p in message for p in _TOKEN_PATTERNS)
        or _TOKEN_CODE.search(message)
        or error_code == 190
    ):
        return MetaAccessTokenExpiredError(str(exc), status_code, error_code)
    if (
        any(p in message for p in _PERMISSION_PATTERNS)
        or _PERMISSION_CODE.search(message)
        or error_code == 200
    ):
        return MetaAdAccountPermissionError(str(exc), status_code, error_code)
    return None
