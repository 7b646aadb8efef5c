"""
Tests for the month-by-month history backfill
"""
import asyncio

import pytest
from sqlmodel import select

from adsdash.config import settings
from adsdash.core.errors import (
    ConfigError,
    MetaAccessTokenExpiredError,
    MetaAdAccountPermissionError,
    UpstreamError,
    ValidationError,
)
from adsdash.models.marketing_models import DailyMetric
from adsdash.sync.orchestrator import run_history_sync

from conftest import FakeSource, insight, seed_metric

EXPIRED_BODY = (
    '{"error":{"message":"Error validating access token: Session has expired",'
    '"type":"OAuthException","code":190}}'
)


def per_window(since, until):
    return [insight(date=since)]


def backfill(session, source, since="2025-08-15", until="2025-10-03", **kwargs):
    kwargs.setdefault("delay_between_chunks_ms", 0)
    return asyncio.run(run_history_sync(session, source, since, until, **kwargs))


class TestHistorySync:
    def test_runs_every_monthly_chunk(self, session):
        source = FakeSource(insights=per_window)
        output = backfill(session, source)

        assert source.calls == [
            ("2025-08-15", "2025-08-31"),
            ("2025-09-01", "2025-09-30"),
            ("2025-10-01", "2025-10-03"),
        ]
        assert output.chunks_total == 3
        assert output.success == 3
        assert output.errors == 0
        assert [d.ok for d in output.details] == [True, True, True]
        assert len(session.exec(select(DailyMetric)).all()) == 3

    def test_clears_last_day_before_starting(self, session):
        seed_metric(session, ad_ext="stale", date="2025-10-03", impressions=5)
        seed_metric(session, ad_ext="kept", date="2025-10-02", impressions=6)

        backfill(session, FakeSource(insights=[]), since="2025-10-01")

        dates = [m.date for m in session.exec(select(DailyMetric)).all()]
        assert dates == ["2025-10-02"]

    def test_recoverable_chunk_failure_continues(self, session):
        source = FakeSource(
            insights=per_window,
            failures={"2025-09-01": UpstreamError("Meta ad insights: 500 boom", status_code=500)},
        )
        output = backfill(session, source)

        assert len(source.calls) == 3
        assert output.success == 2
        assert output.errors == 1
        failed = output.details[1]
        assert not failed.ok
        assert "boom" in failed.error

    def test_expired_token_aborts_and_keeps_earlier_chunks(self, session):
        source = FakeSource(
            insights=per_window,
            failures={
                "2025-09-01": UpstreamError(
                    f"Meta ad insights: 400 {EXPIRED_BODY}",
                    status_code=400,
                    error_code=190,
                    body=EXPIRED_BODY,
                )
            },
        )
        with pytest.raises(MetaAccessTokenExpiredError) as exc_info:
            backfill(session, source)

        assert str(exc_info.value) == "META_ACCESS_TOKEN_EXPIRED"
        assert "Session has expired" in exc_info.value.meta_message
        assert exc_info.value.remediation
        # third chunk never requested, first chunk's rows survive
        assert len(source.calls) == 2
        assert [m.date for m in session.exec(select(DailyMetric)).all()] == ["2025-08-15"]

    def test_permission_error_aborts(self, session):
        source = FakeSource(
            insights=per_window,
            failures={
                "2025-08-15": UpstreamError(
                    "Meta ad insights: 403 (#200) Ad account owner has NOT grant "
                    "ads_management or ads_read permission",
                    status_code=403,
                )
            },
        )
        with pytest.raises(MetaAdAccountPermissionError):
            backfill(session, source)
        assert len(source.calls) == 1

    def test_chunk_callback(self, session):
        seen = []
        source = FakeSource(
            insights=per_window,
            failures={"2025-10-01": UpstreamError("Meta ad insights: 500 boom")},
        )
        backfill(session, source, on_chunk=lambda chunk, result: seen.append((chunk, result)))

        assert [c.since for c, _ in seen] == ["2025-08-15", "2025-09-01", "2025-10-01"]
        assert seen[0][1].metrics_upserted == 1
        assert seen[2][0].ok is False and seen[2][1] is None

    def test_config_error_propagates(self, session):
        source = FakeSource(failures={"2025-08-15": ConfigError("META_ACCESS_TOKEN is required")})
        with pytest.raises(ConfigError):
            backfill(session, source)

    def test_reversed_range_is_rejected(self, session):
        with pytest.raises(ValidationError):
            backfill(session, FakeSource(), since="2025-10-05", until="2025-10-01")

    def test_access_failure_leaves_last_day_untouched(self, session):
        seed_metric(session, date="2025-10-03", impressions=5)
        source = FakeSource(campaign_failure=ConfigError("META_ACCESS_TOKEN is required"))

        with pytest.raises(ConfigError):
            backfill(session, source, since="2025-10-01")

        assert source.calls == []
        assert session.exec(select(DailyMetric.impressions)).all() == [5]

    def test_expired_token_found_before_delete(self, session):
        seed_metric(session, date="2025-10-03", impressions=5)
        expired = UpstreamError(
            f"Meta campaigns: 400 {EXPIRED_BODY}", status_code=400, error_code=190, body=EXPIRED_BODY
        )

        with pytest.raises(MetaAccessTokenExpiredError):
            backfill(session, FakeSource(campaign_failure=expired), since="2025-10-01")

        assert len(session.exec(select(DailyMetric)).all()) == 1


class TestChunkDelay:
    @pytest.fixture
    def sleeps(self, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("adsdash.sync.orchestrator.asyncio.sleep", fake_sleep)
        return delays

    def test_waits_between_chunks_only(self, session, sleeps):
        backfill(session, FakeSource(insights=per_window), delay_between_chunks_ms=800)
        # three chunks, no wait after the last one
        assert sleeps == [0.8, 0.8]

    def test_default_delay_comes_from_settings(self, session, sleeps, monkeypatch):
        monkeypatch.setattr(settings, "history_chunk_delay_ms", 800)
        source = FakeSource(insights=per_window)
        asyncio.run(run_history_sync(session, source, "2025-09-01", "2025-10-03"))
        assert sleeps == [0.8]

    def test_single_chunk_never_waits(self, session, sleeps):
        backfill(session, FakeSource(), since="2025-10-01", delay_between_chunks_ms=800)
        assert sleeps == []

    def test_no_wait_after_fatal_abort(self, session, sleeps):
        source = FakeSource(
            insights=per_window,
            failures={
                "2025-09-01": UpstreamError(
                    f"Meta ad insights: 400 {EXPIRED_BODY}",
                    status_code=400,
                    error_code=190,
                    body=EXPIRED_BODY,
                )
            },
        )
        with pytest.raises(MetaAccessTokenExpiredError):
            backfill(session, source, delay_between_chunks_ms=800)
        # one wait after the first chunk, none after the aborted second
        assert sleeps == [0.8]

    def test_zero_delay_skips_waiting(self, session, sleeps):
        backfill(session, FakeSource(insights=per_window), delay_between_chunks_ms=0)
        assert sleeps == []
