"""
Shared fixtures for the AdsDash test suite
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("META_ACCESS_TOKEN", "test-token")
os.environ.setdefault("META_AD_ACCOUNT_ID", "123456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from adsdash.api.deps import get_metrics_source
from adsdash.core.schema import capabilities
from adsdash.database import get_session
from adsdash.main import app
from adsdash.sync import store


def make_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


# Deployment that predates campaigns.objective, ads.ad_set_id,
# daily_metrics.results and the ad_sets table
LEGACY_DDL = (
    """CREATE TABLE channels (
        id VARCHAR PRIMARY KEY,
        name VARCHAR NOT NULL,
        enabled BOOLEAN NOT NULL DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE campaigns (
        id INTEGER PRIMARY KEY,
        channel_id VARCHAR NOT NULL,
        external_id VARCHAR NOT NULL,
        name VARCHAR NOT NULL DEFAULT '',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (channel_id, external_id)
    )""",
    """CREATE TABLE ads (
        id INTEGER PRIMARY KEY,
        campaign_id INTEGER NOT NULL,
        external_id VARCHAR NOT NULL,
        name VARCHAR NOT NULL DEFAULT '',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (campaign_id, external_id)
    )""",
    """CREATE TABLE daily_metrics (
        id INTEGER PRIMARY KEY,
        channel_id VARCHAR NOT NULL,
        campaign_id INTEGER NOT NULL,
        ad_id INTEGER NOT NULL,
        date VARCHAR NOT NULL,
        impressions INTEGER NOT NULL DEFAULT 0,
        link_clicks INTEGER NOT NULL DEFAULT 0,
        spend_brl NUMERIC(14, 2) NOT NULL DEFAULT 0,
        leads INTEGER NOT NULL DEFAULT 0,
        conversations_started INTEGER NOT NULL DEFAULT 0,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (channel_id, campaign_id, ad_id, date)
    )""",
)


@pytest.fixture(autouse=True)
def reset_capabilities():
    capabilities.reset()
    yield
    capabilities.reset()


@pytest.fixture
def session():
    engine = make_engine()
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


@pytest.fixture
def legacy_session():
    engine = make_engine()
    with engine.begin() as conn:
        for ddl in LEGACY_DDL:
            conn.execute(text(ddl))
    with Session(engine) as s:
        yield s
    engine.dispose()


# ── Fake Meta source ──


def insight(
    campaign="c1",
    ad="a1",
    date="2025-10-03",
    impressions="100",
    clicks="10",
    spend="12.345",
    actions=None,
    adset="s1",
    **extra,
):
    """One Meta ad-level insight row with string-typed numbers."""
    row = {
        "campaign_id": campaign,
        "campaign_name": f"Campaign {campaign}",
        "ad_id": ad,
        "ad_name": f"Ad {ad}",
        "adset_id": adset,
        "adset_name": f"Ad set {adset}" if adset else None,
        "date_start": date,
        "impressions": impressions,
        "clicks": clicks,
        "spend": spend,
        "actions": actions or [],
    }
    row.update(extra)
    return row


class FakeSource:
    """In-memory stand-in for MetaAdsSource."""

    def __init__(self, campaigns=None, insights=None, failures=None, campaign_failure=None):
        self.campaigns = campaigns if campaigns is not None else [
            {"external_id": "c1", "name": "Campaign c1", "objective": "OUTCOME_LEADS"}
        ]
        # list of rows, or callable(since, until) -> rows
        self.insights = insights if insights is not None else []
        # since -> exception raised by fetch_ad_insights for that window
        self.failures = failures or {}
        # raised by every fetch_campaigns call
        self.campaign_failure = campaign_failure
        self.campaign_calls = 0
        self.calls = []

    async def fetch_campaigns(self):
        self.campaign_calls += 1
        if self.campaign_failure is not None:
            raise self.campaign_failure
        return [dict(c) for c in self.campaigns]

    async def fetch_ad_insights(self, since, until):
        self.calls.append((since, until))
        if since in self.failures:
            raise self.failures[since]
        rows = self.insights(since, until) if callable(self.insights) else self.insights
        return [dict(r) for r in rows]


@pytest.fixture
def fake_source():
    return FakeSource()


# ── Seeding helpers ──


def seed_metric(session, campaign_ext="c1", ad_ext="a1", date="2025-10-03",
                objective="OUTCOME_LEADS", ad_set_ext=None, **values):
    """Write one metric row (and its dimensions) straight through the store."""
    store.upsert_channel(session, "meta_ads", "Meta Ads")
    campaign_id = store.upsert_campaign(
        session, "meta_ads", campaign_ext, f"Campaign {campaign_ext}", objective
    )
    ad_set_id = None
    if ad_set_ext:
        ad_set_id = store.upsert_ad_set(session, campaign_id, ad_set_ext, f"Ad set {ad_set_ext}")
    ad_id = store.upsert_ad(session, campaign_id, ad_ext, f"Ad {ad_ext}", ad_set_id)
    record = {
        "channel_id": "meta_ads",
        "campaign_id": campaign_id,
        "ad_id": ad_id,
        "date": date,
        "impressions": 0,
        "link_clicks": 0,
        "spend_brl": 0.0,
        "leads": 0,
        "results": 0,
        "conversations_started": 0,
    }
    record.update(values)
    store.upsert_daily_metrics(session, [record])
    return {"campaign_id": campaign_id, "ad_id": ad_id, "ad_set_id": ad_set_id}


# ── API client ──


@pytest.fixture
def client(session, fake_source):
    def override_get_session():
        yield session

    async def override_get_metrics_source():
        yield fake_source

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_metrics_source] = override_get_metrics_source
    yield TestClient(app)
    app.dependency_overrides.clear()
