"""AdsDash — Marketing Dimension & Metric Tables.

Unique constraints are the idempotency keys of every sync: dimension rows
upsert on (parent, external_id) and metric rows on
(channel_id, campaign_id, ad_id, date).
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Numeric, text
from sqlmodel import SQLModel, Field, UniqueConstraint

AD_NAME_MAX_LENGTH = 500


class Channel(SQLModel, table=True):
    """A marketing data source, e.g. one ads platform integration."""

    __tablename__ = "channels"

    id: str = Field(primary_key=True, description="Stable slug, e.g. meta_ads")
    name: str
    enabled: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )


class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"
    __table_args__ = (
        UniqueConstraint("channel_id", "external_id", name="uq_campaign_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    channel_id: str = Field(foreign_key="channels.id", index=True)
    external_id: str = Field(description="Meta campaign id")
    name: str = Field(default="")
    objective: Optional[str] = Field(default=None, description="Meta objective")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )


class AdSet(SQLModel, table=True):
    """Optional level between campaign and ad; created lazily during syncs."""

    __tablename__ = "ad_sets"
    __table_args__ = (
        UniqueConstraint("campaign_id", "external_id", name="uq_ad_set_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    external_id: str
    name: str = Field(default="", max_length=AD_NAME_MAX_LENGTH)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )


class Ad(SQLModel, table=True):
    __tablename__ = "ads"
    __table_args__ = (
        UniqueConstraint("campaign_id", "external_id", name="uq_ad_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    ad_set_id: Optional[int] = Field(default=None, foreign_key="ad_sets.id")
    external_id: str
    name: str = Field(default="", max_length=AD_NAME_MAX_LENGTH)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )


class DailyMetric(SQLModel, table=True):
    """One ad's performance on one day.

    Re-syncing the same (channel, campaign, ad, date) overwrites the row.
    """

    __tablename__ = "daily_metrics"
    __table_args__ = (
        UniqueConstraint(
            "channel_id",
            "campaign_id",
            "ad_id",
            "date",
            name="uq_daily_metric",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    channel_id: str = Field(foreign_key="channels.id", index=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    ad_id: int = Field(foreign_key="ads.id", index=True)
    date: str = Field(index=True, description="YYYY-MM-DD")
    impressions: int = Field(default=0)
    link_clicks: int = Field(default=0)
    spend_brl: float = Field(
        default=0.0,
        sa_column=Column(Numeric(14, 2, asdecimal=False), nullable=False, default=0),
    )
    leads: int = Field(default=0)
    results: int = Field(default=0)
    conversations_started: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"server_default": text("CURRENT_TIMESTAMP")},
    )
