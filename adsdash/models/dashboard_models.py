"""AdsDash — Dashboard & Sync Output Models."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


# ─────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────


class DashboardFilters(BaseModel):
    """Optional restrictions. An empty list means no restriction."""

    campaign_ids: List[int] = []
    ad_set_ids: List[int] = []
    ad_ids: List[int] = []
    objective: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.campaign_ids or self.ad_set_ids or self.ad_ids or self.objective
        )


class DashboardTotals(BaseModel):
    impressions: int = 0
    link_clicks: int = 0
    spend_brl: float = 0.0
    leads: int = 0
    leads_gerais: int = 0
    results: int = 0
    conversations_started: int = 0


class RowByCampaignAd(BaseModel):
    """One persisted metric row with names attached."""

    campaign_id: int
    campaign_name: str = ""
    ad_id: int
    ad_name: str = ""
    date: Optional[str] = None
    channel_name: str = ""
    objective: str = ""
    impressions: int = 0
    link_clicks: int = 0
    spend_brl: float = 0.0
    leads: int = 0
    leads_gerais: int = 0
    results: int = 0
    conversations_started: int = 0


class ChartPoint(BaseModel):
    """Per-day, per-campaign sums for trend charts."""

    date: str
    campaign_id: int
    campaign_name: str = ""
    leads: int = 0
    leads_gerais: int = 0
    results: int = 0
    conversations_started: int = 0


class DashboardData(BaseModel):
    """What the presentation layer renders.

    `previous_totals` and `deltas` are only present for range queries.
    A delta of None means both periods were zero.
    """

    date: str
    since: Optional[str] = None
    until: Optional[str] = None
    channel_id: str
    totals: DashboardTotals
    previous_totals: Optional[DashboardTotals] = Field(
        default=None, alias="previousTotals"
    )
    deltas: Optional[Dict[str, Optional[float]]] = None
    rows: List[RowByCampaignAd] = []
    chart_data: List[ChartPoint] = Field(default=[], alias="chartData")

    model_config = {"populate_by_name": True}


# ─────────────────────────────────────────────
# FILTER OPTIONS
# ─────────────────────────────────────────────


class CampaignOption(BaseModel):
    id: int
    name: str
    objective: Optional[str] = None


class AdSetOption(BaseModel):
    id: int
    name: str
    campaign_id: int


class AdOption(BaseModel):
    id: int
    name: str
    campaign_id: int
    ad_set_id: Optional[int] = None


class FilterOptions(BaseModel):
    campaigns: List[CampaignOption] = []
    ad_sets: List[AdSetOption] = []
    ads: List[AdOption] = []
    objectives: List[str] = []


class ChannelOut(BaseModel):
    id: str
    name: str


# ─────────────────────────────────────────────
# SYNC RESULTS
# ─────────────────────────────────────────────


class SyncDayResult(BaseModel):
    date: str
    campaigns: int = 0
    ad_rows: int = 0
    metrics_upserted: int = 0
    dropped_rows: int = 0
    results: int = 0
    conversations_started: int = 0


class SyncRangeResult(BaseModel):
    since: str
    until: str
    campaigns: int = 0
    ad_rows: int = 0
    metrics_upserted: int = 0
    dropped_rows: int = 0


class ChunkResult(BaseModel):
    since: str
    until: str
    ok: bool
    error: Optional[str] = None


class HistorySyncOutput(BaseModel):
    since: str
    until: str
    chunks_total: int = 0
    success: int = 0
    errors: int = 0
    details: List[ChunkResult] = []
