"""AdsDash — Dashboard Metric Registry.

Defines the numeric fields carried by daily metric rows and dashboard totals.
The aggregation and comparison code iterates this registry instead of
hard-coding field lists.
"""

from enum import Enum
from typing import Dict, List


class MetricType(str, Enum):
    """How a metric is categorised."""

    VOLUME = "volume"  # Raw counts: impressions, clicks
    COST = "cost"  # Monetary: spend
    CONVERSION = "conversion"  # Leads, conversations, results
    DERIVED = "derived"  # Computed at query time: leads_gerais


class MetricDefinition:
    """Describes a single metric."""

    def __init__(
        self,
        name: str,
        metric_type: MetricType,
        unit: str = "",
        description: str = "",
        stored: bool = True,
    ):
        self.name = name
        self.metric_type = metric_type
        self.unit = unit
        self.description = description
        self.stored = stored

    @property
    def is_integer(self) -> bool:
        return self.unit == "count"

    def __repr__(self) -> str:
        return f"<Metric {self.name} ({self.metric_type.value})>"


DASHBOARD_METRICS: Dict[str, MetricDefinition] = {
    "impressions": MetricDefinition(
        "impressions", MetricType.VOLUME, "count", "Number of times ads were shown"
    ),
    "link_clicks": MetricDefinition(
        "link_clicks", MetricType.VOLUME, "count", "Clicks reported by the insight row"
    ),
    "spend_brl": MetricDefinition(
        "spend_brl", MetricType.COST, "BRL", "Amount spent in account currency"
    ),
    "leads": MetricDefinition("leads", MetricType.CONVERSION, "count", "Lead actions"),
    "results": MetricDefinition(
        "results",
        MetricType.CONVERSION,
        "count",
        "Primary objective result: leads + conversations started",
    ),
    "conversations_started": MetricDefinition(
        "conversations_started",
        MetricType.CONVERSION,
        "count",
        "Messaging conversations started",
    ),
    "leads_gerais": MetricDefinition(
        "leads_gerais",
        MetricType.DERIVED,
        "count",
        "General leads: results when populated, else leads + conversations",
        stored=False,
    ),
}

TOTAL_FIELDS: List[str] = list(DASHBOARD_METRICS)


def get_metric(name: str) -> MetricDefinition | None:
    """Look up a metric by name."""
    return DASHBOARD_METRICS.get(name)

