"""AdsDash — Period Comparison.

Compares the selected range against the window of equal length right
before it and reports percentage change per metric.
"""

from typing import Dict, Optional

from adsdash.core.metric_registry import TOTAL_FIELDS
from adsdash.models.dashboard_models import DashboardTotals

# Reported when the previous period is zero but the current one is not
NEW_ACTIVITY_CHANGE = 100.0


def change_pct(current: float, previous: float) -> Optional[float]:
    """(current - previous) / previous * 100, without dividing by zero.

    Both zero → None. Zero baseline with activity now → +100.
    """
    if previous == 0:
        return None if current == 0 else NEW_ACTIVITY_CHANGE
    return round((current - previous) / previous * 100, 2)


def compute_deltas(
    current: DashboardTotals, previous: DashboardTotals
) -> Dict[str, Optional[float]]:
    return {
        name: change_pct(getattr(current, name), getattr(previous, name))
        for name in TOTAL_FIELDS
    }
