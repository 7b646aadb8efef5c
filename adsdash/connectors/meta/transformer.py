"""AdsDash — Meta Raw → Normalized Transformer.

Parses the string-typed numbers and action lists of Meta insight rows.
None of these functions raise on malformed upstream data: bad values count
as zero so one broken row never aborts a sync.
"""

import math
from typing import Any, Dict, List, Optional

LEAD_ACTION_TYPE = "lead"

# Attribution-window variants of the same "conversation started" action
CONVERSATION_ACTION_MARKERS = (
    "messaging_conversation_started",
    "conversation_started",
)
CONVERSATION_ACTION_TYPES = {
    "onsite_conversion.messaging_conversation_started_7d",
    "onsite_conversion.messaging_conversation_started_1d",
    "offsite_conversion.messaging_conversation_started_7d",
}

Actions = Optional[List[Dict[str, Any]]]


def parse_number(raw: Any) -> float:
    """Return the numeric value of `raw`, or 0 for absent/empty/non-finite input."""
    if raw is None or raw == "":
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def _parse_count(raw: Any) -> int:
    # counts never go below zero, whatever the source sends
    return max(int(parse_number(raw)), 0)


def _is_conversation_action(action_type: str) -> bool:
    action_type = action_type.lower()
    return action_type in CONVERSATION_ACTION_TYPES or any(
        marker in action_type for marker in CONVERSATION_ACTION_MARKERS
    )


def parse_lead_count(actions: Actions) -> int:
    """Sum of `lead` action values."""
    if not actions:
        return 0
    return sum(
        _parse_count(a.get("value"))
        for a in actions
        if (a.get("action_type") or "") == LEAD_ACTION_TYPE
    )


def parse_conversations_started(actions: Actions) -> int:
    """Sum of messaging-conversation-started actions across attribution variants."""
    if not actions:
        return 0
    return sum(
        _parse_count(a.get("value"))
        for a in actions
        if _is_conversation_action(a.get("action_type") or "")
    )


def parse_results_count(actions: Actions, first_class: Any = None) -> int:
    """Composite "results": leads + conversations started.

    A first-class results value supplied by the source takes precedence over
    the derived sum; the two are never added together.
    """
    if first_class is not None and first_class != "":
        return _parse_count(first_class)
    return parse_lead_count(actions) + parse_conversations_started(actions)


def _first_class_results(row: Dict[str, Any]) -> Any:
    """Scalar `results` on the row, if the source provides one."""
    value = row.get("results")
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        return value
    return None


def normalize_insight_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Numeric metric fields of one insight row, ready for persistence."""
    actions = row.get("actions")
    return {
        "impressions": _parse_count(row.get("impressions")),
        "link_clicks": _parse_count(row.get("clicks")),
        "spend_brl": round(parse_number(row.get("spend")), 2),
        "leads": parse_lead_count(actions),
        "results": parse_results_count(actions, _first_class_results(row)),
        "conversations_started": parse_conversations_started(actions),
    }
