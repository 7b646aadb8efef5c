"""AdsDash — Meta API Endpoints.

The source adapter used by the sync orchestrators: campaign listing and
ad-level daily insights, both fully paginated.
"""

import json
from typing import Any, Dict, List

from adsdash.connectors.meta.client import MetaClient
from adsdash.core.logging import get_logger

logger = get_logger("meta.endpoints")

CAMPAIGN_FIELDS = "id,name,objective"

AD_INSIGHT_FIELDS = (
    "date_start,impressions,clicks,spend,actions,"
    "campaign_id,campaign_name,ad_id,ad_name,adset_id,adset_name"
)

# Attribution window for action counts (leads, conversations)
ATTRIBUTION_WINDOWS = "7d_click"


class MetaAdsSource:
    """Fetch campaigns and ad insights for the configured ad account."""

    def __init__(self, client: MetaClient):
        self.client = client

    @property
    def _account_url(self) -> str:
        config = self.client.config
        return f"{config.api_base}/{config.require_account()}"

    async def fetch_campaigns(self) -> List[Dict[str, Any]]:
        """All campaigns of the account as {external_id, name, objective}."""
        url = f"{self._account_url}/campaigns"
        params = {"fields": CAMPAIGN_FIELDS, "limit": 500}
        data = await self.client.paginated_get(url, params, "Meta campaigns")
        campaigns = [
            {
                "external_id": str(c.get("id", "")),
                "name": c.get("name") or "",
                "objective": c.get("objective"),
            }
            for c in data
            if c.get("id") is not None
        ]
        logger.info(f"Fetched {len(campaigns)} campaigns")
        return campaigns

    async def fetch_ad_insights(self, since: str, until: str) -> List[Dict[str, Any]]:
        """One row per (ad, day) for the inclusive range [since, until]."""
        url = f"{self._account_url}/insights"
        params = {
            "fields": AD_INSIGHT_FIELDS,
            "time_range": json.dumps({"since": since, "until": until}),
            "time_increment": "1",
            "level": "ad",
            "action_attribution_windows": ATTRIBUTION_WINDOWS,
            "limit": 500,
        }
        data = await self.client.paginated_get(url, params, "Meta ad insights")
        logger.info(
            f"Fetched {len(data)} ad insight rows",
            extra={"since": since, "until": until},
        )
        return data
