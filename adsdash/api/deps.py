"""AdsDash — Shared Route Dependencies."""

from typing import AsyncIterator, List, Optional

from adsdash.connectors.meta.client import MetaClient, MetaConfig
from adsdash.connectors.meta.endpoints import MetaAdsSource


async def get_metrics_source() -> AsyncIterator[MetaAdsSource]:
    """Dependency — yields a Meta source and closes its HTTP client afterwards."""
    client = MetaClient(MetaConfig.from_settings())
    try:
        yield MetaAdsSource(client)
    finally:
        await client.close()


def parse_ids(value: Optional[str]) -> List[int]:
    """Comma-separated internal ids; anything that is not an integer is ignored."""
    if not value:
        return []
    ids = []
    for part in value.split(","):
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids
