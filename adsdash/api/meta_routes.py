"""AdsDash — Meta API Routes."""

from fastapi import APIRouter

from adsdash.connectors.meta.client import MetaClient, MetaConfig
from adsdash.core.logging import get_logger

logger = get_logger("api.meta")

router = APIRouter(prefix="/meta", tags=["Meta"])


@router.get("/validate-token")
async def validate_token():
    """Check if the Meta access token is valid.

    Returns validity status, expiration, and granted scopes. Use it when a
    sync fails with META_ACCESS_TOKEN_EXPIRED or META_AD_ACCOUNT_PERMISSION.
    """
    async with MetaClient(MetaConfig.from_settings()) as client:
        result = await client.validate_token()
    return {
        "status": "success",
        "valid": result["valid"],
        "expires_at": result["expires_at"],
        "scopes": result["scopes"],
        "app_id": result["app_id"],
    }
