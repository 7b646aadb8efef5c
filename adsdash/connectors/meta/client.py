"""AdsDash — Meta API Client.

Handles authentication, retry logic, rate limiting, and pagination.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from adsdash.config import settings
from adsdash.core.errors import ConfigError, UpstreamError
from adsdash.core.logging import get_logger

logger = get_logger("meta.client")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds


class MetaConfig(BaseModel):
    """Credentials and endpoint for one ad account."""

    access_token: str = ""
    ad_account_id: str = ""
    api_version: str = "v21.0"
    base_url: str = "https://graph.facebook.com"
    retry_base_delay: float = RETRY_BASE_DELAY

    @classmethod
    def from_settings(cls) -> "MetaConfig":
        return cls(
            access_token=settings.meta_access_token,
            ad_account_id=settings.meta_ad_account_id,
            api_version=settings.meta_api_version,
            base_url=settings.meta_base_url,
        )

    @property
    def api_base(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.api_version}"

    def require_token(self) -> str:
        if not self.access_token:
            raise ConfigError("META_ACCESS_TOKEN is required")
        return self.access_token

    def require_account(self) -> str:
        """Return the account id with the act_ prefix Meta expects."""
        account_id = self.ad_account_id.strip()
        if not account_id:
            raise ConfigError("META_AD_ACCOUNT_ID is required")
        return account_id if account_id.startswith("act_") else f"act_{account_id}"


class MetaClient:
    """Async HTTP client for Meta Marketing API."""

    def __init__(
        self,
        config: MetaConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=60.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "MetaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _backoff(self, attempt: int) -> float:
        return self.config.retry_base_delay * (2 ** (attempt - 1))

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
        label: str = "Meta API",
    ) -> Dict[str, Any]:
        """Make a request with retry + rate-limit handling.

        Cursor URLs from `paging.next` already carry the token, so it is only
        added when explicit params are given.
        """
        if params is not None:
            params = {**params, "access_token": self.config.require_token()}

        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                resp = await client.request(method, url, params=params)

                if resp.status_code == 429 and attempt < MAX_RETRIES:
                    wait = self._backoff(attempt)
                    logger.warning(
                        f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})"
                    )
                    await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                if attempt < MAX_RETRIES and e.response.status_code >= 500:
                    wait = self._backoff(attempt)
                    logger.warning(
                        f"Server error {e.response.status_code}. Retrying in {wait}s"
                    )
                    await asyncio.sleep(wait)
                    continue
                raise _upstream_error(label, e.response) from e

            except httpx.RequestError as e:
                if attempt < MAX_RETRIES:
                    wait = self._backoff(attempt)
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise UpstreamError(
                    f"{label}: connection failed after {MAX_RETRIES} retries: {e}"
                ) from e

        raise UpstreamError(f"{label}: max retries exhausted")

    # ── Pagination ──

    async def paginated_get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
        label: str = "Meta API",
        max_pages: int = 1000,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a cursor-paginated endpoint."""
        all_data: List[Dict[str, Any]] = []
        current_url: Optional[str] = url

        for page in range(max_pages):
            result = await self._request(
                "GET", current_url, (params or {}) if page == 0 else None, label
            )
            all_data.extend(result.get("data") or [])

            current_url = (result.get("paging") or {}).get("next")
            if not current_url:
                break
        else:
            logger.warning(f"{label}: stopped after {max_pages} pages")

        logger.info(f"Fetched {len(all_data)} records from {url}")
        return all_data

    # ── Token Validation ──

    async def validate_token(self) -> Dict[str, Any]:
        """Check if the access token is valid and return metadata."""
        url = f"{self.config.api_base}/debug_token"
        params = {"input_token": self.config.require_token()}
        result = await self._request("GET", url, params, "Meta debug_token")
        token_data = result.get("data", {})
        return {
            "valid": token_data.get("is_valid", False),
            "expires_at": token_data.get("expires_at", 0),
            "scopes": token_data.get("scopes", []),
            "app_id": token_data.get("app_id", ""),
        }


def _upstream_error(label: str, response: httpx.Response) -> UpstreamError:
    """Build an UpstreamError that keeps the raw body for fatal-pattern checks."""
    body = response.text
    error_code = 0
    try:
        payload = response.json()
        if isinstance(payload, dict):
            error_code = int((payload.get("error") or {}).get("code") or 0)
    except (ValueError, TypeError):
        pass
    return UpstreamError(
        f"{label}: {response.status_code} {body}",
        status_code=response.status_code,
        error_code=error_code,
        body=body,
    )
