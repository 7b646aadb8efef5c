"""
Tests for the Meta HTTP client and source adapter (httpx.MockTransport)
"""
import asyncio
import json

import httpx
import pytest

from adsdash.connectors.meta.client import MetaClient, MetaConfig
from adsdash.connectors.meta.endpoints import MetaAdsSource
from adsdash.core.errors import (
    ConfigError,
    MetaAccessTokenExpiredError,
    MetaAdAccountPermissionError,
    UpstreamError,
    classify_fatal,
)


def make_config(**overrides):
    values = {
        "access_token": "tok",
        "ad_account_id": "123",
        "api_version": "v21.0",
        "base_url": "https://graph.test",
        "retry_base_delay": 0,
    }
    values.update(overrides)
    return MetaConfig(**values)


def make_source(handler, **overrides):
    client = MetaClient(make_config(**overrides), transport=httpx.MockTransport(handler))
    return MetaAdsSource(client)


class TestPagination:
    def test_follows_next_cursor(self):
        requests = []
        next_url = "https://graph.test/v21.0/act_123/campaigns?after=CURSOR&access_token=tok"

        def handler(request):
            requests.append(request)
            if "after" in request.url.params:
                return httpx.Response(200, json={"data": [{"id": "2", "name": "B"}]})
            return httpx.Response(
                200,
                json={
                    "data": [{"id": "1", "name": "A", "objective": "OUTCOME_LEADS"}],
                    "paging": {"next": next_url},
                },
            )

        source = make_source(handler)
        campaigns = asyncio.run(source.fetch_campaigns())

        assert campaigns == [
            {"external_id": "1", "name": "A", "objective": "OUTCOME_LEADS"},
            {"external_id": "2", "name": "B", "objective": None},
        ]
        assert len(requests) == 2
        first = requests[0]
        assert first.url.path == "/v21.0/act_123/campaigns"
        assert first.url.params["fields"] == "id,name,objective"
        assert first.url.params["access_token"] == "tok"
        # cursor URL is used as-is
        assert str(requests[1].url) == next_url

    def test_insight_request_parameters(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"data": [{"ad_id": "9"}]})

        source = make_source(handler, ad_account_id="act_555")
        rows = asyncio.run(source.fetch_ad_insights("2025-10-01", "2025-10-31"))

        assert rows == [{"ad_id": "9"}]
        assert seen["level"] == "ad"
        assert seen["time_increment"] == "1"
        assert seen["action_attribution_windows"] == "7d_click"
        assert json.loads(seen["time_range"]) == {"since": "2025-10-01", "until": "2025-10-31"}
        assert "date_start" in seen["fields"] and "adset_id" in seen["fields"]


class TestConfiguration:
    def test_missing_token(self):
        source = make_source(lambda r: httpx.Response(200, json={"data": []}), access_token="")
        with pytest.raises(ConfigError):
            asyncio.run(source.fetch_campaigns())

    def test_missing_account(self):
        source = make_source(lambda r: httpx.Response(200, json={"data": []}), ad_account_id=" ")
        with pytest.raises(ConfigError):
            asyncio.run(source.fetch_ad_insights("2025-10-01", "2025-10-01"))


class TestErrors:
    def test_retries_server_errors(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"data": [{"id": "1", "name": "A"}]})

        campaigns = asyncio.run(make_source(handler).fetch_campaigns())
        assert len(attempts) == 3
        assert campaigns[0]["external_id"] == "1"

    def test_expired_token_is_classified_fatal(self):
        body = {
            "error": {
                "message": "Error validating access token: Session has expired on Friday.",
                "type": "OAuthException",
                "code": 190,
            }
        }
        source = make_source(lambda r: httpx.Response(400, json=body))
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(source.fetch_ad_insights("2025-10-01", "2025-10-01"))

        exc = exc_info.value
        assert exc.status_code == 400
        assert exc.error_code == 190
        fatal = classify_fatal(exc)
        assert isinstance(fatal, MetaAccessTokenExpiredError)
        assert str(fatal) == "META_ACCESS_TOKEN_EXPIRED"
        assert "Session has expired" in fatal.meta_message

    def test_permission_error_is_classified_fatal(self):
        body = {
            "error": {
                "message": "(#200) Ad account owner has NOT grant ads_management or ads_read permission",
                "code": 200,
            }
        }
        source = make_source(lambda r: httpx.Response(403, json=body))
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(source.fetch_campaigns())
        assert isinstance(classify_fatal(exc_info.value), MetaAdAccountPermissionError)

    def test_other_errors_are_not_fatal(self):
        source = make_source(
            lambda r: httpx.Response(400, json={"error": {"message": "Invalid parameter", "code": 100}})
        )
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(source.fetch_campaigns())
        assert classify_fatal(exc_info.value) is None
        assert "Invalid parameter" in str(exc_info.value)
