"""Unit tests for ShopifyAdminClient (mocked, no real API calls)."""
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from bulktag_core.errors import RemoteError
from bulktag_core.shopify.admin_client import ShopifyAdminClient, user_error_message
from bulktag_core.shopify.exceptions import ShopifyAdminApiError, ShopifyGraphQLError


@pytest.fixture
def mock_session():
    """Mock aiohttp ClientSession."""
    return MagicMock()


@pytest.fixture
def admin_client(mock_session):
    return ShopifyAdminClient(
        shop_domain="test-shop.myshopify.com",
        admin_access_token="shpat_fake_token",
        api_version="2024-10",
        session=mock_session,
    )


def make_response(status=200, json_data=None, text="", headers=None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.headers = headers or {}
    mock_response.raise_for_status = MagicMock()  # Sync method in aiohttp
    mock_response.json.return_value = json_data
    mock_response.text.return_value = text
    mock_response.__aenter__.return_value = mock_response
    return mock_response


@pytest.mark.asyncio
async def test_query_returns_data(admin_client, mock_session):
    mock_session.post.return_value = make_response(
        json_data={"data": {"shop": {"email": "owner@shop.com"}}}
    )

    data = await admin_client.query("query { shop { email } }")

    assert data == {"shop": {"email": "owner@shop.com"}}
    _, kwargs = mock_session.post.call_args
    assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_fake_token"
    assert kwargs["json"]["variables"] == {}


def test_endpoint_uses_api_version(admin_client):
    assert admin_client.graphql_endpoint == (
        "https://test-shop.myshopify.com/admin/api/2024-10/graphql.json"
    )


@pytest.mark.asyncio
async def test_root_level_errors_raise_graphql_error(admin_client, mock_session):
    """Root ["errors"] raises ShopifyGraphQLError before data access."""
    mock_session.post.return_value = make_response(
        json_data={
            "errors": [
                {"message": "Access denied to resource"},
                {"message": "Insufficient permissions"},
            ]
        }
    )

    with pytest.raises(ShopifyGraphQLError) as exc_info:
        await admin_client.query("query { products { nodes { id } } }")

    assert "Access denied" in str(exc_info.value)
    assert "Insufficient permissions" in str(exc_info.value)
    assert isinstance(exc_info.value, RemoteError)


@pytest.mark.asyncio
async def test_missing_data_raises(admin_client, mock_session):
    mock_session.post.return_value = make_response(json_data={"extensions": {}})

    with pytest.raises(ShopifyAdminApiError):
        await admin_client.query("query { shop { email } }")


@pytest.mark.asyncio
async def test_client_error_is_not_retried(admin_client, mock_session):
    mock_session.post.return_value = make_response(status=403, text="Forbidden")

    with pytest.raises(ShopifyAdminApiError) as exc_info:
        await admin_client.query("query { shop { email } }")

    assert "403" in str(exc_info.value)
    assert mock_session.post.call_count == 1


@pytest.mark.asyncio
async def test_query_retries_on_429_with_retry_after(admin_client, mock_session):
    mock_session.post.side_effect = [
        make_response(status=429, text="Throttled", headers={"Retry-After": "1.5"}),
        make_response(json_data={"data": {"ok": True}}),
    ]

    with patch(
        "bulktag_core.shopify.admin_client.asyncio.sleep", new_callable=AsyncMock
    ) as mock_sleep:
        data = await admin_client.query("query { ok }")

    assert data == {"ok": True}
    assert mock_session.post.call_count == 2
    mock_sleep.assert_awaited_once_with(1.5)


@pytest.mark.asyncio
async def test_http_date_retry_after_falls_back_to_backoff(admin_client, mock_session):
    mock_session.post.side_effect = [
        make_response(
            status=429,
            text="Throttled",
            headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"},
        ),
        make_response(json_data={"data": {"ok": True}}),
    ]

    with patch(
        "bulktag_core.shopify.admin_client.asyncio.sleep", new_callable=AsyncMock
    ) as mock_sleep, patch.object(
        admin_client, "_calculate_backoff", return_value=0.75
    ):
        data = await admin_client.query("query { ok }")

    assert data == {"ok": True}
    mock_sleep.assert_awaited_once_with(0.75)


@pytest.mark.asyncio
async def test_query_retries_on_server_error(admin_client, mock_session):
    mock_session.post.side_effect = [
        make_response(status=502, text="Bad gateway"),
        make_response(status=503, text="Unavailable"),
        make_response(json_data={"data": {"ok": True}}),
    ]

    with patch(
        "bulktag_core.shopify.admin_client.asyncio.sleep", new_callable=AsyncMock
    ):
        data = await admin_client.query("query { ok }")

    assert data == {"ok": True}
    assert mock_session.post.call_count == 3


@pytest.mark.asyncio
async def test_mutation_is_sent_once_on_server_error(admin_client, mock_session):
    mock_session.post.return_value = make_response(status=500, text="Internal error")

    with patch(
        "bulktag_core.shopify.admin_client.asyncio.sleep", new_callable=AsyncMock
    ) as mock_sleep:
        with pytest.raises(ShopifyAdminApiError):
            await admin_client.mutate("mutation { noop }")

    assert mock_session.post.call_count == 1
    mock_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_network_error_exhausts_retries(admin_client, mock_session):
    mock_session.post.side_effect = aiohttp.ClientConnectionError("connection reset")

    with patch(
        "bulktag_core.shopify.admin_client.asyncio.sleep", new_callable=AsyncMock
    ):
        with pytest.raises(ShopifyAdminApiError) as exc_info:
            await admin_client.query("query { ok }")

    assert "Network error" in str(exc_info.value)
    assert mock_session.post.call_count == ShopifyAdminClient.MAX_RETRY_ATTEMPTS + 1


def test_backoff_is_capped(admin_client):
    delay = admin_client._calculate_backoff(50)

    assert delay <= ShopifyAdminClient.RETRY_MAX_DELAY + ShopifyAdminClient.RETRY_JITTER_MS / 1000.0


def test_user_error_message():
    assert user_error_message([]) is None
    assert user_error_message(None) is None
    assert (
        user_error_message([{"field": ["id"], "message": "Not found"}, {"message": "Locked"}])
        == "Not found, Locked"
    )
