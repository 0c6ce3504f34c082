"""Async Shopify Admin GraphQL client."""
import asyncio
import logging
import random
from typing import Optional

import aiohttp

from .exceptions import ShopifyAdminApiError, ShopifyGraphQLError


class ShopifyAdminClient:
    """Async client for the Shopify GraphQL Admin API.

    Reads retry on 429/5xx/network errors with exponential backoff.
    Mutations are sent once; their failures are reported to the caller.
    """

    MAX_RETRY_ATTEMPTS = 6
    RETRY_BASE_DELAY = 0.5  # seconds
    RETRY_MULTIPLIER = 2.0
    RETRY_MAX_DELAY = 30.0  # seconds
    RETRY_JITTER_MS = 250  # milliseconds

    def __init__(
        self,
        shop_domain: str,
        admin_access_token: str,
        api_version: str,
        session: aiohttp.ClientSession,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize Shopify Admin client.

        Args:
            shop_domain: e.g., "mystore.myshopify.com"
            admin_access_token: Offline access token (never logged)
            api_version: e.g., "2024-10"
            session: Injected aiohttp ClientSession
            logger: Optional logger instance
        """
        self.shop_domain = shop_domain
        self._access_token = admin_access_token
        self.api_version = api_version
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

        self.graphql_endpoint = (
            f"https://{shop_domain}/admin/api/{api_version}/graphql.json"
        )

    async def query(self, query: str, variables: Optional[dict] = None) -> dict:
        """Run a read query and return its `data` object."""
        payload = {"query": query, "variables": variables or {}}
        resp_data = await self._post_graphql(payload, retry=True)
        return self._extract_data(resp_data)

    async def mutate(self, mutation: str, variables: Optional[dict] = None) -> dict:
        """Run a mutation once and return its `data` object."""
        payload = {"query": mutation, "variables": variables or {}}
        resp_data = await self._post_graphql(payload, retry=False)
        return self._extract_data(resp_data)

    @staticmethod
    def _extract_data(resp_data: dict) -> dict:
        data = resp_data.get("data")
        if data is None:
            raise ShopifyAdminApiError("GraphQL response missing 'data'")
        return data

    async def _post_graphql(self, payload: dict, retry: bool = True) -> dict:
        """Execute GraphQL POST with retry logic.

        Args:
            payload: GraphQL query/mutation payload
            retry: Whether to retry on transient errors

        Returns:
            Parsed JSON response data

        Raises:
            ShopifyAdminApiError: On non-retryable errors or max retries exceeded
            ShopifyGraphQLError: On root-level GraphQL errors
        """
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._access_token,
        }

        attempt = 0
        while True:
            attempt += 1

            try:
                timeout = aiohttp.ClientTimeout(total=60, connect=10)
                async with self.session.post(
                    self.graphql_endpoint,
                    json=payload,
                    headers=headers,
                    timeout=timeout,
                ) as resp:
                    if resp.status == 429:
                        response_text = await resp.text()
                        if not retry or attempt > self.MAX_RETRY_ATTEMPTS:
                            raise ShopifyAdminApiError(
                                f"HTTP 429 after {attempt} attempts: {response_text[:200]}"
                            )

                        delay = self._retry_after_delay(
                            resp.headers.get("Retry-After"), attempt
                        )
                        self.logger.warning(
                            "HTTP 429, delay=%.2fs, attempt=%s", delay, attempt
                        )
                        await asyncio.sleep(delay)
                        continue

                    if 500 <= resp.status < 600:
                        response_text = await resp.text()
                        if not retry or attempt > self.MAX_RETRY_ATTEMPTS:
                            raise ShopifyAdminApiError(
                                f"HTTP {resp.status} after {attempt} attempts: {response_text[:200]}"
                            )

                        delay = self._calculate_backoff(attempt)
                        self.logger.warning(
                            "HTTP %s, backoff=%.2fs, attempt=%s", resp.status, delay, attempt
                        )
                        await asyncio.sleep(delay)
                        continue

                    if 400 <= resp.status < 500:
                        response_text = await resp.text()
                        raise ShopifyAdminApiError(
                            f"HTTP {resp.status} (non-retryable): {response_text[:500]}"
                        )

                    resp.raise_for_status()
                    json_data = await resp.json()

                    # Root-level errors come without usable data
                    if "errors" in json_data and json_data["errors"]:
                        error_messages = [
                            e.get("message", str(e)) for e in json_data["errors"]
                        ]
                        raise ShopifyGraphQLError(
                            f"GraphQL root errors: {'; '.join(error_messages)}"
                        )

                    return json_data

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if not retry or attempt > self.MAX_RETRY_ATTEMPTS:
                    raise ShopifyAdminApiError(
                        f"Network error after {attempt} attempts: {e}"
                    ) from e

                delay = self._calculate_backoff(attempt)
                self.logger.warning(
                    "Network error: %s, backoff=%.2fs, attempt=%s", e, delay, attempt
                )
                await asyncio.sleep(delay)
                continue

    def _retry_after_delay(self, retry_after: Optional[str], attempt: int) -> float:
        """Seconds from a numeric Retry-After header, else the backoff delay."""
        if retry_after:
            try:
                return max(float(retry_after), 0.0)
            except ValueError:
                self.logger.debug("Unparseable Retry-After header: %r", retry_after)
        return self._calculate_backoff(attempt)

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate exponential backoff with jitter.

        Args:
            attempt: Current retry attempt number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = min(
            self.RETRY_BASE_DELAY * (self.RETRY_MULTIPLIER ** (attempt - 1)),
            self.RETRY_MAX_DELAY,
        )
        jitter = random.uniform(0, self.RETRY_JITTER_MS / 1000.0)
        return delay + jitter


def user_error_message(user_errors: Optional[list]) -> Optional[str]:
    """Join a userErrors list into one message, or None when empty."""
    if not user_errors:
        return None
    return ", ".join(
        error.get("message", str(error)) if isinstance(error, dict) else str(error)
        for error in user_errors
    )
