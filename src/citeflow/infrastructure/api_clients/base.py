"""
Shared async HTTP client for the bibliographic APIs.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

from citeflow.application.services.rate_limiter import RateLimiter
from citeflow.domain.errors import ProviderCallError, RateLimitedError
from citeflow.domain.indexing import RateLimitPolicy
from citeflow.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)

USER_AGENT = "citeflow/0.1 (https://github.com/citeflow/citeflow)"


class APIClient:
    """
    Async JSON API client bound to one provider.

    Calls go through the provider's RateLimiter. HTTP 429 is never retried
    and raises RateLimitedError; 5xx responses and timeouts are retried with
    exponential backoff; 404 yields an empty dict.
    """

    def __init__(
        self,
        base_url: str,
        *,
        provider: str,
        api_key: Optional[str] = None,
        api_key_header: str = "x-api-key",
        timeout: float = 30,
        max_retries: int = 3,
        limiter: Optional[RateLimiter] = None,
        policy: Optional[RateLimitPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider = provider
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.timeout = ClientTimeout(total=timeout)
        self.max_retries = max_retries
        self.limiter = limiter or RateLimiter(policy, name=provider)
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": USER_AGENT}
            if self.api_key:
                headers[self.api_key_header] = self.api_key
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self._session

    def _url(self, endpoint: str) -> str:
        if not endpoint:
            return self.base_url
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    @staticmethod
    def _backoff(attempt: int, retry_after: Optional[str] = None) -> float:
        if retry_after:
            try:
                return min(float(retry_after), 30.0)
            except (TypeError, ValueError):
                pass
        delay = 2.0 * (2 ** attempt)
        # ±25% jitter
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(1.0, delay + jitter)

    async def get(self, endpoint: str = "", params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str = "",
        json_data: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self.request("POST", endpoint, params=params, json_data=json_data)

    async def request(
        self,
        method: str,
        endpoint: str = "",
        *,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        url = self._url(endpoint)
        last_status = 0

        for attempt in range(self.max_retries + 1):
            session = await self._get_session()
            try:
                async with self.limiter.slot():
                    async with session.request(method, url, params=params, json=json_data) as response:
                        last_status = response.status
                        if response.status in (200, 201):
                            return await response.json(content_type=None)
                        if response.status == 404:
                            logger.warning(f"Resource not found: {url}")
                            return {}
                        if response.status == 429:
                            await response.read()
                            Logger.warning(f"{self.provider} rate limited: {url}", file=LogFiles.API)
                            raise RateLimitedError(self.provider)
                        if response.status >= 500:
                            retry_after = response.headers.get("Retry-After")
                            await response.read()
                            if attempt >= self.max_retries:
                                break
                            delay = self._backoff(attempt, retry_after)
                            logger.warning(
                                f"HTTP {response.status} for {url}, "
                                f"retry {attempt + 1}/{self.max_retries} in {delay:.1f}s"
                            )
                        else:
                            text = await response.text()
                            logger.error(f"API error {response.status}: {text[:200]}")
                            raise self.error_for_status(response.status, text)
            except asyncio.TimeoutError:
                if attempt >= self.max_retries:
                    Logger.error(
                        f"{self.provider} timeout after {self.max_retries + 1} attempts: {url}",
                        file=LogFiles.ERROR,
                    )
                    raise ProviderCallError(self.provider, f"request timed out: {url}")
                delay = self._backoff(attempt)
                logger.warning(
                    f"Timeout for {url}, retry {attempt + 1}/{self.max_retries} in {delay:.1f}s"
                )
            await asyncio.sleep(delay)

        Logger.error(
            f"{self.provider} HTTP {last_status} after {self.max_retries + 1} attempts: {url}",
            file=LogFiles.ERROR,
        )
        raise ProviderCallError(
            self.provider,
            f"HTTP {last_status} after {self.max_retries + 1} attempts: {url}",
            status=last_status,
        )

    def error_for_status(self, status: int, text: str) -> ProviderCallError:
        """Error raised for a non-retryable status. Providers may specialise the message."""
        return ProviderCallError(self.provider, f"API error {status}: {text[:200]}", status=status)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
