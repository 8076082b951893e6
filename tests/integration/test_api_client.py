"""
Integration tests for the shared HTTP client: status handling and retries.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from citeflow.domain.errors import ProviderCallError, RateLimitedError
from citeflow.infrastructure.api_clients.base import APIClient


def _response(status, payload=None, text=""):
    response = MagicMock()
    response.status = status
    response.headers = {}
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text)
    response.read = AsyncMock(return_value=b"")
    return response


def _context(response):
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def _session(*responses):
    session = MagicMock()
    session.closed = False
    session.request = MagicMock(side_effect=[_context(r) for r in responses])
    session.close = AsyncMock()
    return session


class TestAPIClient:
    def setup_method(self):
        self.client = APIClient("https://api.example.org/", provider="Example", max_retries=2)

    @pytest.mark.asyncio
    async def test_success(self):
        session = _session(_response(200, {"ok": True}))
        with patch.object(self.client, "_get_session", AsyncMock(return_value=session)):
            data = await self.client.get("works", params={"q": "x"})

        assert data == {"ok": True}
        method, url = session.request.call_args.args
        assert (method, url) == ("GET", "https://api.example.org/works")
        assert session.request.call_args.kwargs["params"] == {"q": "x"}

    @pytest.mark.asyncio
    async def test_not_found_is_empty(self):
        session = _session(_response(404))
        with patch.object(self.client, "_get_session", AsyncMock(return_value=session)):
            assert await self.client.get("works/missing") == {}

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self):
        session = _session(_response(429), _response(200, {}))
        with patch.object(self.client, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(RateLimitedError) as excinfo:
                await self.client.get("works")

        assert session.request.call_count == 1
        assert excinfo.value.status == 429
        assert "Example" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        session = _session(_response(503), _response(200, {"ok": 1}))
        with patch.object(self.client, "_get_session", AsyncMock(return_value=session)), patch(
            "citeflow.infrastructure.api_clients.base.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            data = await self.client.post("batch", json_data={"ids": []})

        assert data == {"ok": 1}
        assert session.request.call_count == 2
        assert sleep.await_count == 1
        assert session.request.call_args.kwargs["json"] == {"ids": []}

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self):
        session = _session(_response(500), _response(500), _response(500))
        with patch.object(self.client, "_get_session", AsyncMock(return_value=session)), patch(
            "citeflow.infrastructure.api_clients.base.asyncio.sleep", new=AsyncMock()
        ):
            with pytest.raises(ProviderCallError) as excinfo:
                await self.client.get("works")

        assert session.request.call_count == 3
        assert excinfo.value.status == 500
        assert not isinstance(excinfo.value, RateLimitedError)

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        session = _session(_response(400, text="bad request"))
        with patch.object(self.client, "_get_session", AsyncMock(return_value=session)):
            with pytest.raises(ProviderCallError) as excinfo:
                await self.client.get("works")

        assert excinfo.value.status == 400
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_close(self):
        session = _session()
        self.client._session = session
        await self.client.close()
        session.close.assert_awaited_once()


def test_backoff_honours_retry_after():
    assert APIClient._backoff(0, "5") == 5.0
    assert APIClient._backoff(0, "500") == 30.0
    assert 1.0 <= APIClient._backoff(0) <= 2.5
    assert APIClient._backoff(3) >= 12.0
