"""Tests for dependency injection."""

from unittest.mock import MagicMock, patch

import pytest
from starlette.requests import Request

from datepoll import state
from datepoll.dependencies import get_client_ip, get_rate_limiter
from datepoll.errors import ServiceUnavailableError


def _request(headers=None, client=("192.0.2.10", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestGetRateLimiter:

    def test_returns_limiter_when_initialized(self):
        limiter = MagicMock()
        with patch.object(state, "rate_limiter", limiter):
            assert get_rate_limiter() is limiter

    def test_raises_when_not_initialized(self):
        with patch.object(state, "rate_limiter", None):
            with pytest.raises(ServiceUnavailableError):
                get_rate_limiter()


class TestGetClientIP:

    def test_first_forwarded_hop(self):
        assert get_client_ip(_request({"X-Forwarded-For": "10.0.0.1, 10.0.0.2"})) == "10.0.0.1"

    def test_real_ip_header(self):
        assert get_client_ip(_request({"X-Real-IP": "10.0.0.5"})) == "10.0.0.5"

    def test_peer_address(self):
        assert get_client_ip(_request()) == "192.0.2.10"

    def test_unknown(self):
        assert get_client_ip(_request(client=None)) == "unknown"
