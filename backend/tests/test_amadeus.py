"""Tests for the Amadeus client: token caching, search params, error translation, discount math."""
from datetime import date
from decimal import Decimal

import httpx
import pytest

from dealtracker.services.amadeus import (
    AmadeusAuthError,
    AmadeusClient,
    AmadeusConfigError,
    AmadeusSearchError,
    calculate_discount,
)

BASE_URL = "https://test.api.amadeus.com"


def _make_client(handler, api_key="key", api_secret="secret") -> AmadeusClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AmadeusClient(
        api_key=api_key,
        api_secret=api_secret,
        base_url=BASE_URL,
        http_client=http_client,
    )


class _Recorder:
    """MockTransport handler that answers token and search calls."""

    def __init__(self, search_response=None, token_status=200, expires_in=1799):
        self.requests = []
        self.search_response = search_response or httpx.Response(200, json={"data": []})
        self.token_status = token_status
        self.expires_in = expires_in

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/security/oauth2/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(
                200,
                json={"access_token": f"tok-{len(self.token_calls)}", "expires_in": self.expires_in},
            )
        return self.search_response

    @property
    def token_calls(self):
        return [r for r in self.requests if r.url.path == "/v1/security/oauth2/token"]

    @property
    def search_calls(self):
        return [r for r in self.requests if r.url.path == "/v2/shopping/flight-offers"]


class TestCalculateDiscount:
    def test_basic_discount(self):
        assert calculate_discount(40, 100) == 60

    def test_rounds_half_up(self):
        # (200 - 199) / 200 = 0.5%
        assert calculate_discount(199, 200) == 1

    def test_rounds_down_below_half(self):
        assert calculate_discount(100, 150) == 33

    def test_no_base_price(self):
        assert calculate_discount(100, None) == 0

    def test_base_not_above_current(self):
        assert calculate_discount(100, 100) == 0
        assert calculate_discount(120, 100) == 0

    def test_zero_base(self):
        assert calculate_discount(0, 0) == 0

    def test_accepts_decimal_and_strings(self):
        assert calculate_discount(Decimal("250.00"), "500.00") == 50


class TestAccessToken:
    async def test_missing_credentials_raise_config_error(self):
        client = _make_client(_Recorder(), api_key="", api_secret="")
        with pytest.raises(AmadeusConfigError, match="credentials not configured"):
            await client.get_access_token()

    async def test_token_is_cached_across_instances(self):
        recorder = _Recorder()
        first = _make_client(recorder)
        second = _make_client(recorder)

        token_a = await first.get_access_token()
        token_b = await second.get_access_token()

        assert token_a == token_b == "tok-1"
        assert len(recorder.token_calls) == 1

    async def test_token_sent_as_form_credentials(self):
        recorder = _Recorder()
        client = _make_client(recorder)
        await client.get_access_token()

        body = recorder.token_calls[0].content.decode()
        assert "grant_type=client_credentials" in body
        assert "client_id=key" in body
        assert "client_secret=secret" in body

    async def test_short_lived_token_is_not_reused(self):
        # expires_in below the 5 minute safety buffer is already stale
        recorder = _Recorder(expires_in=120)
        client = _make_client(recorder)

        await client.get_access_token()
        await client.get_access_token()

        assert len(recorder.token_calls) == 2

    async def test_auth_failure_raises_auth_error(self):
        client = _make_client(_Recorder(token_status=401))
        with pytest.raises(AmadeusAuthError, match="Failed to authenticate"):
            await client.get_access_token()

    async def test_validate_credentials(self):
        assert await _make_client(_Recorder()).validate_credentials() is True

    async def test_validate_credentials_false_on_failure(self):
        assert await _make_client(_Recorder(token_status=401)).validate_credentials() is False
        assert await _make_client(_Recorder(), api_key="").validate_credentials() is False


class TestSearchFlights:
    async def test_search_params_and_bearer_token(self):
        offers = [{"id": "1"}, {"id": "2"}]
        recorder = _Recorder(search_response=httpx.Response(200, json={"data": offers}))
        client = _make_client(recorder)

        result = await client.search_flights(
            "GRU", "CDG", date(2026, 12, 1), return_date=date(2026, 12, 15), max_results=20
        )

        assert result == offers
        request = recorder.search_calls[0]
        assert request.headers["Authorization"] == "Bearer tok-1"
        params = request.url.params
        assert params["originLocationCode"] == "GRU"
        assert params["destinationLocationCode"] == "CDG"
        assert params["departureDate"] == "2026-12-01"
        assert params["returnDate"] == "2026-12-15"
        assert params["adults"] == "1"
        assert params["max"] == "20"

    async def test_one_way_omits_return_date(self):
        recorder = _Recorder()
        client = _make_client(recorder)

        await client.search_flights("GRU", "CDG", date(2026, 12, 1))

        params = recorder.search_calls[0].url.params
        assert "returnDate" not in params
        assert params["max"] == "10"

    async def test_missing_data_returns_empty_list(self):
        recorder = _Recorder(search_response=httpx.Response(200, json={"meta": {"count": 0}}))
        client = _make_client(recorder)

        assert await client.search_flights("GRU", "CDG", date(2026, 12, 1)) == []

    async def test_api_error_detail_is_translated(self):
        error_body = {"errors": [{"status": 400, "code": 477, "detail": "Invalid date format"}]}
        recorder = _Recorder(search_response=httpx.Response(400, json=error_body))
        client = _make_client(recorder)

        with pytest.raises(AmadeusSearchError) as exc_info:
            await client.search_flights("GRU", "CDG", date(2026, 12, 1))

        assert str(exc_info.value) == "Invalid date format"
        assert exc_info.value.status_code == 400

    async def test_api_error_without_detail_uses_fallback_message(self):
        recorder = _Recorder(search_response=httpx.Response(500, text="upstream down"))
        client = _make_client(recorder)

        with pytest.raises(AmadeusSearchError, match="Failed to search flights"):
            await client.search_flights("GRU", "CDG", date(2026, 12, 1))

    async def test_search_without_credentials_does_not_hit_network(self):
        recorder = _Recorder()
        client = _make_client(recorder, api_key="", api_secret="")

        with pytest.raises(AmadeusConfigError):
            await client.search_flights("GRU", "CDG", date(2026, 12, 1))
        assert recorder.requests == []
