"""
Amadeus Flight Offers Search client.

Auth is OAuth2 client credentials. Tokens are cached for the whole process
(shared by every client instance) and treated as expired five minutes before
Amadeus says they are, so a long job never sends a token that dies mid-call.
"""
import httpx
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

from dealtracker.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

TOKEN_EXPIRY_BUFFER_SECONDS = 300

Number = Union[int, float, Decimal, str]


class AmadeusError(Exception):
    """Base error for the offer source."""


class AmadeusConfigError(AmadeusError):
    pass


class AmadeusAuthError(AmadeusError):
    pass


class AmadeusSearchError(AmadeusError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class _CachedToken:
    value: str
    expires_at: datetime

    def is_valid(self) -> bool:
        return datetime.utcnow() < self.expires_at


_token_cache: Optional[_CachedToken] = None


def reset_token_cache():
    global _token_cache
    _token_cache = None


class AmadeusClient:
    """
    Thin async wrapper over the Amadeus REST API.

    Usage:
        client = AmadeusClient()
        offers = await client.search_flights("GRU", "CDG", date(2026, 12, 1))
        await client.close()
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.amadeus_api_key
        self.api_secret = api_secret if api_secret is not None else settings.amadeus_api_secret
        self.base_url = (base_url or settings.amadeus_base_url).rstrip("/")
        self._client = http_client

    def is_available(self) -> bool:
        return bool(self.api_key and self.api_secret)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def get_access_token(self) -> str:
        global _token_cache

        if _token_cache and _token_cache.is_valid():
            return _token_cache.value

        if not self.is_available():
            raise AmadeusConfigError("Amadeus API credentials not configured")

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/v1/security/oauth2/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.api_key,
                    "client_secret": self.api_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
            data = response.json()
            token = data["access_token"]
            expires_in = int(data.get("expires_in", 1799))
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Failed to get Amadeus access token: {e}")
            raise AmadeusAuthError("Failed to authenticate with Amadeus API") from e

        _token_cache = _CachedToken(
            value=token,
            expires_at=datetime.utcnow() + timedelta(seconds=expires_in - TOKEN_EXPIRY_BUFFER_SECONDS),
        )
        return token

    async def search_flights(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        return_date: Optional[date] = None,
        adults: int = 1,
        max_results: int = 10,
    ) -> List[dict]:
        """Search flight offers for a route and date.

        Args:
            origin: Origin IATA code (e.g. "GRU").
            destination: Destination IATA code (e.g. "CDG").
            departure_date: Outbound date.
            return_date: Inbound date, or None for one-way.
            adults: Passenger count.
            max_results: Upper bound on offers returned by Amadeus.

        Returns:
            Raw offer dicts as returned under "data".

        Raises:
            AmadeusConfigError, AmadeusAuthError: token could not be obtained.
            AmadeusSearchError: the search call failed.
        """
        token = await self.get_access_token()

        params = {
            "originLocationCode": origin,
            "destinationLocationCode": destination,
            "departureDate": departure_date.isoformat(),
            "adults": adults or 1,
            "max": max_results or 10,
        }
        if return_date:
            params["returnDate"] = return_date.isoformat()

        client = await self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/v2/shopping/flight-offers",
                headers={"Authorization": f"Bearer {token}"},
                params=params,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            body = _safe_json(e.response)
            logger.error(f"Amadeus API error: {e.response.status_code} {body}")
            raise AmadeusSearchError(
                _error_detail(body) or "Failed to search flights",
                status_code=e.response.status_code,
            ) from e
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Amadeus request failed: {e}")
            raise AmadeusSearchError("Failed to search flights") from e

        return data.get("data") or []

    async def validate_credentials(self) -> bool:
        try:
            await self.get_access_token()
            return True
        except AmadeusError:
            return False


def _safe_json(response: httpx.Response) -> Optional[dict]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _error_detail(body: Optional[dict]) -> Optional[str]:
    if not body:
        return None
    errors = body.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("detail")
    return None


def calculate_discount(current_price: Number, base_price: Optional[Number] = None) -> int:
    """Whole-percent discount of current_price against base_price.

    Amadeus has no price history, so base_price is whatever reference the
    caller has (the offer's base fare or a markup). Returns 0 when there is
    no reference or the price is not below it.
    """
    if base_price is None:
        return 0
    base = Decimal(str(base_price))
    current = Decimal(str(current_price))
    if base <= 0 or base <= current:
        return 0
    pct = (base - current) / base * 100
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
