"""HTTP adapter for the dynamic-pricing service."""

import logging
from uuid import UUID

import httpx

from stayledger.collaborators.base import DateRange, PriceQuote, PricingService, RoomSelection
from stayledger.config import settings
from stayledger.core.exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)


class HttpPricingService(PricingService):
    """Calls ``POST /quotes`` and ``GET /demand`` on the pricing service."""

    service_name = "pricing"

    def __init__(self, base_url: str | None = None, timeout: float | None = None,
                 client: httpx.AsyncClient | None = None) -> None:
        self.base_url = (base_url or settings.pricing_service_url).rstrip("/")
        self.timeout = timeout or settings.collaborator_timeout_seconds
        self._http_client = client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def quote(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> PriceQuote:
        payload = {
            "hotel_id": str(hotel_id),
            "rooms": [{"room_type": r.room_type, "quantity": r.quantity} for r in rooms],
            "check_in": dates.check_in.isoformat(),
            "check_out": dates.check_out.isoformat(),
        }
        try:
            response = await self.http_client.post("/quotes", json=payload)
            response.raise_for_status()
            data = response.json()
            return PriceQuote(
                final_price=int(data["final_price"]),
                base_price=int(data.get("base_price", data["final_price"])),
                currency=data.get("currency", settings.default_currency),
                line_prices={k: int(v) for k, v in data.get("line_prices", {}).items()},
                raw_response=data,
            )
        except (httpx.HTTPError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Pricing quote failed for hotel {hotel_id}: {e}")
            raise CollaboratorUnavailable(self.service_name, str(e)) from e

    async def demand_hint(self, hotel_id: UUID, dates: DateRange) -> str:
        try:
            response = await self.http_client.get(
                "/demand",
                params={
                    "hotel_id": str(hotel_id),
                    "check_in": dates.check_in.isoformat(),
                    "check_out": dates.check_out.isoformat(),
                },
            )
            response.raise_for_status()
            return str(response.json().get("level", "normal"))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Demand hint unavailable for hotel {hotel_id}, using 'normal': {e}")
            return "normal"
