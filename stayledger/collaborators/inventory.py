"""HTTP adapter for the room-inventory service."""

import logging
from uuid import UUID

import httpx

from stayledger.collaborators.base import DateRange, InventoryService, ReservationResult, RoomSelection
from stayledger.config import settings

logger = logging.getLogger(__name__)


class HttpInventoryService(InventoryService):
    """Reserve and release rooms via the inventory service."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None,
                 client: httpx.AsyncClient | None = None) -> None:
        self.base_url = (base_url or settings.inventory_service_url).rstrip("/")
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

    def _payload(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> dict:
        return {
            "hotel_id": str(hotel_id),
            "rooms": [{"room_type": r.room_type, "quantity": r.quantity} for r in rooms],
            "check_in": dates.check_in.isoformat(),
            "check_out": dates.check_out.isoformat(),
        }

    async def _call(self, path: str, payload: dict) -> ReservationResult:
        try:
            response = await self.http_client.post(path, json=payload)
            if response.status_code >= 400:
                return ReservationResult(success=False, error_message=response.text or response.reason_phrase)
            data = response.json()
            return ReservationResult(success=True, reservation_id=data.get("reservation_id"))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Inventory call {path} failed: {e}")
            return ReservationResult(success=False, error_message=str(e))

    async def reserve(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> ReservationResult:
        return await self._call("/reservations", self._payload(hotel_id, rooms, dates))

    async def release(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> ReservationResult:
        return await self._call("/releases", self._payload(hotel_id, rooms, dates))
