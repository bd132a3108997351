import asyncio
import os
import tempfile
from datetime import UTC, date, datetime, timedelta
from uuid import uuid4

# Settings are read at import time; point them at a throwaway SQLite file first.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="stayledger-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/stayledger.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["RUN_STARTUP_RECONCILIATION"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from stayledger.collaborators.base import (  # noqa: E402
    InventoryService,
    NotificationPublisher,
    PriceQuote,
    PricingService,
    ReservationResult,
)
from stayledger.collaborators.eligibility import RedemptionRulesEligibility  # noqa: E402
from stayledger.core.immutability import register_immutability_enforcement  # noqa: E402
from stayledger.core.security import create_actor_token  # noqa: E402
from stayledger.database import Base, async_session_maker, engine  # noqa: E402
from stayledger.domain.actors import Actor, ActorRole  # noqa: E402
from stayledger.models.booking import Booking  # noqa: E402
from stayledger.schemas.booking import BookingDraft, RoomLineIn  # noqa: E402
from stayledger.services.lifecycle_service import LifecycleService  # noqa: E402
from stayledger.services.loyalty_service import LoyaltyService  # noqa: E402
from stayledger.services.notification_service import NotificationService  # noqa: E402

import stayledger.models  # noqa: E402, F401

register_immutability_enforcement()

NOW = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
CHECK_IN = date(2026, 3, 10)


class FixedClock:
    """Settable clock injected into services."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class StubPricing(PricingService):
    def __init__(self, price: int = 20000) -> None:
        self.price = price
        self.fail = False
        self.delay = 0.0
        self.demand_fails = False
        self.quotes = 0

    async def quote(self, hotel_id, rooms, dates) -> PriceQuote:
        self.quotes += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("pricing backend down")
        return PriceQuote(final_price=self.price, base_price=self.price, currency="USD")

    async def demand_hint(self, hotel_id, dates) -> str:
        if self.demand_fails:
            raise RuntimeError("demand backend down")
        return "high"


class StubInventory(InventoryService):
    def __init__(self) -> None:
        self.available = True
        self.reserved: list = []
        self.released: list = []

    async def reserve(self, hotel_id, rooms, dates) -> ReservationResult:
        if not self.available:
            return ReservationResult(success=False, error_message="Sold out")
        self.reserved.append((hotel_id, tuple(rooms), dates))
        return ReservationResult(success=True, reservation_id=str(uuid4()))

    async def release(self, hotel_id, rooms, dates) -> ReservationResult:
        self.released.append((hotel_id, tuple(rooms), dates))
        return ReservationResult(success=True)


class RecordingPublisher(NotificationPublisher):
    def __init__(self) -> None:
        self.events: list = []
        self.fail = False

    async def publish(self, event) -> None:
        if self.fail:
            raise ConnectionError("notification service unreachable")
        self.events.append(event)

    def of_type(self, name: str) -> list:
        return [e for e in self.events if e.event_type == name]


# ==================== DATABASE ====================


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# ==================== COLLABORATORS ====================


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def pricing() -> StubPricing:
    return StubPricing()


@pytest.fixture
def inventory() -> StubInventory:
    return StubInventory()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def notifications(publisher) -> NotificationService:
    return NotificationService(publisher)


@pytest.fixture
def lifecycle(pricing, notifications, clock) -> LifecycleService:
    return LifecycleService(
        pricing=pricing,
        eligibility=RedemptionRulesEligibility(),
        notifications=notifications,
        clock=clock,
    )


@pytest.fixture
def loyalty(notifications, clock) -> LoyaltyService:
    return LoyaltyService(notifications, clock=clock)


# ==================== ACTORS ====================


@pytest.fixture
def customer_id():
    return uuid4()


@pytest.fixture
def customer(customer_id) -> Actor:
    return Actor(actor_id=str(customer_id), role=ActorRole.CUSTOMER)


@pytest.fixture
def admin() -> Actor:
    return Actor(actor_id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def receptionist() -> Actor:
    return Actor(actor_id="desk-1", role=ActorRole.RECEPTIONIST)


# ==================== BUILDERS ====================


@pytest.fixture
def make_draft():
    hotel_id = uuid4()

    def _make(customer_id, check_in: date = CHECK_IN, nights: int = 2, room_type: str = "DELUXE") -> BookingDraft:
        return BookingDraft(
            customer_id=customer_id,
            hotel_id=hotel_id,
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            rooms=[RoomLineIn(room_type=room_type, quantity=1)],
        )

    return _make


@pytest.fixture
def seed_points(db, loyalty, admin):
    """Give a customer points through an admin adjustment."""

    async def _seed(customer_id, points: int):
        return await loyalty.adjust(db, customer_id, points, admin, "Opening balance")

    return _seed


@pytest.fixture
def insert_booking(db):
    """Persist a booking directly in a given status."""

    async def _insert(customer_id, status: str, check_in: date, nights: int, total_price: int) -> Booking:
        booking = Booking(
            booking_number=f"STAY-{uuid4().hex[:6].upper()}",
            customer_id=customer_id,
            hotel_id=uuid4(),
            check_in=check_in,
            check_out=check_in + timedelta(days=nights),
            currency="USD",
            base_price=total_price,
            quoted_price=total_price,
            discount_amount=0,
            total_price=total_price,
            extras_amount=0,
            status=status,
            loyalty_effect={},
        )
        db.add(booking)
        await db.commit()
        return booking

    return _insert


# ==================== API ====================


@pytest.fixture
def token_for():
    def _token(actor_id, role: str = "customer") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_actor_token(str(actor_id), role)}"}

    return _token


@pytest.fixture
async def client(db, lifecycle, loyalty, inventory):
    from stayledger.api import deps
    from stayledger.main import app

    app.dependency_overrides[deps.get_lifecycle_service] = lambda: lifecycle
    app.dependency_overrides[deps.get_loyalty_service] = lambda: loyalty
    app.dependency_overrides[deps.get_inventory_service] = lambda: inventory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
