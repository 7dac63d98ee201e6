from datetime import date
from decimal import Decimal
from typing import Any, Callable

import pytest
from hotel_reservations.config import BookingPolicy
from hotel_reservations.infrastructure.memory import InMemoryCatalog, InMemoryUnitOfWork
from hotel_reservations.models import Customer, MealPlan, MealPlanType, Room, RoomStatus, RoomType
from hotel_reservations.service import BookingService
from hotel_reservations.usecases.reservations import NewReservation

TODAY = date(2025, 8, 15)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def policy() -> BookingPolicy:
    return BookingPolicy()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    standard = RoomType(id=1, name="Standard", capacity=2, base_price=Decimal("150.00"))
    family = RoomType(id=2, name="Family", capacity=4, base_price=Decimal("220.00"))
    suite = RoomType(id=3, name="Suite", capacity=2, base_price=Decimal("400.00"))
    catalog.add(standard, family, suite)
    catalog.add(
        Room(id=1, name="102", floor=1, room_type_id=1, status=RoomStatus.AVAILABLE),
        Room(id=2, name="101", floor=1, room_type_id=1, status=RoomStatus.AVAILABLE),
        Room(id=3, name="201", floor=2, room_type_id=2, status=RoomStatus.AVAILABLE),
        Room(id=4, name="202", floor=2, room_type_id=2, status=RoomStatus.MAINTENANCE),
        Room(id=5, name="301", floor=3, room_type_id=3, status=RoomStatus.AVAILABLE),
    )
    catalog.add(
        Customer(
            id=1,
            first_name="Ana",
            last_name="Torres",
            email="ana.torres@example.com",
            dni="12345678",
            date_of_birth=date(1990, 5, 20),
        ),
        # Turns 18 tomorrow.
        Customer(
            id=2,
            first_name="Leo",
            last_name="Ruiz",
            email="leo.ruiz@example.com",
            dni="87654321",
            date_of_birth=date(2007, 8, 16),
        ),
        Customer(
            id=3,
            first_name="Marta",
            last_name="Gil",
            email="marta.gil@example.com",
            dni=None,
            date_of_birth=None,
        ),
        Customer(
            id=4,
            first_name="Pablo",
            last_name="Serrano",
            email="pablo@corp.example.com",
            dni="55555555",
            date_of_birth=date(1985, 1, 2),
        ),
    )
    catalog.add(
        MealPlan(id=1, name="Breakfast", type=MealPlanType.BREAKFAST, daily_price=Decimal("25.00"), is_active=True),
        MealPlan(id=2, name="Half board", type=MealPlanType.HALF_BOARD, daily_price=Decimal("40.00"), is_active=False),
    )
    return catalog


@pytest.fixture
def uow(catalog: InMemoryCatalog) -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(catalog)


@pytest.fixture
def service(uow: InMemoryUnitOfWork, policy: BookingPolicy, today: date) -> BookingService:
    return BookingService(uow, policy=policy, today=lambda: today)


@pytest.fixture
def new_reservation() -> Callable[..., NewReservation]:
    def build(**overrides: Any) -> NewReservation:
        values: dict[str, Any] = {
            "reservation_code": "RES-0001",
            "customer_id": 1,
            "room_id": 1,
            "check_in": date(2025, 9, 1),
            "check_out": date(2025, 9, 5),
            "guest_count": 2,
        }
        values.update(overrides)
        return NewReservation(**values)

    return build
