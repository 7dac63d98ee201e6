from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Literal, Protocol, TypeVar

from ..models import Customer, MealPlan, Reservation, ReservationStatus, Room

T = TypeVar("T")

SortField = Literal["check_in_date", "check_out_date", "total_amount", "status", "created_at"]
SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True)
class ReservationFilters:
    status: ReservationStatus | None = None
    customer_id: int | None = None
    room_id: int | None = None
    check_in_from: date | None = None
    check_in_to: date | None = None
    search: str | None = None
    sort_by: SortField = "check_in_date"
    sort_order: SortOrder = "asc"
    page: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class ReservationPage:
    items: list[Reservation]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0


class CatalogReader(Protocol):
    async def get_room(self, room_id: int) -> Room | None: ...

    async def get_customer(self, customer_id: int) -> Customer | None: ...

    async def get_meal_plan(self, meal_plan_id: int) -> MealPlan | None: ...

    async def list_bookable_rooms(
        self,
        *,
        min_capacity: int,
        room_type_id: int | None = None,
    ) -> list[Room]: ...


class ReservationStore(Protocol):
    async def lock_room(self, room_id: int) -> None: ...

    async def lock_reservation(self, reservation_id: int) -> int | None:
        """Row-lock the reservation and return its room id, or None if it does not exist."""
        ...

    async def find_overlaps(
        self,
        room_id: int,
        start: date,
        end: date,
        exclude_reservation_id: int | None = None,
    ) -> list[Reservation]: ...

    async def booked_room_ids(self, start: date, end: date) -> set[int]: ...

    async def code_in_use(self, code: str, exclude_reservation_id: int | None = None) -> bool: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_by_code(self, code: str) -> Reservation | None: ...

    async def add(self, reservation: Reservation, *, primary_customer_id: int) -> Reservation: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def search(self, filters: ReservationFilters) -> ReservationPage: ...

    async def list_by_customer(self, customer_id: int) -> list[Reservation]: ...


@dataclass(frozen=True)
class Repositories:
    catalog: CatalogReader
    reservations: ReservationStore


class UnitOfWork(Protocol):
    async def run(self, work: Callable[[Repositories], Awaitable[T]]) -> T:
        """Run `work` inside one transaction; commit on return, roll back on any exception."""
        ...
