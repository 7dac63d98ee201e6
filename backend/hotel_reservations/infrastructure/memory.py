"""In-memory adapters for the catalog, the reservation store and the unit of work.

They honour the same contracts as the SQLAlchemy adapters: a per-room lock held
until the unit of work finishes, and staged writes that only become visible on
commit.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy import inspect

from ..domain.errors import ConflictError
from ..domain.repositories import (
    CatalogReader,
    ReservationFilters,
    ReservationPage,
    ReservationStore,
    Repositories,
    UnitOfWork,
)
from ..domain.services import overlaps_requested_window
from ..models import Customer, CustomerReservation, MealPlan, Reservation, ReservationStatus, Room, RoomType

T = TypeVar("T")


def clone_reservation(reservation: Reservation) -> Reservation:
    values = {
        attr.key: getattr(reservation, attr.key)
        for attr in inspect(Reservation).column_attrs
        if attr.columns[0].computed is None
    }
    copy = Reservation(**values)
    for link in reservation.customers:
        copy.customers.append(
            CustomerReservation(
                customer_id=link.customer_id,
                reservation_id=reservation.id,
                is_primary_guest=link.is_primary_guest,
            )
        )
    return copy


def _is_active(reservation: Reservation) -> bool:
    return reservation.cancelled_at is None and reservation.status != ReservationStatus.CANCELLED


class InMemoryCatalog(CatalogReader):
    def __init__(self) -> None:
        self.room_types: Dict[int, RoomType] = {}
        self.rooms: Dict[int, Room] = {}
        self.customers: Dict[int, Customer] = {}
        self.meal_plans: Dict[int, MealPlan] = {}

    def add(self, *entities: RoomType | Room | Customer | MealPlan) -> None:
        for entity in entities:
            if isinstance(entity, RoomType):
                self.room_types[entity.id] = entity
            elif isinstance(entity, Room):
                if entity.room_type is None:
                    entity.room_type = self.room_types[entity.room_type_id]
                self.rooms[entity.id] = entity
            elif isinstance(entity, Customer):
                self.customers[entity.id] = entity
            elif isinstance(entity, MealPlan):
                self.meal_plans[entity.id] = entity
            else:
                raise TypeError(f"unsupported catalog entity: {type(entity).__name__}")

    async def get_room(self, room_id: int) -> Optional[Room]:
        return self.rooms.get(room_id)

    async def get_customer(self, customer_id: int) -> Optional[Customer]:
        return self.customers.get(customer_id)

    async def get_meal_plan(self, meal_plan_id: int) -> Optional[MealPlan]:
        return self.meal_plans.get(meal_plan_id)

    async def list_bookable_rooms(
        self,
        *,
        min_capacity: int,
        room_type_id: int | None = None,
    ) -> List[Room]:
        rooms = [
            room
            for room in self.rooms.values()
            if room.is_bookable
            and room.room_type.capacity >= min_capacity
            and (room_type_id is None or room.room_type_id == room_type_id)
        ]
        return sorted(rooms, key=lambda room: (room.room_type.base_price, room.name))


class InMemoryState:
    """Committed reservations plus one asyncio lock per room."""

    def __init__(self) -> None:
        self.reservations: Dict[int, Reservation] = {}
        self._next_id = 1
        self._room_locks: Dict[int, asyncio.Lock] = {}

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def room_lock(self, room_id: int) -> asyncio.Lock:
        return self._room_locks.setdefault(room_id, asyncio.Lock())

    def commit(self, staged: Iterable[Reservation]) -> None:
        """Store staged rows, rejecting all of them if two live rows would share a code."""
        rows = list(staged)
        merged = dict(self.reservations)
        merged.update((r.id, r) for r in rows)
        live_codes: Dict[str, int] = {}
        for reservation in merged.values():
            if not _is_active(reservation):
                continue
            if live_codes.setdefault(reservation.reservation_code, reservation.id) != reservation.id:
                raise ConflictError(f"reservation code {reservation.reservation_code} already exists")
        for reservation in rows:
            self.reservations[reservation.id] = clone_reservation(reservation)


class _Transaction:
    def __init__(self) -> None:
        self.staged: Dict[int, Reservation] = {}
        self._held: Dict[int, asyncio.Lock] = {}

    async def acquire(self, key: int, lock: asyncio.Lock) -> None:
        if key in self._held:
            return
        await lock.acquire()
        self._held[key] = lock

    def release(self) -> None:
        for lock in self._held.values():
            lock.release()
        self._held.clear()


class InMemoryReservationStore(ReservationStore):
    def __init__(self, state: InMemoryState, catalog: InMemoryCatalog, tx: _Transaction) -> None:
        self.state = state
        self.catalog = catalog
        self.tx = tx

    def _visible(self) -> List[Reservation]:
        merged = dict(self.state.reservations)
        merged.update(self.tx.staged)
        return list(merged.values())

    def _active(self) -> List[Reservation]:
        return [r for r in self._visible() if _is_active(r)]

    async def lock_room(self, room_id: int) -> None:
        await self.tx.acquire(room_id, self.state.room_lock(room_id))

    async def lock_reservation(self, reservation_id: int) -> int | None:
        # room_id is immutable; callers take the room lock next.
        reservation = self.tx.staged.get(reservation_id) or self.state.reservations.get(reservation_id)
        return reservation.room_id if reservation is not None else None

    async def find_overlaps(
        self,
        room_id: int,
        start,
        end,
        exclude_reservation_id: int | None = None,
    ) -> List[Reservation]:
        found = [
            r
            for r in self._active()
            if r.room_id == room_id
            and r.id != exclude_reservation_id
            and overlaps_requested_window(r.start_date, r.end_date, start, end)
        ]
        return [clone_reservation(r) for r in sorted(found, key=lambda r: r.start_date)]

    async def booked_room_ids(self, start, end) -> set[int]:
        return {
            r.room_id for r in self._active() if overlaps_requested_window(r.start_date, r.end_date, start, end)
        }

    async def code_in_use(self, code: str, exclude_reservation_id: int | None = None) -> bool:
        return any(r.reservation_code == code and r.id != exclude_reservation_id for r in self._active())

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        reservation = self.tx.staged.get(reservation_id) or self.state.reservations.get(reservation_id)
        return clone_reservation(reservation) if reservation is not None else None

    async def get_by_code(self, code: str) -> Optional[Reservation]:
        for reservation in self._active():
            if reservation.reservation_code == code:
                return clone_reservation(reservation)
        return None

    async def add(self, reservation: Reservation, *, primary_customer_id: int) -> Reservation:
        reservation.id = self.state.next_id()
        reservation.customers.append(
            CustomerReservation(
                customer_id=primary_customer_id,
                reservation_id=reservation.id,
                is_primary_guest=True,
            )
        )
        self.tx.staged[reservation.id] = reservation
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        self.tx.staged[reservation.id] = reservation
        return reservation

    def _matches_search(self, reservation: Reservation, text: str) -> bool:
        needle = text.lower()
        if needle in reservation.reservation_code.lower():
            return True
        customer = self.catalog.customers.get(reservation.primary_customer_id or 0)
        if customer is None:
            return False
        haystack = [customer.first_name, customer.last_name, customer.email, customer.dni or ""]
        return any(needle in value.lower() for value in haystack)

    async def search(self, filters: ReservationFilters) -> ReservationPage:
        if filters.status is not None:
            rows = [r for r in self._visible() if r.status == filters.status]
        else:
            rows = self._active()
        if filters.room_id is not None:
            rows = [r for r in rows if r.room_id == filters.room_id]
        if filters.customer_id is not None:
            rows = [r for r in rows if any(link.customer_id == filters.customer_id for link in r.customers)]
        if filters.check_in_from is not None:
            rows = [r for r in rows if r.start_date >= filters.check_in_from]
        if filters.check_in_to is not None:
            rows = [r for r in rows if r.start_date <= filters.check_in_to]
        if filters.search:
            rows = [r for r in rows if self._matches_search(r, filters.search)]

        key_attr = {
            "check_in_date": "start_date",
            "check_out_date": "end_date",
            "total_amount": "total_amount",
            "status": "status",
            "created_at": "created_at",
        }[filters.sort_by]
        rows.sort(key=lambda r: r.id)
        rows.sort(key=lambda r: getattr(r, key_attr), reverse=filters.sort_order == "desc")

        window = rows[filters.offset : filters.offset + filters.page_size]
        return ReservationPage(
            items=[clone_reservation(r) for r in window],
            total=len(rows),
            page=filters.page,
            page_size=filters.page_size,
        )

    async def list_by_customer(self, customer_id: int) -> List[Reservation]:
        rows = [r for r in self._active() if any(link.customer_id == customer_id for link in r.customers)]
        rows.sort(key=lambda r: r.start_date, reverse=True)
        return [clone_reservation(r) for r in rows]


class InMemoryUnitOfWork(UnitOfWork):
    def __init__(self, catalog: InMemoryCatalog, state: InMemoryState | None = None) -> None:
        self.catalog = catalog
        self.state = state or InMemoryState()

    async def run(self, work: Callable[[Repositories], Awaitable[T]]) -> T:
        tx = _Transaction()
        repos = Repositories(
            catalog=self.catalog,
            reservations=InMemoryReservationStore(self.state, self.catalog, tx),
        )
        try:
            result = await work(repos)
            self.state.commit(tx.staged.values())
            return result
        finally:
            tx.release()
