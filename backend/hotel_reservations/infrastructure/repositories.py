from __future__ import annotations

from datetime import date
from typing import Any, List, Optional

from sqlalchemy import Select, and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import CatalogReader, ReservationFilters, ReservationPage, ReservationStore
from ..models import (
    Customer,
    CustomerReservation,
    MealPlan,
    Reservation,
    ReservationStatus,
    Room,
    RoomStatus,
    RoomType,
)

_SORT_COLUMNS: dict[str, Any] = {
    "check_in_date": Reservation.start_date,
    "check_out_date": Reservation.end_date,
    "total_amount": Reservation.total_amount,
    "status": Reservation.status,
    "created_at": Reservation.created_at,
}


def _active():
    return and_(Reservation.cancelled_at.is_(None), Reservation.status != ReservationStatus.CANCELLED)


def _overlapping(start: date, end: date):
    # Three covering cases; together they equal start_date < end AND end_date > start.
    return or_(
        and_(Reservation.start_date >= start, Reservation.start_date < end),
        and_(Reservation.end_date > start, Reservation.end_date <= end),
        and_(Reservation.start_date <= start, Reservation.end_date >= end),
    )


class SqlAlchemyCatalogReader(CatalogReader):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_room(self, room_id: int) -> Room | None:
        return await self.session.get(Room, room_id)

    async def get_customer(self, customer_id: int) -> Customer | None:
        return await self.session.get(Customer, customer_id)

    async def get_meal_plan(self, meal_plan_id: int) -> MealPlan | None:
        return await self.session.get(MealPlan, meal_plan_id)

    async def list_bookable_rooms(
        self,
        *,
        min_capacity: int,
        room_type_id: int | None = None,
    ) -> List[Room]:
        stmt: Select[tuple[Room]] = (
            select(Room)
            .join(RoomType, Room.room_type_id == RoomType.id)
            .where(Room.status == RoomStatus.AVAILABLE, RoomType.capacity >= min_capacity)
            .order_by(RoomType.base_price.asc(), Room.name.asc())
        )
        if room_type_id is not None:
            stmt = stmt.where(Room.room_type_id == room_type_id)
        rows = await self.session.scalars(stmt)
        return list(rows.unique().all())


class SqlAlchemyReservationStore(ReservationStore):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_room(self, room_id: int) -> None:
        await self.session.execute(select(Room.id).where(Room.id == room_id).with_for_update())

    async def lock_reservation(self, reservation_id: int) -> int | None:
        stmt = select(Reservation.room_id).where(Reservation.id == reservation_id).with_for_update()
        return await self.session.scalar(stmt)

    async def find_overlaps(
        self,
        room_id: int,
        start: date,
        end: date,
        exclude_reservation_id: int | None = None,
    ) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.room_id == room_id, _active(), _overlapping(start, end))
        if exclude_reservation_id is not None:
            stmt = stmt.where(Reservation.id != exclude_reservation_id)
        rows = await self.session.scalars(stmt.order_by(Reservation.start_date))
        return list(rows.all())

    async def booked_room_ids(self, start: date, end: date) -> set[int]:
        stmt = select(Reservation.room_id).where(_active(), _overlapping(start, end)).distinct()
        rows = await self.session.scalars(stmt)
        return set(rows.all())

    async def code_in_use(self, code: str, exclude_reservation_id: int | None = None) -> bool:
        stmt = select(Reservation.id).where(Reservation.reservation_code == code, _active())
        if exclude_reservation_id is not None:
            stmt = stmt.where(Reservation.id != exclude_reservation_id)
        return await self.session.scalar(stmt.limit(1)) is not None

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await self.session.get(Reservation, reservation_id)

    async def get_by_code(self, code: str) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.reservation_code == code, _active())
        return await self.session.scalar(stmt.limit(1))

    async def add(self, reservation: Reservation, *, primary_customer_id: int) -> Reservation:
        reservation.customers.append(CustomerReservation(customer_id=primary_customer_id, is_primary_guest=True))
        # Both rows go out in the same flush inside the caller's transaction.
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def search(self, filters: ReservationFilters) -> ReservationPage:
        conditions: list[Any] = []
        if filters.status is not None:
            conditions.append(Reservation.status == filters.status)
        else:
            conditions.append(_active())
        if filters.room_id is not None:
            conditions.append(Reservation.room_id == filters.room_id)
        if filters.customer_id is not None:
            conditions.append(
                exists().where(
                    CustomerReservation.reservation_id == Reservation.id,
                    CustomerReservation.customer_id == filters.customer_id,
                )
            )
        if filters.check_in_from is not None:
            conditions.append(Reservation.start_date >= filters.check_in_from)
        if filters.check_in_to is not None:
            conditions.append(Reservation.start_date <= filters.check_in_to)
        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            guest_match = (
                exists()
                .where(
                    CustomerReservation.reservation_id == Reservation.id,
                    CustomerReservation.is_primary_guest.is_(True),
                    CustomerReservation.customer_id == Customer.id,
                )
                .where(
                    or_(
                        func.lower(Customer.first_name).like(pattern),
                        func.lower(Customer.last_name).like(pattern),
                        func.lower(Customer.email).like(pattern),
                        func.lower(Customer.dni).like(pattern),
                    )
                )
            )
            conditions.append(or_(func.lower(Reservation.reservation_code).like(pattern), guest_match))

        column = _SORT_COLUMNS[filters.sort_by]
        order = column.desc() if filters.sort_order == "desc" else column.asc()

        total = await self.session.scalar(select(func.count()).select_from(Reservation).where(*conditions))
        rows = await self.session.scalars(
            select(Reservation)
            .where(*conditions)
            .order_by(order, Reservation.id.asc())
            .offset(filters.offset)
            .limit(filters.page_size)
        )
        return ReservationPage(
            items=list(rows.all()),
            total=int(total or 0),
            page=filters.page,
            page_size=filters.page_size,
        )

    async def list_by_customer(self, customer_id: int) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .join(CustomerReservation, CustomerReservation.reservation_id == Reservation.id)
            .where(CustomerReservation.customer_id == customer_id, _active())
            .order_by(Reservation.start_date.desc())
        )
        rows = await self.session.scalars(stmt)
        return list(rows.unique().all())
