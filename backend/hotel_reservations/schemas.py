from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.pricing import PriceBreakdown
from .domain.repositories import ReservationPage
from .models import DiscountType, PaymentMethod, Reservation, ReservationStatus, Room, RoomStatus
from .usecases.availability import RoomAvailability
from .usecases.reservations import NewReservation, ReservationChanges

CODE_PATTERN = r"^[A-Z0-9-]+$"


class ReservationCreate(BaseModel):
    reservation_code: str = Field(min_length=6, max_length=20, pattern=CODE_PATTERN)
    customer_id: int = Field(ge=1)
    room_id: int = Field(ge=1)
    meal_plan_id: Optional[int] = Field(default=None, ge=1)
    check_in_date: date
    check_out_date: date
    guest_count: int = Field(ge=1, le=20)
    special_requests: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=500)
    payment_method: Optional[PaymentMethod] = None
    discount_type: Optional[DiscountType] = None

    def to_command(self) -> NewReservation:
        return NewReservation(
            reservation_code=self.reservation_code,
            customer_id=self.customer_id,
            room_id=self.room_id,
            meal_plan_id=self.meal_plan_id,
            check_in=self.check_in_date,
            check_out=self.check_out_date,
            guest_count=self.guest_count,
            special_requests=self.special_requests,
            notes=self.notes,
            payment_method=self.payment_method,
            discount_type=self.discount_type,
        )


class ReservationUpdate(BaseModel):
    reservation_code: Optional[str] = Field(default=None, min_length=6, max_length=20, pattern=CODE_PATTERN)
    meal_plan_id: Optional[int] = Field(default=None, ge=1)
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    guest_count: Optional[int] = Field(default=None, ge=1, le=20)
    special_requests: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=500)
    payment_method: Optional[PaymentMethod] = None
    discount_type: Optional[DiscountType] = None

    def to_changes(self) -> ReservationChanges:
        return ReservationChanges(
            reservation_code=self.reservation_code,
            check_in=self.check_in_date,
            check_out=self.check_out_date,
            guest_count=self.guest_count,
            meal_plan_id=self.meal_plan_id,
            special_requests=self.special_requests,
            notes=self.notes,
            payment_method=self.payment_method,
            discount_type=self.discount_type,
        )


class ReservationStatusChange(BaseModel):
    status: ReservationStatus
    reason: Optional[str] = Field(default=None, max_length=200)


class ReservationRead(BaseModel):
    reservation_id: int
    reservation_code: str
    customer_id: Optional[int]
    room_id: int
    meal_plan_id: Optional[int]
    check_in_date: date
    check_out_date: date
    nights: int
    guest_count: int
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    status: ReservationStatus
    payment_method: PaymentMethod
    discount_type: DiscountType
    special_requests: Optional[str]
    notes: Optional[str]
    cancelled_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @field_serializer("total_amount", "discount_amount", "final_amount")
    def _ser_money(self, value: Decimal) -> str:
        return f"{value:.2f}"

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            reservation_code=reservation.reservation_code,
            customer_id=reservation.primary_customer_id,
            room_id=reservation.room_id,
            meal_plan_id=reservation.meal_plan_id,
            check_in_date=reservation.start_date,
            check_out_date=reservation.end_date,
            nights=reservation.nights,
            guest_count=reservation.guest_count,
            total_amount=reservation.total_amount,
            discount_amount=reservation.discount_amount,
            final_amount=reservation.final_amount,
            status=reservation.status,
            payment_method=reservation.payment_method,
            discount_type=reservation.discount_type,
            special_requests=reservation.special_requests,
            notes=reservation.notes,
            cancelled_at=reservation.cancelled_at,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )


class ReservationList(BaseModel):
    items: List[ReservationRead]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: ReservationPage) -> "ReservationList":
        return cls(
            items=[ReservationRead.from_db(reservation=r) for r in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
        )


class RoomRead(BaseModel):
    room_id: int
    name: str
    floor: int
    status: RoomStatus
    room_type_id: int
    room_type_name: str
    capacity: int
    base_price: Decimal

    @classmethod
    def from_db(cls, *, room: Room) -> "RoomRead":
        return cls(
            room_id=room.id,
            name=room.name,
            floor=room.floor,
            status=room.status,
            room_type_id=room.room_type_id,
            room_type_name=room.room_type.name,
            capacity=room.room_type.capacity,
            base_price=room.room_type.base_price,
        )


class AvailabilityRead(BaseModel):
    room: RoomRead
    available: bool
    conflicts: List[ReservationRead]

    @classmethod
    def from_result(cls, result: RoomAvailability) -> "AvailabilityRead":
        return cls(
            room=RoomRead.from_db(room=result.room),
            available=result.available,
            conflicts=[ReservationRead.from_db(reservation=r) for r in result.conflicts],
        )


class AvailableRoomsSearch(BaseModel):
    check_in_date: date
    check_out_date: date
    guest_count: int = Field(ge=1, le=20)
    room_type_id: Optional[int] = Field(default=None, ge=1)


class PriceQuoteRequest(BaseModel):
    room_id: int = Field(ge=1)
    meal_plan_id: Optional[int] = Field(default=None, ge=1)
    check_in_date: date
    check_out_date: date
    discount_type: Optional[DiscountType] = None


class PriceBreakdownRead(BaseModel):
    nights: int
    room_price: Decimal
    meal_plan_price: Decimal
    room_total: Decimal
    meal_plan_total: Decimal
    subtotal: Decimal
    discount_type: DiscountType
    discount_amount: Decimal
    total_amount: Decimal
    price_per_night: Decimal
    taxes: Decimal
    fees: Decimal

    @classmethod
    def from_breakdown(cls, breakdown: PriceBreakdown) -> "PriceBreakdownRead":
        return cls(**asdict(breakdown))
