from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Computed, Enum, ForeignKey, Index, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, String


class Base(DeclarativeBase):
    pass


# SQLite only autoincrements INTEGER PRIMARY KEY.
IdType = BigInteger().with_variant(Integer, "sqlite")


def _enum_column(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class RoomStatus(StrEnum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_ORDER = "OUT_OF_ORDER"


class MealPlanType(StrEnum):
    BREAKFAST = "BREAKFAST"
    HALF_BOARD = "HALF_BOARD"
    FULL_BOARD = "FULL_BOARD"
    ALL_INCLUSIVE = "ALL_INCLUSIVE"


class ReservationStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ExtendedReservationStatus(StrEnum):
    """Operational statuses known to front-desk tooling.

    Not persisted and not part of the transition table.
    """

    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    NO_SHOW = "NO_SHOW"


class PaymentMethod(StrEnum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    PENDING = "PENDING"


class DiscountType(StrEnum):
    NONE = "NONE"
    LONG_STAY = "LONG_STAY"
    FREQUENT_GUEST = "FREQUENT_GUEST"
    CORPORATE = "CORPORATE"
    PROMOTIONAL = "PROMOTIONAL"


class RoomType(Base):
    __tablename__ = "room_types"
    __table_args__ = (
        UniqueConstraint("name", name="uq_room_types_name"),
        CheckConstraint("capacity >= 1", name="chk_room_types_capacity"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    rooms: Mapped[list["Room"]] = relationship(back_populates="room_type")


class Room(Base):
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("name", name="uq_rooms_name"),
        Index("idx_rooms_room_type", "room_type_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    floor: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    room_type_id: Mapped[int] = mapped_column(ForeignKey("room_types.id"), nullable=False)
    status: Mapped[RoomStatus] = mapped_column(
        _enum_column(RoomStatus),
        nullable=False,
        default=RoomStatus.AVAILABLE,
    )

    room_type: Mapped["RoomType"] = relationship(back_populates="rooms", lazy="joined")

    @property
    def is_bookable(self) -> bool:
        return self.status == RoomStatus.AVAILABLE


class MealPlan(Base):
    __tablename__ = "meal_plans"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[MealPlanType] = mapped_column(_enum_column(MealPlanType), nullable=False)
    daily_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("email", name="uq_customers_email"),
        UniqueConstraint("dni", name="uq_customers_dni"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    dni: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("end_date > start_date", name="chk_res_dates"),
        CheckConstraint("guest_count >= 1 AND guest_count <= 20", name="chk_res_guest_count"),
        Index("idx_res_room_dates", "room_id", "start_date", "end_date"),
        Index("idx_res_code", "reservation_code"),
        UniqueConstraint("active_code", name="uq_res_active_code"),
        Index("idx_res_status", "status"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    reservation_code: Mapped[str] = mapped_column(String(20), nullable=False)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id"), nullable=False)
    meal_plan_id: Mapped[Optional[int]] = mapped_column(ForeignKey("meal_plans.id"), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    guest_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    final_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        _enum_column(ReservationStatus),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        _enum_column(PaymentMethod),
        nullable=False,
        default=PaymentMethod.PENDING,
    )
    discount_type: Mapped[DiscountType] = mapped_column(
        _enum_column(DiscountType),
        nullable=False,
        default=DiscountType.NONE,
    )
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    # NULL once cancelled, so the unique key only covers live codes.
    active_code: Mapped[Optional[str]] = mapped_column(
        String(20),
        Computed(
            "CASE WHEN cancelled_at IS NULL AND status <> 'CANCELLED' THEN reservation_code END",
            persisted=True,
        ),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    customers: Mapped[list["CustomerReservation"]] = relationship(
        back_populates="reservation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def primary_customer_id(self) -> int | None:
        for link in self.customers:
            if link.is_primary_guest:
                return link.customer_id
        return None

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days


class CustomerReservation(Base):
    __tablename__ = "customer_reservations"
    __table_args__ = (
        UniqueConstraint("customer_id", "reservation_id", name="uq_customer_reservation"),
        Index("idx_cr_customer", "customer_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    reservation_id: Mapped[int] = mapped_column(ForeignKey("reservations.id"), nullable=False)
    is_primary_guest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    reservation: Mapped["Reservation"] = relationship(back_populates="customers")
