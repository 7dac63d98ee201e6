from dataclasses import dataclass, fields
from datetime import date

from ..config import BookingPolicy
from ..domain.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..domain.lifecycle import ensure_transition, is_terminal
from ..domain.repositories import ReservationFilters, ReservationPage, Repositories
from ..domain.services import (
    validate_free_text,
    validate_guest_count,
    validate_meal_plan,
    validate_primary_guest,
    validate_reservation_code,
    validate_room_bookable,
    validate_stay_dates,
)
from ..models import DiscountType, PaymentMethod, Reservation, ReservationStatus
from ..utils.dates import utc_now_naive
from .pricing import get_meal_plan, get_room, price_stay

MAX_REASON_LENGTH = 200
MAX_SEARCH_LENGTH = 100
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class NewReservation:
    reservation_code: str
    customer_id: int
    room_id: int
    check_in: date
    check_out: date
    guest_count: int
    meal_plan_id: int | None = None
    special_requests: str | None = None
    notes: str | None = None
    payment_method: PaymentMethod | None = None
    discount_type: DiscountType | None = None


@dataclass(frozen=True)
class ReservationChanges:
    """Partial update; a field left as None is not touched."""

    reservation_code: str | None = None
    check_in: date | None = None
    check_out: date | None = None
    guest_count: int | None = None
    meal_plan_id: int | None = None
    special_requests: str | None = None
    notes: str | None = None
    payment_method: PaymentMethod | None = None
    discount_type: DiscountType | None = None

    def provided(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


async def create_reservation(
    repos: Repositories,
    command: NewReservation,
    *,
    policy: BookingPolicy,
    today: date,
) -> Reservation:
    """
    Run the booking pipeline and persist a PENDING reservation.

    Checks run in a fixed order and the first failure aborts before anything is
    written: code, dates, room, overlap, capacity, primary guest, meal plan,
    free text. The room row is locked before the first read so competing
    bookings for the same room serialize on it and every check sees the rows
    committed by the previous holder.
    """
    await repos.reservations.lock_room(command.room_id)

    validate_reservation_code(command.reservation_code)
    if await repos.reservations.code_in_use(command.reservation_code):
        raise ConflictError(f"reservation code {command.reservation_code} already exists")

    validate_stay_dates(command.check_in, command.check_out, policy=policy, today=today)

    room = await get_room(repos.catalog, command.room_id)
    validate_room_bookable(room)

    overlapping = await repos.reservations.find_overlaps(room.id, command.check_in, command.check_out)
    if overlapping:
        raise ConflictError(
            f"room {room.name} is already booked for the requested dates ({len(overlapping)} conflicting)"
        )

    validate_guest_count(
        command.guest_count,
        capacity=room.room_type.capacity,
        room_name=room.name,
        policy=policy,
    )

    customer = await repos.catalog.get_customer(command.customer_id)
    if customer is None:
        raise NotFoundError(f"customer {command.customer_id} not found")
    validate_primary_guest(customer, policy=policy, today=today)

    meal_plan = None
    if command.meal_plan_id is not None:
        meal_plan = await get_meal_plan(repos.catalog, command.meal_plan_id)
        validate_meal_plan(meal_plan)

    validate_free_text(special_requests=command.special_requests, notes=command.notes)

    discount_type = command.discount_type or DiscountType.NONE
    price = price_stay(
        room,
        meal_plan,
        check_in=command.check_in,
        check_out=command.check_out,
        discount_type=discount_type,
        policy=policy,
    )

    now = utc_now_naive()
    reservation = Reservation(
        reservation_code=command.reservation_code,
        room_id=room.id,
        meal_plan_id=command.meal_plan_id,
        start_date=command.check_in,
        end_date=command.check_out,
        guest_count=command.guest_count,
        total_amount=price.subtotal,
        discount_amount=price.discount_amount,
        final_amount=price.total_amount,
        status=ReservationStatus.PENDING,
        payment_method=command.payment_method or PaymentMethod.PENDING,
        discount_type=discount_type,
        special_requests=command.special_requests,
        notes=command.notes,
        created_at=now,
        updated_at=now,
    )
    return await repos.reservations.add(reservation, primary_customer_id=customer.id)


async def get_reservation(repos: Repositories, *, reservation_id: int) -> Reservation:
    reservation = await repos.reservations.get(reservation_id)
    if reservation is None:
        raise NotFoundError(f"reservation {reservation_id} not found")
    return reservation


async def get_reservation_by_code(repos: Repositories, *, code: str) -> Reservation:
    reservation = await repos.reservations.get_by_code(code)
    if reservation is None:
        raise NotFoundError(f"reservation {code} not found")
    return reservation


async def _get_locked(repos: Repositories, reservation_id: int) -> Reservation:
    """Lock the reservation row, then its room, then load it."""
    room_id = await repos.reservations.lock_reservation(reservation_id)
    if room_id is None:
        raise NotFoundError(f"reservation {reservation_id} not found")
    await repos.reservations.lock_room(room_id)
    return await get_reservation(repos, reservation_id=reservation_id)


async def update_reservation(
    repos: Repositories,
    *,
    reservation_id: int,
    changes: ReservationChanges,
    policy: BookingPolicy,
    today: date,
) -> tuple[Reservation, list[str]]:
    """
    Apply a partial update, re-validating only what changes.

    Returns the saved reservation and the names of the fields that were
    provided. Dates trigger an overlap check that ignores this reservation;
    dates, meal plan or discount changes trigger a price recomputation.
    """
    reservation = await _get_locked(repos, reservation_id)
    if is_terminal(reservation.status):
        raise InvalidTransitionError(
            f"reservation {reservation.reservation_code} is {reservation.status.value} and cannot be modified"
        )
    provided = changes.provided()
    if not provided:
        return reservation, provided

    validate_free_text(special_requests=changes.special_requests, notes=changes.notes)

    if changes.reservation_code is not None and changes.reservation_code != reservation.reservation_code:
        validate_reservation_code(changes.reservation_code)
        if await repos.reservations.code_in_use(changes.reservation_code, exclude_reservation_id=reservation.id):
            raise ConflictError(f"reservation code {changes.reservation_code} already exists")
        reservation.reservation_code = changes.reservation_code

    reprice = False
    new_check_in = changes.check_in or reservation.start_date
    new_check_out = changes.check_out or reservation.end_date
    if (new_check_in, new_check_out) != (reservation.start_date, reservation.end_date):
        validate_stay_dates(
            new_check_in,
            new_check_out,
            policy=policy,
            today=today,
            require_future_check_in=changes.check_in is not None,
        )
        overlapping = await repos.reservations.find_overlaps(
            reservation.room_id,
            new_check_in,
            new_check_out,
            exclude_reservation_id=reservation.id,
        )
        if overlapping:
            raise ConflictError("room is not available for the new dates")
        reservation.start_date = new_check_in
        reservation.end_date = new_check_out
        reprice = True

    room = None
    if changes.guest_count is not None:
        room = await get_room(repos.catalog, reservation.room_id)
        validate_guest_count(
            changes.guest_count,
            capacity=room.room_type.capacity,
            room_name=room.name,
            policy=policy,
        )
        reservation.guest_count = changes.guest_count

    if changes.meal_plan_id is not None and changes.meal_plan_id != reservation.meal_plan_id:
        meal_plan = await get_meal_plan(repos.catalog, changes.meal_plan_id)
        validate_meal_plan(meal_plan)
        reservation.meal_plan_id = meal_plan.id
        reprice = True

    if changes.discount_type is not None and changes.discount_type != reservation.discount_type:
        reservation.discount_type = changes.discount_type
        reprice = True

    if changes.payment_method is not None:
        reservation.payment_method = changes.payment_method
    if changes.special_requests is not None:
        reservation.special_requests = changes.special_requests
    if changes.notes is not None:
        reservation.notes = changes.notes

    if reprice:
        room = room or await get_room(repos.catalog, reservation.room_id)
        meal_plan = (
            await get_meal_plan(repos.catalog, reservation.meal_plan_id)
            if reservation.meal_plan_id is not None
            else None
        )
        price = price_stay(
            room,
            meal_plan,
            check_in=reservation.start_date,
            check_out=reservation.end_date,
            discount_type=reservation.discount_type,
            policy=policy,
        )
        reservation.total_amount = price.subtotal
        reservation.discount_amount = price.discount_amount
        reservation.final_amount = price.total_amount

    reservation.updated_at = utc_now_naive()
    return await repos.reservations.save(reservation), provided


async def cancel_reservation(repos: Repositories, *, reservation_id: int) -> tuple[Reservation, ReservationStatus]:
    reservation = await _get_locked(repos, reservation_id)
    previous = reservation.status
    # Not idempotent: a second cancel is an error and leaves the row untouched.
    if previous == ReservationStatus.CANCELLED:
        raise InvalidTransitionError(f"reservation {reservation.reservation_code} is already cancelled")
    ensure_transition(previous, ReservationStatus.CANCELLED)

    now = utc_now_naive()
    reservation.status = ReservationStatus.CANCELLED
    reservation.cancelled_at = now
    reservation.updated_at = now
    return await repos.reservations.save(reservation), previous


async def change_status(
    repos: Repositories,
    *,
    reservation_id: int,
    status: ReservationStatus,
    reason: str | None = None,
) -> tuple[Reservation, ReservationStatus]:
    if reason is not None and len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds {MAX_REASON_LENGTH} characters")
    reservation = await _get_locked(repos, reservation_id)
    previous = reservation.status
    ensure_transition(previous, status)

    now = utc_now_naive()
    reservation.status = status
    if status == ReservationStatus.CANCELLED:
        reservation.cancelled_at = now
    reservation.updated_at = now
    return await repos.reservations.save(reservation), previous


async def list_reservations(repos: Repositories, *, filters: ReservationFilters) -> ReservationPage:
    if filters.page < 1:
        raise ValidationError("page must be >= 1")
    if filters.page_size < 1 or filters.page_size > MAX_PAGE_SIZE:
        raise ValidationError(f"page size must be between 1 and {MAX_PAGE_SIZE}")
    if filters.search is not None and len(filters.search) > MAX_SEARCH_LENGTH:
        raise ValidationError(f"search text exceeds {MAX_SEARCH_LENGTH} characters")
    if filters.check_in_from and filters.check_in_to and filters.check_in_from > filters.check_in_to:
        raise ValidationError("check-in range start must not be after its end")
    return await repos.reservations.search(filters)


async def list_customer_reservations(repos: Repositories, *, customer_id: int) -> list[Reservation]:
    return await repos.reservations.list_by_customer(customer_id)
