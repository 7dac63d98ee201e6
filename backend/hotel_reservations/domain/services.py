import re
from datetime import date

from ..config import BookingPolicy
from ..models import Customer, MealPlan, Room
from ..utils.dates import age, is_today_or_future, is_within_booking_window, nights_between
from .errors import ValidationError

RESERVATION_CODE_PATTERN = re.compile(r"^[A-Z0-9-]{6,20}$")
MAX_SPECIAL_REQUESTS_LENGTH = 1000
MAX_NOTES_LENGTH = 500


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open [start, end) intersection test."""
    return a_start < b_end and b_start < a_end


def overlaps_requested_window(existing_start: date, existing_end: date, start: date, end: date) -> bool:
    """
    Same answer as intervals_overlap, spelled out as the three covering cases the
    store queries use: the existing stay starts inside the window, ends inside it,
    or contains it entirely.
    """
    starts_inside = start <= existing_start < end
    ends_inside = start < existing_end <= end
    contains = existing_start <= start and existing_end >= end
    return starts_inside or ends_inside or contains


def validate_reservation_code(code: str) -> None:
    if not RESERVATION_CODE_PATTERN.fullmatch(code or ""):
        raise ValidationError("reservation code must be 6-20 characters of A-Z, 0-9 or '-'")


def validate_stay_dates(
    check_in: date,
    check_out: date,
    *,
    policy: BookingPolicy,
    today: date,
    require_future_check_in: bool = True,
) -> int:
    """Validate a requested stay and return its night count."""
    if require_future_check_in and not is_today_or_future(check_in, as_of=today):
        raise ValidationError("check-in date must be today or later")
    if check_out <= check_in:
        raise ValidationError("check-out date must be after check-in date")
    nights = nights_between(check_in, check_out)
    if nights < policy.min_nights or nights > policy.max_nights:
        raise ValidationError(
            f"stay must be between {policy.min_nights} and {policy.max_nights} nights, got {nights}"
        )
    if not is_within_booking_window(check_in, as_of=today, max_horizon_days=policy.booking_horizon_days):
        raise ValidationError(
            f"check-in cannot be more than {policy.booking_horizon_days} days ahead"
        )
    return nights


def validate_room_bookable(room: Room) -> None:
    if not room.is_bookable:
        raise ValidationError(f"room {room.name} is not bookable (status {room.status.value})")


def validate_guest_count(guest_count: int, *, capacity: int, room_name: str, policy: BookingPolicy) -> None:
    if guest_count < 1 or guest_count > policy.max_guests:
        raise ValidationError(f"guest count must be between 1 and {policy.max_guests}")
    if guest_count > capacity:
        raise ValidationError(
            f"room {room_name} holds at most {capacity} guests, {guest_count} requested"
        )


def validate_primary_guest(customer: Customer, *, policy: BookingPolicy, today: date) -> int:
    """Ensure the booking holder is an adult; returns the computed age."""
    if customer.date_of_birth is None:
        raise ValidationError("primary guest must have a recorded date of birth")
    years = age(customer.date_of_birth, as_of=today)
    if years < policy.adult_age:
        raise ValidationError(
            f"primary guest must be at least {policy.adult_age} years old, customer {customer.id} is {years}"
        )
    return years


def validate_meal_plan(meal_plan: MealPlan) -> None:
    if not meal_plan.is_active:
        raise ValidationError(f"meal plan {meal_plan.name} is not active")


def validate_free_text(*, special_requests: str | None, notes: str | None) -> None:
    if special_requests is not None and len(special_requests) > MAX_SPECIAL_REQUESTS_LENGTH:
        raise ValidationError(f"special requests exceed {MAX_SPECIAL_REQUESTS_LENGTH} characters")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes exceed {MAX_NOTES_LENGTH} characters")
