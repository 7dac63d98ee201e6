from dataclasses import dataclass, field
from datetime import date

from ..config import BookingPolicy
from ..domain.errors import ValidationError
from ..domain.repositories import Repositories
from ..domain.services import validate_stay_dates
from ..models import Reservation, Room
from .pricing import get_room


@dataclass(frozen=True)
class RoomAvailability:
    room: Room
    available: bool
    conflicts: list[Reservation] = field(default_factory=list)


async def check_room_availability(
    repos: Repositories,
    *,
    room_id: int,
    check_in: date,
    check_out: date,
    policy: BookingPolicy,
    today: date,
) -> RoomAvailability:
    validate_stay_dates(check_in, check_out, policy=policy, today=today)
    room = await get_room(repos.catalog, room_id)
    conflicts = await repos.reservations.find_overlaps(room_id, check_in, check_out)
    return RoomAvailability(
        room=room,
        available=not conflicts and room.is_bookable,
        conflicts=conflicts,
    )


async def find_available_rooms(
    repos: Repositories,
    *,
    check_in: date,
    check_out: date,
    guest_count: int,
    room_type_id: int | None,
    policy: BookingPolicy,
    today: date,
) -> list[Room]:
    validate_stay_dates(check_in, check_out, policy=policy, today=today)
    if guest_count < 1 or guest_count > policy.max_guests:
        raise ValidationError(f"guest count must be between 1 and {policy.max_guests}")

    # Catalog order (base price, then room name) is kept.
    rooms = await repos.catalog.list_bookable_rooms(min_capacity=guest_count, room_type_id=room_type_id)
    booked = await repos.reservations.booked_room_ids(check_in, check_out)
    return [room for room in rooms if room.id not in booked]
