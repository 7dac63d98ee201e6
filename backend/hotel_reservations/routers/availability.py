from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Path, Query

from ..deps import get_booking_service, unwrap
from ..schemas import AvailabilityRead, AvailableRoomsSearch, RoomRead
from ..service import BookingService

router = APIRouter(prefix="/rooms", tags=["availability"])


@router.get("/{room_id}/availability", response_model=AvailabilityRead)
async def check_room_availability(
    room_id: int = Path(..., ge=1),
    check_in_date: date = Query(..., description="first night of the stay"),
    check_out_date: date = Query(..., description="departure day (exclusive)"),
    service: BookingService = Depends(get_booking_service),
) -> AvailabilityRead:
    result = unwrap(await service.check_room_availability(room_id, check_in_date, check_out_date))
    return AvailabilityRead.from_result(result)


@router.post("/search-available", response_model=List[RoomRead])
async def search_available_rooms(
    payload: AvailableRoomsSearch,
    service: BookingService = Depends(get_booking_service),
) -> list[RoomRead]:
    rooms = unwrap(
        await service.find_available_rooms(
            payload.check_in_date,
            payload.check_out_date,
            payload.guest_count,
            payload.room_type_id,
        )
    )
    return [RoomRead.from_db(room=room) for room in rooms]
