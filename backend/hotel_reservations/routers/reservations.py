from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from ..deps import get_booking_service, unwrap
from ..domain.repositories import ReservationFilters
from ..models import ReservationStatus
from ..schemas import (
    PriceBreakdownRead,
    PriceQuoteRequest,
    ReservationCreate,
    ReservationList,
    ReservationRead,
    ReservationStatusChange,
    ReservationUpdate,
)
from ..service import BookingService

router = APIRouter(prefix="", tags=["reservations"])


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    service: BookingService = Depends(get_booking_service),
) -> ReservationRead:
    reservation = unwrap(await service.create_reservation(payload.to_command()))
    return ReservationRead.from_db(reservation=reservation)


@router.get("/reservations", response_model=ReservationList)
async def list_reservations(
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    customer_id: Optional[int] = Query(default=None, ge=1),
    room_id: Optional[int] = Query(default=None, ge=1),
    check_in_from: Optional[date] = Query(default=None),
    check_in_to: Optional[date] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100),
    sort_by: Literal["check_in_date", "check_out_date", "total_amount", "status", "created_at"] = Query(
        default="check_in_date"
    ),
    sort_order: Literal["asc", "desc"] = Query(default="asc"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    service: BookingService = Depends(get_booking_service),
) -> ReservationList:
    filters = ReservationFilters(
        status=status_filter,
        customer_id=customer_id,
        room_id=room_id,
        check_in_from=check_in_from,
        check_in_to=check_in_to,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
    )
    return ReservationList.from_page(unwrap(await service.list_reservations(filters)))


@router.post("/reservations/calculate-price", response_model=PriceBreakdownRead)
async def calculate_price(
    payload: PriceQuoteRequest,
    service: BookingService = Depends(get_booking_service),
) -> PriceBreakdownRead:
    breakdown = unwrap(
        await service.calculate_price(
            payload.room_id,
            payload.meal_plan_id,
            payload.check_in_date,
            payload.check_out_date,
            payload.discount_type,
        )
    )
    return PriceBreakdownRead.from_breakdown(breakdown)


@router.get("/reservations/code/{code}", response_model=ReservationRead)
async def get_reservation_by_code(
    code: str = Path(..., min_length=6, max_length=20),
    service: BookingService = Depends(get_booking_service),
) -> ReservationRead:
    reservation = unwrap(await service.get_reservation_by_code(code))
    return ReservationRead.from_db(reservation=reservation)


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    service: BookingService = Depends(get_booking_service),
) -> ReservationRead:
    reservation = unwrap(await service.get_reservation(reservation_id))
    return ReservationRead.from_db(reservation=reservation)


@router.patch("/reservations/{reservation_id}", response_model=ReservationRead)
async def update_reservation(
    payload: ReservationUpdate,
    reservation_id: int = Path(..., ge=1),
    service: BookingService = Depends(get_booking_service),
) -> ReservationRead:
    reservation = unwrap(await service.update_reservation(reservation_id, payload.to_changes()))
    return ReservationRead.from_db(reservation=reservation)


@router.patch("/reservations/{reservation_id}/status", response_model=ReservationRead)
async def change_reservation_status(
    payload: ReservationStatusChange,
    reservation_id: int = Path(..., ge=1),
    service: BookingService = Depends(get_booking_service),
) -> ReservationRead:
    reservation = unwrap(await service.change_status(reservation_id, payload.status, payload.reason))
    return ReservationRead.from_db(reservation=reservation)


@router.delete("/reservations/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    service: BookingService = Depends(get_booking_service),
) -> Response:
    unwrap(await service.cancel_reservation(reservation_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/customers/{customer_id}/reservations", response_model=List[ReservationRead])
async def list_customer_reservations(
    customer_id: int = Path(..., ge=1),
    service: BookingService = Depends(get_booking_service),
) -> list[ReservationRead]:
    rows = unwrap(await service.list_customer_reservations(customer_id))
    return [ReservationRead.from_db(reservation=r) for r in rows]
