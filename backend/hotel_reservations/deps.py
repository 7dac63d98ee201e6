from typing import TypeVar

from fastapi import HTTPException, status

from .database import async_session
from .domain.errors import ReservationError
from .domain.result import Err, Result
from .infrastructure.unit_of_work import SqlAlchemyUnitOfWork
from .service import BookingService

T = TypeVar("T")

_STATUS_BY_KIND = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def get_booking_service() -> BookingService:
    return BookingService(SqlAlchemyUnitOfWork(async_session))


def http_error(error: ReservationError) -> HTTPException:
    code = _STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail={"kind": error.kind, "message": error.message})


def unwrap(result: Result[T]) -> T:
    if isinstance(result, Err):
        raise http_error(result.error)
    return result.value
