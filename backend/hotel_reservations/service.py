from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .config import BookingPolicy, get_settings
from .domain.errors import InternalError, ReservationError
from .domain.pricing import PriceBreakdown
from .domain.repositories import ReservationFilters, ReservationPage, Repositories, UnitOfWork
from .domain.result import Err, Ok, Result
from .models import DiscountType, Reservation, ReservationStatus, Room
from .usecases import availability as availability_usecase
from .usecases import pricing as pricing_usecase
from .usecases import reservations as reservation_usecase
from .usecases.availability import RoomAvailability
from .usecases.reservations import NewReservation, ReservationChanges
from .utils.audit_log import emit_audit_log

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BookingService:
    """
    Public entry point of the booking core.

    Every operation runs inside one unit of work and returns ``Ok(value)`` or
    ``Err(error)``; business-rule failures never escape as exceptions.
    Unexpected failures are logged and reported as a generic InternalError.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        *,
        policy: BookingPolicy | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.uow = uow
        self.policy = policy or get_settings().policy
        self._today = today

    async def _execute(self, operation: str, work: Callable[[Repositories], Awaitable[T]]) -> Result[T]:
        try:
            return Ok(await self.uow.run(work))
        except ReservationError as exc:
            logger.info("%s rejected (%s): %s", operation, exc.kind, exc.message)
            return Err(exc)
        except Exception:
            logger.exception("%s failed", operation)
            return Err(InternalError("internal error"))

    def _audit(self, reservation: Reservation, **fields: Any) -> None:
        try:
            emit_audit_log(
                initiator="staff",
                reservation_id=reservation.id,
                reservation_code=reservation.reservation_code,
                room_id=reservation.room_id,
                customer_id=reservation.primary_customer_id,
                guest_count=reservation.guest_count,
                **fields,
            )
        except RuntimeError:
            # The change is already committed; losing the audit line must not undo it.
            logger.exception("audit log failed for reservation %s", reservation.id)

    async def create_reservation(self, command: NewReservation) -> Result[Reservation]:
        today = self._today()
        result = await self._execute(
            "create_reservation",
            lambda repos: reservation_usecase.create_reservation(repos, command, policy=self.policy, today=today),
        )
        if isinstance(result, Ok):
            self._audit(
                result.value,
                action="reservation.created",
                status_from=None,
                status_to=result.value.status,
            )
        return result

    async def update_reservation(self, reservation_id: int, changes: ReservationChanges) -> Result[Reservation]:
        today = self._today()
        result = await self._execute(
            "update_reservation",
            lambda repos: reservation_usecase.update_reservation(
                repos,
                reservation_id=reservation_id,
                changes=changes,
                policy=self.policy,
                today=today,
            ),
        )
        if isinstance(result, Err):
            return result
        reservation, provided = result.value
        if provided:
            self._audit(
                reservation,
                action="reservation.updated",
                status_from=reservation.status,
                status_to=reservation.status,
                extra={"fields": provided},
            )
        return Ok(reservation)

    async def cancel_reservation(self, reservation_id: int) -> Result[None]:
        result = await self._execute(
            "cancel_reservation",
            lambda repos: reservation_usecase.cancel_reservation(repos, reservation_id=reservation_id),
        )
        if isinstance(result, Err):
            return result
        reservation, previous = result.value
        self._audit(
            reservation,
            action="reservation.cancelled",
            status_from=previous,
            status_to=reservation.status,
        )
        return Ok(None)

    async def change_status(
        self,
        reservation_id: int,
        status: ReservationStatus,
        reason: Optional[str] = None,
    ) -> Result[Reservation]:
        result = await self._execute(
            "change_status",
            lambda repos: reservation_usecase.change_status(
                repos,
                reservation_id=reservation_id,
                status=status,
                reason=reason,
            ),
        )
        if isinstance(result, Err):
            return result
        reservation, previous = result.value
        self._audit(
            reservation,
            action="reservation.status_changed",
            status_from=previous,
            status_to=reservation.status,
            reason=reason,
        )
        return Ok(reservation)

    async def get_reservation(self, reservation_id: int) -> Result[Reservation]:
        return await self._execute(
            "get_reservation",
            lambda repos: reservation_usecase.get_reservation(repos, reservation_id=reservation_id),
        )

    async def get_reservation_by_code(self, code: str) -> Result[Reservation]:
        return await self._execute(
            "get_reservation_by_code",
            lambda repos: reservation_usecase.get_reservation_by_code(repos, code=code),
        )

    async def list_reservations(self, filters: ReservationFilters) -> Result[ReservationPage]:
        return await self._execute(
            "list_reservations",
            lambda repos: reservation_usecase.list_reservations(repos, filters=filters),
        )

    async def list_customer_reservations(self, customer_id: int) -> Result[list[Reservation]]:
        return await self._execute(
            "list_customer_reservations",
            lambda repos: reservation_usecase.list_customer_reservations(repos, customer_id=customer_id),
        )

    async def check_room_availability(self, room_id: int, check_in: date, check_out: date) -> Result[RoomAvailability]:
        today = self._today()
        return await self._execute(
            "check_room_availability",
            lambda repos: availability_usecase.check_room_availability(
                repos,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
                policy=self.policy,
                today=today,
            ),
        )

    async def find_available_rooms(
        self,
        check_in: date,
        check_out: date,
        guest_count: int,
        room_type_id: Optional[int] = None,
    ) -> Result[list[Room]]:
        today = self._today()
        return await self._execute(
            "find_available_rooms",
            lambda repos: availability_usecase.find_available_rooms(
                repos,
                check_in=check_in,
                check_out=check_out,
                guest_count=guest_count,
                room_type_id=room_type_id,
                policy=self.policy,
                today=today,
            ),
        )

    async def calculate_price(
        self,
        room_id: int,
        meal_plan_id: Optional[int],
        check_in: date,
        check_out: date,
        discount_type: Optional[DiscountType] = None,
    ) -> Result[PriceBreakdown]:
        today = self._today()
        return await self._execute(
            "calculate_price",
            lambda repos: pricing_usecase.quote_price(
                repos.catalog,
                room_id=room_id,
                meal_plan_id=meal_plan_id,
                check_in=check_in,
                check_out=check_out,
                discount_type=discount_type,
                policy=self.policy,
                today=today,
            ),
        )
