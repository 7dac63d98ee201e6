from datetime import date
from decimal import Decimal
from typing import Any, Callable

import pytest
import pytest_asyncio
from hotel_reservations.config import BookingPolicy
from hotel_reservations.domain.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from hotel_reservations.domain.repositories import ReservationFilters
from hotel_reservations.infrastructure.memory import InMemoryUnitOfWork
from hotel_reservations.models import DiscountType, PaymentMethod, Reservation, ReservationStatus
from hotel_reservations.usecases import reservations as uc
from hotel_reservations.usecases.reservations import NewReservation, ReservationChanges


@pytest.fixture
def create(uow: InMemoryUnitOfWork, policy: BookingPolicy, today: date) -> Callable[[NewReservation], Any]:
    async def _create(command: NewReservation) -> Reservation:
        return await uow.run(lambda repos: uc.create_reservation(repos, command, policy=policy, today=today))

    return _create


@pytest.fixture
def update(uow: InMemoryUnitOfWork, policy: BookingPolicy, today: date) -> Callable[..., Any]:
    async def _update(reservation_id: int, **changes: Any) -> Reservation:
        reservation, _ = await uow.run(
            lambda repos: uc.update_reservation(
                repos,
                reservation_id=reservation_id,
                changes=ReservationChanges(**changes),
                policy=policy,
                today=today,
            )
        )
        return reservation

    return _update


async def _get(uow: InMemoryUnitOfWork, reservation_id: int) -> Reservation:
    return await uow.run(lambda repos: uc.get_reservation(repos, reservation_id=reservation_id))


@pytest.mark.asyncio
async def test_create_persists_pending_reservation_with_primary_guest(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    reservation = await create(new_reservation())

    assert reservation.id is not None
    assert reservation.status == ReservationStatus.PENDING
    assert reservation.nights == 4
    assert reservation.total_amount == Decimal("600")
    assert reservation.final_amount == Decimal("600")
    assert reservation.payment_method == PaymentMethod.PENDING
    assert reservation.discount_type == DiscountType.NONE
    assert reservation.primary_customer_id == 1
    assert [link.is_primary_guest for link in reservation.customers] == [True]

    stored = await _get(uow, reservation.id)
    assert stored.reservation_code == "RES-0001"
    assert stored.primary_customer_id == 1


@pytest.mark.asyncio
async def test_create_with_meal_plan_and_long_stay_discount(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    reservation = await create(
        new_reservation(
            meal_plan_id=1,
            check_out=date(2025, 9, 8),
            discount_type=DiscountType.LONG_STAY,
        )
    )
    assert reservation.total_amount == Decimal("1225")
    assert reservation.discount_amount == Decimal("122.5")
    assert reservation.final_amount == Decimal("1102.5")


@pytest.mark.asyncio
async def test_overlapping_booking_conflicts_but_touching_one_succeeds(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    await create(new_reservation())

    with pytest.raises(ConflictError):
        await create(new_reservation(reservation_code="RES-0002", check_in=date(2025, 9, 3), check_out=date(2025, 9, 7)))

    touching = await create(
        new_reservation(reservation_code="RES-0003", check_in=date(2025, 9, 5), check_out=date(2025, 9, 9))
    )
    assert touching.status == ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_other_rooms_are_unaffected_by_a_booking(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    await create(new_reservation())
    other = await create(new_reservation(reservation_code="RES-0002", room_id=2))
    assert other.room_id == 2


@pytest.mark.asyncio
async def test_underage_primary_guest_rejected_without_writing(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await create(new_reservation(customer_id=2))
    assert "at least 18" in excinfo.value.message
    assert uow.state.reservations == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"reservation_code": "bad code"}, ValidationError),
        ({"check_in": date(2025, 8, 1), "check_out": date(2025, 8, 3)}, ValidationError),
        ({"check_out": date(2025, 10, 15)}, ValidationError),
        ({"check_in": date(2026, 9, 1), "check_out": date(2026, 9, 3)}, ValidationError),
        ({"room_id": 99}, NotFoundError),
        ({"room_id": 4}, ValidationError),
        ({"guest_count": 3}, ValidationError),
        ({"customer_id": 99}, NotFoundError),
        ({"customer_id": 3}, ValidationError),
        ({"meal_plan_id": 99}, NotFoundError),
        ({"meal_plan_id": 2}, ValidationError),
        ({"notes": "n" * 501}, ValidationError),
    ],
)
async def test_create_rejections(
    create: Callable[..., Any],
    new_reservation: Callable[..., NewReservation],
    uow: InMemoryUnitOfWork,
    overrides: dict[str, Any],
    error: type[Exception],
) -> None:
    with pytest.raises(error):
        await create(new_reservation(**overrides))
    assert uow.state.reservations == {}


@pytest.mark.asyncio
async def test_duplicate_code_reported_before_date_problems(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    await create(new_reservation())
    with pytest.raises(ConflictError) as excinfo:
        await create(new_reservation(room_id=2, check_in=date(2020, 1, 1), check_out=date(2020, 1, 2)))
    assert "already exists" in excinfo.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"room_id": 2}, ConflictError),
        ({"reservation_code": "RES-0002"}, ConflictError),
        ({"reservation_code": "RES-0002", "room_id": 2, "meal_plan_id": 99}, NotFoundError),
    ],
)
async def test_free_text_checked_after_the_booking_checks(
    create: Callable[..., Any],
    new_reservation: Callable[..., NewReservation],
    overrides: dict[str, Any],
    error: type[Exception],
) -> None:
    await create(new_reservation())
    with pytest.raises(error):
        await create(new_reservation(notes="n" * 501, special_requests="s" * 1001, **overrides))


@pytest.mark.asyncio
async def test_overlap_reported_before_capacity(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    await create(new_reservation())
    with pytest.raises(ConflictError):
        await create(new_reservation(reservation_code="RES-0002", guest_count=5))


@pytest.mark.asyncio
async def test_cancelled_code_can_be_reused(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    first = await create(new_reservation())
    await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=first.id))
    again = await create(new_reservation())
    assert again.id != first.id


@pytest.mark.asyncio
async def test_update_dates_rechecks_overlap_excluding_itself_and_reprices(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    reservation = await create(new_reservation())

    moved = await update(reservation.id, check_in=date(2025, 9, 3), check_out=date(2025, 9, 10))

    assert (moved.start_date, moved.end_date) == (date(2025, 9, 3), date(2025, 9, 10))
    assert moved.total_amount == Decimal("1050")
    assert moved.final_amount == Decimal("1050")


@pytest.mark.asyncio
async def test_update_dates_into_other_booking_conflicts(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    first = await create(new_reservation())
    second = await create(
        new_reservation(reservation_code="RES-0002", check_in=date(2025, 9, 10), check_out=date(2025, 9, 12))
    )
    with pytest.raises(ConflictError):
        await update(second.id, check_in=date(2025, 9, 4))

    unchanged = await _get(uow, second.id)
    assert unchanged.start_date == date(2025, 9, 10)
    assert first.id != second.id


@pytest.mark.asyncio
async def test_update_guest_count_checks_capacity(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    reservation = await create(new_reservation(guest_count=1))
    assert (await update(reservation.id, guest_count=2)).guest_count == 2
    with pytest.raises(ValidationError):
        await update(reservation.id, guest_count=3)


@pytest.mark.asyncio
async def test_update_code_checks_uniqueness(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    await create(new_reservation())
    other = await create(new_reservation(reservation_code="RES-0002", room_id=2))
    with pytest.raises(ConflictError):
        await update(other.id, reservation_code="RES-0001")
    renamed = await update(other.id, reservation_code="RES-0099")
    assert renamed.reservation_code == "RES-0099"


@pytest.mark.asyncio
async def test_update_free_fields_leaves_price_alone(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    reservation = await create(new_reservation())
    updated = await update(reservation.id, notes="late arrival", payment_method=PaymentMethod.CASH)
    assert updated.notes == "late arrival"
    assert updated.payment_method == PaymentMethod.CASH
    assert updated.final_amount == reservation.final_amount


@pytest.mark.asyncio
async def test_update_discount_and_meal_plan_reprice(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation]
) -> None:
    reservation = await create(new_reservation())
    with_meals = await update(reservation.id, meal_plan_id=1)
    assert with_meals.total_amount == Decimal("700")

    corporate = await update(reservation.id, discount_type=DiscountType.CORPORATE)
    assert corporate.discount_amount == Decimal("105")
    assert corporate.final_amount == Decimal("595")

    with pytest.raises(ValidationError):
        await update(reservation.id, meal_plan_id=2)


@pytest.mark.asyncio
async def test_update_check_out_only_for_stay_already_started(
    create: Callable[..., Any],
    new_reservation: Callable[..., NewReservation],
    uow: InMemoryUnitOfWork,
    policy: BookingPolicy,
) -> None:
    reservation = await create(new_reservation(check_in=date(2025, 8, 15), check_out=date(2025, 8, 17)))
    later = date(2025, 8, 16)
    extended, _ = await uow.run(
        lambda repos: uc.update_reservation(
            repos,
            reservation_id=reservation.id,
            changes=ReservationChanges(check_out=date(2025, 8, 19)),
            policy=policy,
            today=later,
        )
    )
    assert extended.nights == 4


@pytest.mark.asyncio
async def test_update_missing_or_terminal_reservation(
    create: Callable[..., Any], update: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    with pytest.raises(NotFoundError):
        await update(42, notes="x")

    reservation = await create(new_reservation())
    await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=reservation.id))
    with pytest.raises(InvalidTransitionError):
        await update(reservation.id, notes="x")


@pytest.mark.asyncio
async def test_cancel_frees_the_room_and_stamps_timestamp(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    reservation = await create(new_reservation())
    cancelled, previous = await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=reservation.id))

    assert previous == ReservationStatus.PENDING
    assert cancelled.status == ReservationStatus.CANCELLED
    assert cancelled.cancelled_at is not None

    replacement = await create(new_reservation(reservation_code="RES-0002"))
    assert replacement.room_id == reservation.room_id


@pytest.mark.asyncio
async def test_cancelling_twice_fails_and_changes_nothing(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    reservation = await create(new_reservation())
    await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=reservation.id))
    before = await _get(uow, reservation.id)

    for _ in range(2):
        with pytest.raises(InvalidTransitionError):
            await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=reservation.id))

    after = await _get(uow, reservation.id)
    assert after.cancelled_at == before.cancelled_at
    assert after.updated_at == before.updated_at


@pytest.mark.asyncio
async def test_change_status_follows_lifecycle(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    reservation = await create(new_reservation())

    async def move(status: ReservationStatus) -> Reservation:
        updated, _ = await uow.run(
            lambda repos: uc.change_status(repos, reservation_id=reservation.id, status=status, reason="desk")
        )
        return updated

    assert (await move(ReservationStatus.CONFIRMED)).status == ReservationStatus.CONFIRMED
    assert (await move(ReservationStatus.COMPLETED)).status == ReservationStatus.COMPLETED

    with pytest.raises(InvalidTransitionError):
        await move(ReservationStatus.CONFIRMED)
    with pytest.raises(InvalidTransitionError):
        await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=reservation.id))


@pytest.mark.asyncio
async def test_change_status_to_cancelled_stamps_timestamp(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    reservation = await create(new_reservation())
    updated, previous = await uow.run(
        lambda repos: uc.change_status(repos, reservation_id=reservation.id, status=ReservationStatus.CANCELLED)
    )
    assert previous == ReservationStatus.PENDING
    assert updated.cancelled_at is not None


@pytest.mark.asyncio
async def test_change_status_rejects_long_reason(uow: InMemoryUnitOfWork) -> None:
    with pytest.raises(ValidationError):
        await uow.run(
            lambda repos: uc.change_status(
                repos, reservation_id=1, status=ReservationStatus.CONFIRMED, reason="r" * 201
            )
        )


@pytest.mark.asyncio
async def test_get_by_code(
    create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork
) -> None:
    reservation = await create(new_reservation())
    found = await uow.run(lambda repos: uc.get_reservation_by_code(repos, code="RES-0001"))
    assert found.id == reservation.id
    with pytest.raises(NotFoundError):
        await uow.run(lambda repos: uc.get_reservation_by_code(repos, code="RES-9999"))


@pytest_asyncio.fixture
async def booked(create: Callable[..., Any], new_reservation: Callable[..., NewReservation], uow: InMemoryUnitOfWork) -> list[Reservation]:
    rows = [
        await create(new_reservation()),
        await create(new_reservation(reservation_code="RES-0002", room_id=2, customer_id=4, check_in=date(2025, 9, 10), check_out=date(2025, 9, 12))),
        await create(new_reservation(reservation_code="VIP-0003", room_id=5, check_in=date(2025, 8, 20), check_out=date(2025, 8, 27))),
        await create(new_reservation(reservation_code="RES-0004", room_id=3, customer_id=4, guest_count=4, check_in=date(2025, 10, 1), check_out=date(2025, 10, 3))),
    ]
    await uow.run(lambda repos: uc.cancel_reservation(repos, reservation_id=rows[3].id))
    return rows


async def _list(uow: InMemoryUnitOfWork, **kwargs: Any) -> Any:
    return await uow.run(lambda repos: uc.list_reservations(repos, filters=ReservationFilters(**kwargs)))


@pytest.mark.asyncio
async def test_list_hides_cancelled_and_sorts_by_check_in(booked: list[Reservation], uow: InMemoryUnitOfWork) -> None:
    page = await _list(uow)
    assert page.total == 3
    assert [r.reservation_code for r in page.items] == ["VIP-0003", "RES-0001", "RES-0002"]


@pytest.mark.asyncio
async def test_list_status_filter_can_show_cancelled(booked: list[Reservation], uow: InMemoryUnitOfWork) -> None:
    page = await _list(uow, status=ReservationStatus.CANCELLED)
    assert [r.reservation_code for r in page.items] == ["RES-0004"]


@pytest.mark.asyncio
async def test_list_filters_and_search(booked: list[Reservation], uow: InMemoryUnitOfWork) -> None:
    assert [r.reservation_code for r in (await _list(uow, customer_id=4)).items] == ["RES-0002"]
    assert [r.reservation_code for r in (await _list(uow, room_id=5)).items] == ["VIP-0003"]
    assert [r.reservation_code for r in (await _list(uow, search="vip")).items] == ["VIP-0003"]
    assert [r.reservation_code for r in (await _list(uow, search="SERRANO")).items] == ["RES-0002"]
    ranged = await _list(uow, check_in_from=date(2025, 9, 1), check_in_to=date(2025, 9, 10))
    assert [r.reservation_code for r in ranged.items] == ["RES-0001", "RES-0002"]


@pytest.mark.asyncio
async def test_list_sorting_and_paging(booked: list[Reservation], uow: InMemoryUnitOfWork) -> None:
    by_amount = await _list(uow, sort_by="total_amount", sort_order="desc")
    assert [r.reservation_code for r in by_amount.items] == ["VIP-0003", "RES-0001", "RES-0002"]

    second_page = await _list(uow, page=2, page_size=2)
    assert second_page.total == 3
    assert second_page.total_pages == 2
    assert [r.reservation_code for r in second_page.items] == ["RES-0002"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"page": 0},
        {"page_size": 0},
        {"page_size": 101},
        {"search": "s" * 101},
        {"check_in_from": date(2025, 9, 2), "check_in_to": date(2025, 9, 1)},
    ],
)
async def test_list_rejects_bad_paging_and_ranges(uow: InMemoryUnitOfWork, kwargs: dict[str, Any]) -> None:
    with pytest.raises(ValidationError):
        await _list(uow, **kwargs)


@pytest.mark.asyncio
async def test_list_customer_reservations_newest_first(booked: list[Reservation], uow: InMemoryUnitOfWork) -> None:
    rows = await uow.run(lambda repos: uc.list_customer_reservations(repos, customer_id=1))
    assert [r.reservation_code for r in rows] == ["RES-0001", "VIP-0003"]
