from datetime import date

from ..config import BookingPolicy
from ..domain.errors import NotFoundError
from ..domain.pricing import PriceBreakdown, calculate_price, discount_rules
from ..domain.repositories import CatalogReader
from ..domain.services import validate_stay_dates
from ..models import DiscountType, MealPlan, Room
from ..utils.dates import nights_between


def price_stay(
    room: Room,
    meal_plan: MealPlan | None,
    *,
    check_in: date,
    check_out: date,
    discount_type: DiscountType | None,
    policy: BookingPolicy,
) -> PriceBreakdown:
    return calculate_price(
        room_price=room.room_type.base_price,
        nights=nights_between(check_in, check_out),
        meal_plan_price=meal_plan.daily_price if meal_plan is not None else None,
        meal_plan_active=meal_plan.is_active if meal_plan is not None else False,
        discount_type=discount_type,
        rules=discount_rules(long_stay_min_nights=policy.long_stay_min_nights),
    )


async def get_room(catalog: CatalogReader, room_id: int) -> Room:
    room = await catalog.get_room(room_id)
    if room is None:
        raise NotFoundError(f"room {room_id} not found")
    return room


async def get_meal_plan(catalog: CatalogReader, meal_plan_id: int) -> MealPlan:
    meal_plan = await catalog.get_meal_plan(meal_plan_id)
    if meal_plan is None:
        raise NotFoundError(f"meal plan {meal_plan_id} not found")
    return meal_plan


async def quote_price(
    catalog: CatalogReader,
    *,
    room_id: int,
    meal_plan_id: int | None,
    check_in: date,
    check_out: date,
    discount_type: DiscountType | None,
    policy: BookingPolicy,
    today: date,
) -> PriceBreakdown:
    validate_stay_dates(check_in, check_out, policy=policy, today=today)
    room = await get_room(catalog, room_id)
    meal_plan = await get_meal_plan(catalog, meal_plan_id) if meal_plan_id is not None else None
    return price_stay(
        room,
        meal_plan,
        check_in=check_in,
        check_out=check_out,
        discount_type=discount_type,
        policy=policy,
    )
