from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from ..models import DiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class DiscountRule:
    rate: Decimal
    min_nights: int = 0

    def amount(self, subtotal: Decimal, nights: int) -> Decimal:
        if nights < self.min_nights:
            return ZERO
        return subtotal * self.rate


DEFAULT_LONG_STAY_MIN_NIGHTS = 7


def discount_rules(*, long_stay_min_nights: int = DEFAULT_LONG_STAY_MIN_NIGHTS) -> dict[DiscountType, DiscountRule]:
    """Build the closed discount table; every DiscountType must have a rule."""
    rules = {
        DiscountType.NONE: DiscountRule(rate=ZERO),
        DiscountType.LONG_STAY: DiscountRule(rate=Decimal("0.10"), min_nights=long_stay_min_nights),
        DiscountType.FREQUENT_GUEST: DiscountRule(rate=Decimal("0.05")),
        DiscountType.CORPORATE: DiscountRule(rate=Decimal("0.15")),
        DiscountType.PROMOTIONAL: DiscountRule(rate=Decimal("0.20")),
    }
    missing = set(DiscountType) - set(rules)
    if missing:
        raise RuntimeError(f"discount rules missing for: {sorted(missing)}")
    return rules


DISCOUNT_RULES = discount_rules()


@dataclass(frozen=True)
class PriceBreakdown:
    nights: int
    room_price: Decimal
    meal_plan_price: Decimal
    room_total: Decimal
    meal_plan_total: Decimal
    subtotal: Decimal
    discount_type: DiscountType
    discount_amount: Decimal
    total_amount: Decimal
    price_per_night: Decimal
    taxes: Decimal = ZERO
    fees: Decimal = ZERO


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_price(
    *,
    room_price: Decimal,
    nights: int,
    meal_plan_price: Decimal | None = None,
    meal_plan_active: bool = True,
    discount_type: DiscountType | None = None,
    rules: Mapping[DiscountType, DiscountRule] = DISCOUNT_RULES,
) -> PriceBreakdown:
    """
    Pure price computation for a stay.

    The meal plan only contributes when it is active. The discount is a single
    selector applied to the room + meal-plan subtotal; a long-stay discount on a
    short stay silently yields zero. Raises ValueError for a non-positive night
    count since the per-night price would be undefined.
    """
    if nights < 1:
        raise ValueError("nights must be >= 1")

    kind = discount_type or DiscountType.NONE
    room_total = _money(Decimal(room_price) * nights)
    meal_price = Decimal(meal_plan_price) if meal_plan_price is not None and meal_plan_active else ZERO
    meal_plan_total = _money(meal_price * nights)
    subtotal = room_total + meal_plan_total

    rule = rules[kind]
    discount_amount = _money(rule.amount(subtotal, nights))

    return PriceBreakdown(
        nights=nights,
        room_price=_money(Decimal(room_price)),
        meal_plan_price=_money(meal_price),
        room_total=room_total,
        meal_plan_total=meal_plan_total,
        subtotal=subtotal,
        discount_type=kind,
        discount_amount=discount_amount,
        total_amount=subtotal - discount_amount,
        price_per_night=_money(subtotal / nights),
    )
