"""Promo code validation and discount computation."""
from __future__ import annotations

import logging
from decimal import Decimal

from booking_engine.core.errors import UnsupportedPromoTypeError
from booking_engine.core.money import round_minor

from .models import FIXED_AMOUNT, PERCENTAGE, PromoCode, PromoContext, PromoRejection, PromoResult

logger = logging.getLogger(__name__)


class PromoEvaluator:
    """Validates a promo against a booking and prices its discount.

    Validation short-circuits on the first failed condition, so the reported
    reason always names the earliest check that did not hold:

    1. active
    2. evaluation date inside the validity window
    3. registry-wide usage budget left
    4. subtotal at least ``min_booking_value``
    5. nights inside ``[min_nights, max_nights]``
    6. room type listed (an empty list means any room)
    7. first-time-guest restriction
    8. per-guest usage budget left
    """

    def evaluate(self, promo: PromoCode, context: PromoContext) -> PromoResult:
        rejection = self.check(promo, context)
        if rejection is not None:
            logger.warning("Promo %s rejected: %s", promo.code, rejection.reason.value)
            return rejection
        discount = self.discount(promo, context.subtotal)
        logger.info("Promo %s applicable: discount %s on subtotal %s", promo.code, discount, context.subtotal)
        return PromoResult(promo=promo, applicable=True, discount_amount=discount)

    def check(self, promo: PromoCode, context: PromoContext) -> PromoResult | None:
        conditions = promo.conditions
        if not promo.is_active:
            return PromoResult.rejected(promo, PromoRejection.INACTIVE)
        if not promo.is_valid_on(context.evaluated_on):
            return PromoResult.rejected(
                promo,
                PromoRejection.OUTSIDE_VALIDITY,
                evaluatedOn=context.evaluated_on.isoformat(),
            )
        if promo.usage.exhausted:
            return PromoResult.rejected(
                promo,
                PromoRejection.USAGE_LIMIT_REACHED,
                totalUsageLimit=promo.usage.total_usage_limit,
            )
        if context.subtotal < conditions.min_booking_value:
            return PromoResult.rejected(
                promo,
                PromoRejection.BELOW_MIN_BOOKING_VALUE,
                minBookingValue=conditions.min_booking_value,
                subtotal=context.subtotal,
            )
        if context.nights < conditions.min_nights or (
            conditions.max_nights is not None and context.nights > conditions.max_nights
        ):
            return PromoResult.rejected(
                promo,
                PromoRejection.NIGHTS_OUT_OF_RANGE,
                minNights=conditions.min_nights,
                maxNights=conditions.max_nights,
                nights=context.nights,
            )
        if conditions.applicable_room_types and context.room_type not in conditions.applicable_room_types:
            return PromoResult.rejected(
                promo,
                PromoRejection.ROOM_TYPE_NOT_APPLICABLE,
                applicableRoomTypes=list(conditions.applicable_room_types),
            )
        if conditions.first_time_guests_only and not context.is_first_time_guest:
            return PromoResult.rejected(promo, PromoRejection.FIRST_TIME_GUESTS_ONLY)
        if conditions.max_usage_per_guest and context.guest_redemptions >= conditions.max_usage_per_guest:
            return PromoResult.rejected(
                promo,
                PromoRejection.GUEST_USAGE_LIMIT_REACHED,
                maxUsagePerGuest=conditions.max_usage_per_guest,
            )
        return None

    def discount(self, promo: PromoCode, subtotal: int) -> int:
        """Discount in minor units; never more than the cap or the subtotal."""
        if promo.type == PERCENTAGE:
            amount = round_minor(Decimal(subtotal) * promo.value / Decimal(100))
            if promo.cap is not None:
                amount = min(amount, promo.cap)
        elif promo.type == FIXED_AMOUNT:
            amount = round_minor(promo.value)
        else:
            raise UnsupportedPromoTypeError(promo.code, promo.type)
        return max(0, min(amount, subtotal))
