"""Best-available-rate selection across candidate rate plans."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence, Tuple

from booking_engine.core.errors import ExternalFetchError
from booking_engine.inventory.models import NightlyRate, RoomProduct
from booking_engine.services.providers import CurrencyConverter

from .models import RatePlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedRate:
    plan: RatePlan
    nightly_rate: int
    currency: str


class RatePlanResolver:
    """Pick the plan with the lowest nightly rate for a product, ties broken by plan id."""

    def __init__(self, converter: Optional[CurrencyConverter] = None) -> None:
        self.converter = converter

    def nightly_rate(self, plan: RatePlan, product: RoomProduct, currency: str) -> Optional[int]:
        """The plan's rate for ``product`` expressed in ``currency``, if it can be priced."""
        base_rate = plan.base_rate_for(product.rate_key)
        if base_rate is None:
            return None
        if base_rate.converted_rate is not None and plan.converted_currency == currency:
            return base_rate.converted_rate
        if plan.base_currency == currency:
            return base_rate.rate
        if self.converter is None:
            logger.debug("No converter for plan %s (%s → %s)", plan.id, plan.base_currency, currency)
            return None
        try:
            return self.converter.convert(base_rate.rate, plan.base_currency, currency)
        except ExternalFetchError as exc:
            logger.debug("Skipping plan %s: %s", plan.id, exc)
            return None

    def qualifying(
        self,
        product: RoomProduct,
        candidate_plans: Iterable[RatePlan],
        on_date: date,
        currency: str,
        *,
        nights: Optional[int] = None,
    ) -> list[ResolvedRate]:
        qualified: list[ResolvedRate] = []
        for plan in candidate_plans:
            if not plan.is_active or not plan.is_valid_on(on_date):
                continue
            if nights is not None and not plan.stay_restrictions.allows(nights):
                continue
            rate = self.nightly_rate(plan, product, currency)
            if rate is None:
                continue
            qualified.append(ResolvedRate(plan=plan, nightly_rate=rate, currency=currency))
        qualified.sort(key=lambda resolved: (resolved.nightly_rate, resolved.plan.id))
        return qualified

    def resolve_rate(
        self,
        product: RoomProduct,
        candidate_plans: Iterable[RatePlan],
        on_date: date,
        currency: str,
        *,
        nights: Optional[int] = None,
    ) -> Optional[ResolvedRate]:
        qualified = self.qualifying(product, candidate_plans, on_date, currency, nights=nights)
        if not qualified:
            return None
        best = qualified[0]
        logger.debug(
            "Resolved plan %s for %s on %s at %s %s",
            best.plan.id,
            product.code,
            on_date,
            best.nightly_rate,
            currency,
        )
        return best

    def resolve(
        self,
        product: RoomProduct,
        candidate_plans: Iterable[RatePlan],
        on_date: date,
        currency: str,
        *,
        nights: Optional[int] = None,
    ) -> Optional[RatePlan]:
        """Best plan for ``product`` on ``on_date`` or ``None`` when no plan qualifies."""
        resolved = self.resolve_rate(product, candidate_plans, on_date, currency, nights=nights)
        return resolved.plan if resolved else None


def apply_plan_rate(nightly_rates: Sequence[NightlyRate], rate: int) -> Tuple[NightlyRate, ...]:
    """Replace every night's rate with the plan rate."""
    return tuple(NightlyRate(date=night.date, rate=rate) for night in nightly_rates)
