"""Async orchestration of a booking session against the engine's collaborators."""
from __future__ import annotations

import asyncio
import logging
import secrets
import string
from contextlib import suppress
from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, Sequence

from booking_engine.config.settings import Settings
from booking_engine.core.errors import (
    ConfirmationFailedError,
    ExternalFetchError,
    InvalidTransitionError,
)
from booking_engine.inventory.aggregator import InventoryAggregator, summarize
from booking_engine.inventory.models import Occupancy, RoomProduct, StayWindow
from booking_engine.pricing.calculator import ChargeCalculator
from booking_engine.pricing.models import PricingQuote
from booking_engine.promos.evaluator import PromoEvaluator
from booking_engine.promos.models import PromoCode, PromoContext, PromoResult, not_found
from booking_engine.rates.models import RatePlan
from booking_engine.rates.resolver import RatePlanResolver, apply_plan_rate
from booking_engine.services.providers import (
    CurrencyConverter,
    InventoryProvider,
    PromoRegistry,
    RatePlanProvider,
)

from .session import BookingSession, GuestDetails, insufficient_availability
from .state import PRICED_STATES, BookingState

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[BookingSession], Awaitable[Optional[str]]]

_BASE36 = string.digits + string.ascii_uppercase


def generate_reference(prefix: str, now: Optional[datetime] = None) -> str:
    """``<prefix>-<epoch millis>-<6 base36 chars>``."""
    moment = now or datetime.now()
    millis = int(moment.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}-{millis}-{suffix}"


async def _accept(session: BookingSession) -> Optional[str]:
    return None


@dataclass(frozen=True, slots=True)
class Pricing:
    quote: PricingQuote
    rate_plan: Optional[RatePlan]
    promo_result: Optional[PromoResult]


class BookingController:
    """Owns the current :class:`BookingSession` and drives it through the engine.

    Every search bumps the session's sequence number. Work started for an
    older number is cancelled where possible and its results are dropped
    when they arrive late.
    """

    def __init__(
        self,
        products: Sequence[RoomProduct],
        inventory: InventoryProvider,
        rate_plans: RatePlanProvider,
        promos: PromoRegistry,
        *,
        settings: Optional[Settings] = None,
        converter: Optional[CurrencyConverter] = None,
        confirm: Optional[ConfirmCallback] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings or Settings()
        self.products = tuple(products)
        self.rate_plans = rate_plans
        self.promos = promos
        self.aggregator = InventoryAggregator(inventory, max_concurrency=self.settings.max_concurrent_lookups)
        self.resolver = RatePlanResolver(converter)
        self.evaluator = PromoEvaluator()
        self.calculator = ChargeCalculator(self.settings.tax_rate, self.settings.currency)
        self._confirm = confirm or _accept
        self._clock = clock
        self.session = BookingSession()
        self._search_task: Optional[asyncio.Task] = None
        self._pricing_generation = 0

    @property
    def currency(self) -> str:
        return self.settings.currency

    # -- search -------------------------------------------------------------

    async def search(
        self,
        check_in: date,
        check_out: date,
        occupancy: Optional[Occupancy] = None,
    ) -> BookingSession:
        """Run a fresh search, superseding any search still in flight.

        Raises :class:`InsufficientAvailabilityError` (session stays in
        ``SEARCHING`` with its results) when nothing can hold the rooms.
        """
        window = StayWindow(check_in, check_out)
        self._cancel_search()
        self._pricing_generation += 1
        session = self.session.restart(window, occupancy)
        self.session = session
        seq = session.search_seq
        logger.info(
            "Search %s: %s → %s, %s adult(s), %s child(ren), %s room(s)",
            seq,
            check_in,
            check_out,
            session.occupancy.adults,
            session.occupancy.children,
            session.occupancy.rooms,
        )

        task = asyncio.create_task(self.aggregator.aggregate_many(self.products, check_in, check_out))
        self._search_task = task
        try:
            results = await task
        except asyncio.CancelledError:
            if self.session.search_seq != seq:
                logger.debug("Search %s cancelled by search %s", seq, self.session.search_seq)
                return self.session
            raise
        finally:
            if self._search_task is task:
                self._search_task = None

        if self.session.search_seq != seq:
            logger.debug("Dropping results of superseded search %s", seq)
            return self.session
        self.session = self.session.with_results(results, seq)
        self.session = self.session.list_rooms()
        return self.session

    async def change_dates(self, check_in: date, check_out: date) -> BookingSession:
        return await self.search(check_in, check_out, self.session.occupancy)

    async def change_occupancy(self, occupancy: Occupancy) -> BookingSession:
        """Re-price for new guests, or search again when the room count changes."""
        session = self.session
        if session.window is None:
            raise InvalidTransitionError("Search for stay dates before changing guests")
        if session.state not in PRICED_STATES or occupancy.rooms != session.occupancy.rooms:
            return await self.search(session.window.check_in, session.window.check_out, occupancy)

        pricing, generation = await self._price_current(session.promo, occupancy)
        if generation != self._pricing_generation:
            return self.session
        promo = session.promo
        rejection = None
        if promo is not None and not (pricing.promo_result and pricing.promo_result.applicable):
            rejection = pricing.promo_result
            logger.warning("Promo %s dropped after occupancy change", promo.code)
            promo = None
        self.session = self.session.priced(
            pricing.quote,
            rate_plan=pricing.rate_plan,
            promo=promo,
            promo_rejection=rejection,
            occupancy=occupancy,
        )
        return self.session

    # -- selection and promos -----------------------------------------------

    async def select_room(self, product_id: str) -> BookingSession:
        """Select a listed room and price it.

        A pricing fetch failure propagates and leaves the session in
        ``ROOM_SELECTED`` without a quote.
        """
        self.session = self.session.select_room(product_id)
        promo = self.session.promo
        pricing, generation = await self._price_current(promo, self.session.occupancy)
        if generation != self._pricing_generation:
            return self.session
        rejection = None
        if promo is not None and not (pricing.promo_result and pricing.promo_result.applicable):
            rejection = pricing.promo_result
            promo = None
        self.session = self.session.priced(
            pricing.quote, rate_plan=pricing.rate_plan, promo=promo, promo_rejection=rejection
        )
        return self.session

    async def apply_promo(
        self,
        code: str,
        *,
        is_first_time_guest: Optional[bool] = None,
        guest_redemptions: Optional[int] = None,
    ) -> BookingSession:
        """Apply ``code`` to the current selection, replacing any promo already applied.

        A rejected code raises :class:`InvalidPromoError` naming the failed
        condition and leaves the session as it was.
        """
        session = self.session
        if session.state not in PRICED_STATES:
            raise InvalidTransitionError("Select a room before applying a promo code")
        if is_first_time_guest is not None or guest_redemptions is not None:
            session = session.with_guest_history(
                is_first_time_guest=(
                    session.is_first_time_guest if is_first_time_guest is None else is_first_time_guest
                ),
                guest_redemptions=(
                    session.guest_redemptions if guest_redemptions is None else guest_redemptions
                ),
            )

        generation = self._pricing_generation
        promo = await self._lookup(code)
        if generation != self._pricing_generation:
            logger.debug("Dropping promo %s, session %s moved on during lookup", promo.code, session.search_seq)
            return self.session
        pricing, generation = await self._price_current(promo, session.occupancy, session=session)
        if generation != self._pricing_generation:
            return self.session
        if pricing.promo_result is not None:
            pricing.promo_result.raise_for_rejection()
        logger.info("Promo %s applied: -%s", promo.code, pricing.quote.discount_amount)
        self.session = session.priced(pricing.quote, rate_plan=pricing.rate_plan, promo=promo)
        return self.session

    async def remove_promo(self) -> BookingSession:
        if self.session.state not in PRICED_STATES:
            raise InvalidTransitionError("No priced selection to remove a promo from")
        pricing, generation = await self._price_current(None, self.session.occupancy)
        if generation != self._pricing_generation:
            return self.session
        self.session = self.session.priced(pricing.quote, rate_plan=pricing.rate_plan)
        return self.session

    # -- guest and confirmation ---------------------------------------------

    def proceed_to_guest_info(self) -> BookingSession:
        self.session = self.session.proceed_to_guest_info()
        return self.session

    def submit_guest(self, guest: GuestDetails) -> BookingSession:
        """Store guest details and move to ``CONFIRMING`` when they are complete."""
        self.session = self.session.with_guest(guest)
        self.session = self.session.proceed_to_confirmation()
        return self.session

    async def confirm(self) -> BookingSession:
        session = self.session
        if session.state is not BookingState.CONFIRMING:
            raise InvalidTransitionError(f"Cannot confirm from {session.state.value}")
        try:
            reference = await self._confirm(session)
        except Exception as exc:
            logger.error("Confirmation failed for session %s: %s", session.search_seq, exc)
            raise ConfirmationFailedError(f"Booking confirmation failed: {exc}") from exc
        reference = reference or generate_reference(self.settings.booking_reference_prefix, self._clock())
        self.session = session.confirm(reference)
        return self.session

    def back_to(self, state: BookingState) -> BookingSession:
        """Navigate back; returning to ``SEARCHING`` mid-search restarts it and drops the in-flight lookups."""
        current = self.session
        if state is BookingState.SEARCHING and current.state is BookingState.SEARCHING and current.window:
            session = current.restart(current.window, current.occupancy)
        else:
            session = current.back_to(state)
        self._pricing_generation += 1
        if state is BookingState.SEARCHING:
            self._cancel_search()
        self.session = session
        return self.session

    async def aclose(self) -> None:
        task = self._search_task
        self._cancel_search()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    # -- internals -----------------------------------------------------------

    def _cancel_search(self) -> None:
        task = self._search_task
        if task is not None and not task.done():
            task.cancel()
        self._search_task = None

    async def _lookup(self, code: str) -> PromoCode:
        try:
            promo = await self.promos.lookup(code)
        except ExternalFetchError:
            raise
        except Exception as exc:
            raise ExternalFetchError("promo_registry", f"lookup of {code} failed: {exc}") from exc
        if promo is None:
            logger.warning("Promo %s not found", code)
            raise not_found(code)
        return promo

    async def _price_current(
        self,
        promo: Optional[PromoCode],
        occupancy: Occupancy,
        *,
        session: Optional[BookingSession] = None,
    ) -> tuple[Pricing, int]:
        session = session or self.session
        self._pricing_generation += 1
        generation = self._pricing_generation
        pricing = await self.price(session, promo, occupancy)
        if generation != self._pricing_generation:
            logger.debug("Dropping superseded quote for session %s", session.search_seq)
        return pricing, generation

    async def price(
        self,
        session: BookingSession,
        promo: Optional[PromoCode],
        occupancy: Occupancy,
    ) -> Pricing:
        """Full recomputation for the session's selected room: inventory, rate plan, promo, charges."""
        product = session.selected
        window = session.window
        if product is None or window is None:
            raise InvalidTransitionError("No room selected")

        records = await self.aggregator.fetch(product, window)
        availability = summarize(product, window, records)
        if not availability.is_bookable(occupancy.rooms):
            raise insufficient_availability([availability], occupancy.rooms)

        try:
            plans = await self.rate_plans.get_rate_plans(product.id, window.check_in, self.currency)
        except ExternalFetchError:
            raise
        except Exception as exc:
            raise ExternalFetchError("rate_plans", f"lookup for {product.id} failed: {exc}") from exc

        resolved = self.resolver.resolve_rate(
            product, plans, window.check_in, self.currency, nights=window.nights
        )
        nightly_rates = availability.nightly_rates
        if resolved is not None:
            nightly_rates = apply_plan_rate(nightly_rates, resolved.nightly_rate)

        promo_result = None
        if promo is not None:
            subtotal = self.calculator.room_charge(nightly_rates, occupancy)
            promo_result = self.evaluator.evaluate(
                promo,
                PromoContext(
                    subtotal=subtotal,
                    nights=window.nights,
                    room_type=product.code,
                    evaluated_on=self._clock().date(),
                    is_first_time_guest=session.is_first_time_guest,
                    guest_redemptions=session.guest_redemptions,
                ),
            )

        quote = self.calculator.compute(
            nightly_rates,
            occupancy,
            product.max_occupancy,
            promo_result,
            extra_adult_rate=availability.avg_extra_adult_rate,
            extra_child_rate=availability.avg_extra_child_rate,
            currency=self.currency,
        )
        logger.info(
            "Priced %s for %s night(s): total %s %s",
            product.code,
            window.nights,
            quote.total_amount,
            self.currency,
        )
        return Pricing(quote=quote, rate_plan=resolved.plan if resolved else None, promo_result=promo_result)
