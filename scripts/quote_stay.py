"""Entry point for manual quote runs."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from booking_engine.config.run_config import QuoteProfile
from booking_engine.config.settings import Settings
from booking_engine.core.errors import BookingEngineError
from booking_engine.core.logging import configure_logging
from booking_engine.core.money import format_amount
from booking_engine.inventory.models import RoomProduct
from booking_engine.services.api_client import BookingApiClient
from booking_engine.services.fixtures import FixtureCatalog
from booking_engine.session import BookingController, BookingSession
from booking_engine.storage.json_writer import JsonStore

logger = logging.getLogger(__name__)


def _pick_room(session: BookingSession, room_code: Optional[str]) -> RoomProduct:
    bookable = session.bookable_results()
    if room_code:
        wanted = room_code.strip().upper()
        for result in session.results:
            if result.product.code.upper() == wanted or result.product.id == room_code:
                return result.product
        raise RuntimeError(f"Room '{room_code}' was not returned by the search")
    cheapest = min(bookable, key=lambda result: (result.average_rate, result.product.id))
    return cheapest.product


def _print_listing(session: BookingSession, settings: Settings) -> None:
    for result in session.results:
        reason = result.unavailable_reason
        status = f"{result.available_units} left" if reason is None else reason.value
        rate = format_amount(result.average_rate, settings.currency, settings.currency_exponent)
        print(f"  {result.product.code:<6} {result.product.name:<24} {rate:>14}/night  [{status}]")


async def run(settings: Settings, profile: QuoteProfile, *, output_dir: Optional[Path] = None) -> BookingSession:
    window = profile.stay_window()
    client: Optional[BookingApiClient] = None
    if settings.fixtures_path:
        catalog = FixtureCatalog.load(settings.fixtures_path, exponent=settings.currency_exponent)
        products = catalog.products
        inventory = catalog.inventory_provider()
        rate_plans = catalog.rate_plan_provider()
        promos = catalog.promo_registry()
        converter = catalog.converter()
        logger.info("Using fixture catalog %s", catalog.source)
    else:
        client = BookingApiClient.from_settings(settings)
        inventory = rate_plans = promos = client
        converter = None
        try:
            products = await client.get_room_products()
        except BookingEngineError:
            await client.aclose()
            raise
        logger.info("Using HTTP API at %s (%s room types)", settings.api_base_url, len(products))

    controller = BookingController(
        products,
        inventory,
        rate_plans,
        promos,
        settings=settings,
        converter=converter,
    )
    try:
        session = await controller.search(window.check_in, window.check_out, profile.occupancy())
        print(f"Availability {window.check_in} → {window.check_out} ({window.nights} nights):")
        _print_listing(session, settings)

        product = _pick_room(session, profile.search.room_code)
        session = await controller.select_room(product.id)
        if profile.search.promo_code:
            try:
                session = await controller.apply_promo(
                    profile.search.promo_code,
                    is_first_time_guest=profile.search.first_time_guest,
                )
            except BookingEngineError as exc:
                logger.warning("Promo not applied: %s", exc)
                print(json.dumps(exc.to_dict(), indent=2))

        guest = profile.guest_details()
        if guest is not None:
            controller.proceed_to_guest_info()
            controller.submit_guest(guest)
            session = await controller.confirm()
        else:
            session = controller.session
        print(json.dumps(session.to_dict(), indent=2, default=str))
        if output_dir is not None:
            filename = f"{session.booking_reference or f'quote-{session.search_seq}'}.json"
            path = JsonStore(output_dir).write(
                [session.to_dict()], filename=filename, subdir=window.check_in.isoformat()
            )
            logger.info("Saved session snapshot to %s", path)
        return session
    finally:
        await controller.aclose()
        if client is not None:
            await client.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search availability and price a stay")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=(
            "Path to a TOML quote profile "
            "(defaults to config/quote_profile.toml when present)"
        ),
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        help="Ignore config/quote_profile.toml even if it exists",
    )
    parser.add_argument(
        "--override",
        action="append",
        metavar="KEY=VALUE",
        help="Override a Settings attribute (repeatable). Values accept JSON literals.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write the final session snapshot as JSON under this directory",
    )
    return parser


def _decode_override(value: str) -> object:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        pass
    lower = value.strip().lower()
    if lower in {"true", "false"}:
        return lower == "true"
    return value


def _apply_overrides(settings: Settings, overrides: dict[str, object]) -> None:
    for key, raw in overrides.items():
        if key not in Settings.model_fields:
            logger.warning("Ignoring unknown override '%s'", key)
            continue
        setattr(settings, key, raw)
        logger.info("Override: set %s=%r", key, raw)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    settings = Settings()
    config_path: Optional[Path] = None
    profile = QuoteProfile()
    overrides: dict[str, object] = {}

    if not args.no_config:
        if args.config:
            config_path = args.config
            if not config_path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            default_path = Path("config/quote_profile.toml")
            if default_path.exists():
                config_path = default_path

    if config_path:
        profile = QuoteProfile.load(config_path)
        profile.apply_to(settings, base_dir=config_path.parent)

    if args.override:
        for entry in args.override:
            if "=" not in entry:
                parser.error(f"Override must be in KEY=VALUE form (got '{entry}')")
            key, value = entry.split("=", 1)
            overrides[key.strip()] = _decode_override(value.strip())

    if overrides:
        _apply_overrides(settings, overrides)

    # Re-validate so overrides go through the same checks as env values.
    settings = Settings.model_validate(settings.model_dump())

    configure_logging(settings.log_level, settings.log_dir)
    settings.ensure_directories()

    if config_path:
        logger.info("Loaded quote profile '%s' from %s", profile.profile, config_path)
        if profile.notes:
            logger.info("Profile notes: %s", profile.notes)
    else:
        logger.info("Running with environment-based settings (no quote profile applied)")

    try:
        asyncio.run(run(settings, profile, output_dir=args.output_dir))
    except BookingEngineError as exc:
        print(json.dumps(exc.to_dict(), indent=2))
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
