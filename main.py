"""
Command-line entry point for the booking client.

Usage:
    python main.py dates --min 1 --max 14
    python main.py quote 10000 --discount 2000
    python main.py callback "masdeporte://payment?collection_status=approved&collection_id=123"
    python main.py companies --query padel
    python main.py availability 42 2026-03-20
"""

import argparse
import asyncio
import logging
import sys
from datetime import date

from masdeporte.config import settings
from masdeporte.booking.eligibility import enumerate_selectable_dates, group_dates_by_month
from masdeporte.booking.pricing import compute_pricing_breakdown
from masdeporte.errors import MasDeporteError
from masdeporte.http.client import SessionAwareClient
from masdeporte.http.session_store import FileStorage, SessionStore
from masdeporte.payments.deep_link import parse_payment_callback_url
from masdeporte.services.appointments import get_availability
from masdeporte.services.companies import get_all_companies, search_companies

logger = logging.getLogger(__name__)


def _run_dates(args: argparse.Namespace) -> None:
    dates = enumerate_selectable_dates(date.today(), args.min, args.max)
    for (year, month), days in group_dates_by_month(dates).items():
        sys.stdout.write(f"{year}-{month:02d}: {' '.join(str(d.day) for d in days)}\n")


def _run_quote(args: argparse.Namespace) -> None:
    pricing = compute_pricing_breakdown(args.price, args.discount)
    sys.stdout.write(
        f"Original:   {pricing.original_amount} {settings.booking.currency}\n"
        f"Discount:   {pricing.discount_amount}\n"
        f"Total:      {pricing.discounted_amount}\n"
        f"Deposit:    {pricing.deposit_amount}\n"
        f"Remaining:  {pricing.remaining_amount}\n"
    )


def _run_callback(args: argparse.Namespace) -> None:
    callback = parse_payment_callback_url(args.url)
    sys.stdout.write(callback.model_dump_json(indent=2) + "\n")


async def _run_companies(args: argparse.Namespace) -> None:
    async with SessionAwareClient(SessionStore(FileStorage(settings.session.storage_path))) as client:
        if args.query or args.location:
            result = await search_companies(client, args.query, args.location)
        else:
            result = await get_all_companies(client)
    if not result["success"]:
        logger.error(result["message"])
        sys.exit(1)
    for company in result["data"]:
        sys.stdout.write(f"{company.get('id')}\t{company.get('name')}\n")


async def _run_availability(args: argparse.Namespace) -> None:
    async with SessionAwareClient(SessionStore(FileStorage(settings.session.storage_path))) as client:
        result = await get_availability(client, args.service_id, args.date)
    if not result["success"]:
        logger.error(result["message"])
        sys.exit(1)
    sys.stdout.write(" ".join(result["data"].available_slots) + "\n")


def main() -> None:
    parser = argparse.ArgumentParser(description="MasDeporte booking client.")
    sub = parser.add_subparsers(dest="command", required=True)

    dates = sub.add_parser("dates", help="List selectable booking dates.")
    dates.add_argument("--min", type=int, default=settings.booking.default_min_advance_days)
    dates.add_argument("--max", type=int, default=settings.booking.default_max_advance_days)

    quote = sub.add_parser("quote", help="Compute deposit and remaining amounts.")
    quote.add_argument("price", type=str)
    quote.add_argument("--discount", type=str, default="0")

    callback = sub.add_parser("callback", help="Resolve a payment callback deep link.")
    callback.add_argument("url", type=str)

    companies = sub.add_parser("companies", help="List or search clubs.")
    companies.add_argument("--query", type=str, default=None)
    companies.add_argument("--location", type=str, default=None)

    availability = sub.add_parser("availability", help="Show free slots for a service.")
    availability.add_argument("service_id", type=int)
    availability.add_argument("date", type=str, help="YYYY-MM-DD")

    args = parser.parse_args()

    try:
        if args.command == "dates":
            _run_dates(args)
        elif args.command == "quote":
            _run_quote(args)
        elif args.command == "callback":
            _run_callback(args)
        elif args.command == "companies":
            asyncio.run(_run_companies(args))
        elif args.command == "availability":
            asyncio.run(_run_availability(args))
    except MasDeporteError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
