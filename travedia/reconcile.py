#!/usr/bin/env python3
"""
Travedia Payment Reconciliation
Re-reads Midtrans for bookings still waiting on payment, for when webhooks
were missed or the dashboard URL was misconfigured.
"""

import asyncio
import logging
from typing import Any, Dict

import click
from motor.motor_asyncio import AsyncIOMotorClient

from .config import Settings
from .integrations.midtrans import MidtransClient
from .services.payments import BookingNotFound, PaymentService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def reconcile_all(service: PaymentService, limit: int = 200) -> Dict[str, Any]:
    """Reconcile every pending booking that has a Midtrans order."""

    logger.info("🔄 Starting payment reconciliation...")

    bookings = await service.bookings.list_awaiting_payment(limit)
    summary = {"checked": len(bookings), "updated": 0, "errors": 0}
    if not bookings:
        logger.info("📋 No bookings awaiting payment")
        return summary

    logger.info(f"📋 Found {len(bookings)} bookings awaiting payment")

    for booking in bookings:
        try:
            booking, updated = await service.reconcile(booking)
        except Exception as e:
            logger.error(f"❌ Failed to reconcile {booking.get('customId')}: {e}")
            summary["errors"] += 1
            continue
        if updated:
            logger.info(f"✅ {booking.get('customId')}: now {booking.get('status')}")
            summary["updated"] += 1

    logger.info(
        f"🏁 Reconciliation complete: {summary['updated']} updated, "
        f"{summary['checked'] - summary['updated'] - summary['errors']} unchanged, {summary['errors']} errors"
    )
    return summary


def _run(job):
    settings = Settings()
    client = AsyncIOMotorClient(settings.mongo_url)
    service = PaymentService(client[settings.db_name], MidtransClient.from_settings(settings), settings)

    async def runner():
        try:
            return await job(service)
        finally:
            client.close()

    return asyncio.run(runner())


@click.group()
def cli():
    """Travedia payment reconciliation"""
    pass


@cli.command("all")
@click.option('--limit', default=200, show_default=True, help='Maximum bookings to check')
def reconcile_pending(limit):
    """Reconcile all bookings awaiting payment"""
    summary = _run(lambda service: reconcile_all(service, limit))
    click.echo(f"Checked {summary['checked']}, updated {summary['updated']}, errors {summary['errors']}")


@cli.command("booking")
@click.argument('booking_id')
def reconcile_booking(booking_id):
    """Reconcile one booking by ObjectId or BOOK-xxxxxxxx code"""
    try:
        result = _run(lambda service: service.check_payment(booking_id))
    except BookingNotFound as e:
        raise click.ClickException(str(e))
    click.echo(f"{result['customId']}: {result['oldStatus']} → {result['newStatus']}")


if __name__ == '__main__':
    cli()
