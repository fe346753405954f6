"""
Development-only helpers for exercising the payment flow without Midtrans.
Mounted by the app factory only when ENVIRONMENT=development.
"""

from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone
import logging

from ...config import Settings
from ...integrations.midtrans import build_order_id, compute_signature
from ...models import BookingStatus, parse_from_mongo
from ...services.payments import MIDTRANS_TZ, BookingNotFound, PaymentService, status_payload
from ..deps import get_app_settings, get_payment_service
from .payments import process_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dev", tags=["Development"])

TRANSACTION_STATUS_CODES = {
    "settlement": "200",
    "capture": "200",
    "pending": "201",
    "deny": "202",
    "cancel": "202",
    "expire": "407",
}


async def _booking_or_404(service: PaymentService, booking_id: str):
    try:
        return await service.get_booking(booking_id)
    except BookingNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/payment/simulate-success/{booking_id}")
async def simulate_success(
    booking_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    """Mark a booking as paid without going through the gateway"""
    booking = await _booking_or_404(service, booking_id)
    booking = await service.bookings.update(booking, {
        "status": BookingStatus.CONFIRMED.value,
        "paymentStatus": "settlement",
        "transactionStatus": "settlement",
        "paymentMethod": "simulation",
        "paymentDate": datetime.now(timezone.utc),
    })
    logger.info(f"DEV: simulated payment success for {booking.get('customId')}")
    return {"success": True, "data": status_payload(booking)}


@router.post("/payment/simulate-webhook/{booking_id}")
async def simulate_webhook(
    booking_id: str,
    transaction_status: str = "settlement",
    fraud_status: str = "accept",
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_app_settings),
):
    """Feed a signed Midtrans-style notification through the webhook handler"""
    booking = await _booking_or_404(service, booking_id)

    order_id = booking.get("paymentOrderId") or build_order_id(booking["customId"])
    status_code = TRANSACTION_STATUS_CODES.get(transaction_status, "200")
    gross_amount = f"{float(booking.get('totalAmount') or 0):.2f}"

    payload = {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "transaction_status": transaction_status,
        "fraud_status": fraud_status,
        "payment_type": "bank_transfer",
        "transaction_id": f"dev-{order_id}",
        "transaction_time": datetime.now(MIDTRANS_TZ).strftime("%Y-%m-%d %H:%M:%S"),
        "signature_key": compute_signature(order_id, status_code, gross_amount, settings.midtrans_server_key),
    }
    result = await process_notification(payload, service, settings)
    return {"success": True, "payload": payload, "result": result}


@router.get("/bookings")
async def list_bookings(
    limit: int = 20,
    service: PaymentService = Depends(get_payment_service),
):
    """Latest bookings, newest first"""
    bookings = await service.bookings.list_recent(limit)
    return {"success": True, "count": len(bookings), "data": [parse_from_mongo(b) for b in bookings]}


@router.post("/payment/reset-status/{booking_id}")
async def reset_status(
    booking_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    """Put a booking back to pending"""
    booking = await _booking_or_404(service, booking_id)
    booking = await service.bookings.update(booking, {
        "status": BookingStatus.PENDING.value,
        "paymentStatus": "pending",
        "transactionStatus": None,
        "fraudStatus": None,
        "paymentDate": None,
        "webhookReceived": False,
    })
    logger.info(f"DEV: reset payment status for {booking.get('customId')}")
    return {"success": True, "data": status_payload(booking)}
