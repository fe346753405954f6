"""
Payment API routes for Travedia
Snap transaction creation, Midtrans webhooks and booking status
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Any, Dict
import logging

from ...config import Settings
from ...integrations.midtrans import PaymentGatewayError, verify_signature
from ...models import PaymentRequestError, parse_payment_request
from ...ratelimit import rate_limit
from ...services.payments import BookingNotFound, PackageNotFound, PackageUnavailable, PaymentService
from ..deps import get_app_settings, get_payment_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])
webhook_router = APIRouter(prefix="/api/webhook", tags=["Payments"])
booking_router = APIRouter(prefix="/api/booking", tags=["Payments"])


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")


@router.post("/create", dependencies=[Depends(rate_limit("payment-create"))])
async def create_payment(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Create a Midtrans Snap transaction for a booking.

    Two body shapes are accepted:
    - **bookingId** with customerInfo, packageInfo, jumlahPeserta and totalAmount
    - **packageId** with jumlahPeserta (customerInfo and schedule optional);
      the package is priced server-side and a booking code is issued
    """
    body = await _json_body(request)

    try:
        payment_request = parse_payment_request(body)
    except PaymentRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        data = await service.create_payment(payment_request)
    except PackageNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PackageUnavailable as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentGatewayError as e:
        logger.error(f"Error creating payment: {e}")
        detail = "Error creating payment" if settings.is_production else f"Error creating payment: {e}"
        raise HTTPException(status_code=500, detail=detail)

    return {"success": True, "data": data}


async def process_notification(
    payload: Any,
    service: PaymentService,
    settings: Settings,
) -> Dict[str, Any]:
    """
    Validate, verify and apply one Midtrans notification.

    Once the signature check passes the gateway always gets a success answer,
    even when the booking is missing or the update fails, so Midtrans does not
    start re-delivering.
    """
    if not isinstance(payload, dict) or not payload.get("order_id"):
        raise HTTPException(status_code=400, detail="Invalid notification data")

    order_id = payload["order_id"]

    if settings.verify_webhook_signature:
        if not verify_signature(payload, settings.midtrans_server_key):
            logger.error(f"❌ Invalid signature on notification for {order_id}")
            raise HTTPException(status_code=401, detail="Invalid signature")
    else:
        logger.info(f"Signature verification disabled, accepting notification for {order_id}")

    try:
        result = await service.handle_notification(payload)
    except Exception as e:
        logger.error(f"Webhook processing error for {order_id}: {e}")
        return {"success": True, "message": "Notification received with errors"}

    if not result["updated"]:
        return {"success": True, "message": "Booking not found", "order_id": order_id}

    return {
        "success": True,
        "message": "Webhook processed successfully",
        "booking_id": result["booking_id"],
        "old_status": result["old_status"],
        "new_status": result["new_status"],
    }


@router.post("/notification")
@router.post("/webhook")
@router.post("/callback")
async def payment_notification(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_app_settings),
):
    """Handle Midtrans HTTP notifications"""
    payload = await _json_body(request)
    return await process_notification(payload, service, settings)


@webhook_router.post("/midtrans")
async def midtrans_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
    settings: Settings = Depends(get_app_settings),
):
    """Alias for dashboards configured with the legacy webhook path"""
    payload = await _json_body(request)
    return await process_notification(payload, service, settings)


@router.get("/status/{booking_id}")
async def get_payment_status(
    booking_id: str,
    refresh: bool = False,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Get payment status for a booking (ObjectId or BOOK-xxxxxxxx code).

    With **refresh=true** the live Midtrans status is fetched and stored first.
    """
    try:
        data = await service.get_status(booking_id, refresh=refresh)
    except BookingNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": data}


@booking_router.post("/check-payment/{booking_id}", dependencies=[Depends(rate_limit("check-payment"))])
async def check_payment(
    booking_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    """Manual payment check: always reconciles against Midtrans"""
    try:
        data = await service.check_payment(booking_id)
    except BookingNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "data": data}
