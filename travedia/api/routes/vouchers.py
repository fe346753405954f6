from fastapi import APIRouter, Depends, HTTPException
import logging

from ...services.payments import BookingNotFound, PaymentService, VoucherUnavailable
from ..deps import get_payment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voucher", tags=["Vouchers"])


@router.get("/{booking_id}")
@router.post("/generate/{booking_id}")
async def get_voucher(
    booking_id: str,
    service: PaymentService = Depends(get_payment_service),
):
    """E-voucher for a confirmed booking"""
    try:
        voucher = await service.get_voucher(booking_id)
    except BookingNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except VoucherUnavailable as e:
        raise HTTPException(
            status_code=400,
            detail={
                "message": str(e),
                "currentStatus": e.booking.get("status"),
                "paymentStatus": e.booking.get("paymentStatus"),
            },
        )

    logger.info(f"🎫 Voucher issued for booking {voucher['bookingId']}")
    return {"success": True, "voucher": voucher}
