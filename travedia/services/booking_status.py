"""
Booking Status Resolver
Maps a Midtrans (transaction_status, fraud_status) pair onto a booking state.
"""
from typing import Optional

from ..models import BookingStatus

CANCELLED_TRANSACTION_STATUSES = ("deny", "cancel", "expire")


def resolve_booking_status(transaction_status: Optional[str], fraud_status: Optional[str] = None) -> BookingStatus:
    """
    Resolve the booking state for the last observed gateway status pair.

    Matching is case-sensitive on the gateway's own vocabulary. Unknown or
    missing transaction statuses resolve to PENDING.
    """
    if transaction_status == "capture":
        if fraud_status == "accept":
            return BookingStatus.CONFIRMED
        return BookingStatus.PENDING_VERIFICATION

    if transaction_status == "settlement":
        return BookingStatus.CONFIRMED

    if transaction_status == "pending":
        return BookingStatus.PENDING_VERIFICATION

    if transaction_status in CANCELLED_TRANSACTION_STATUSES:
        return BookingStatus.CANCELLED

    return BookingStatus.PENDING


def can_access_voucher(status: Optional[str]) -> bool:
    """Vouchers and tickets are only released for confirmed bookings."""
    return status == BookingStatus.CONFIRMED
