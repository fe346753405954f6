"""
Payment Service
Creates Midtrans transactions for bookings, ingests webhooks and reconciles
booking state against the gateway.
"""
from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timezone, timedelta
from bson import ObjectId
import logging

from ..config import Settings
from ..integrations.midtrans import MidtransClient, PaymentGatewayError, build_order_id, extract_booking_code
from ..models import (
    BookingStatus,
    ExistingBookingPayment,
    PackagePayment,
    PackageStatus,
    PaymentRequest,
    is_object_id,
)
from .booking_status import can_access_voucher, resolve_booking_status
from .bookings import BookingRepository, generate_booking_code

logger = logging.getLogger(__name__)

# Midtrans reports times in Western Indonesia Time
MIDTRANS_TZ = timezone(timedelta(hours=7))


class BookingNotFound(Exception):
    pass


class PackageNotFound(Exception):
    pass


class PackageUnavailable(Exception):
    pass


class VoucherUnavailable(Exception):
    def __init__(self, booking: Dict[str, Any]):
        super().__init__("Voucher not available - payment not confirmed")
        self.booking = booking


def parse_midtrans_time(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d %H:%M:%S").replace(tzinfo=MIDTRANS_TZ)
    except ValueError:
        logger.warning(f"Unparseable Midtrans timestamp: {value}")
        return None


def status_payload(booking: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a booking's payment state."""
    return {
        "bookingId": str(booking["_id"]),
        "customId": booking.get("customId"),
        "status": booking.get("status"),
        "paymentStatus": booking.get("paymentStatus"),
        "paymentMethod": booking.get("paymentMethod"),
        "paymentDate": booking.get("paymentDate"),
        "paymentToken": booking.get("paymentToken"),
        "redirectUrl": booking.get("paymentRedirectUrl"),
        "totalAmount": booking.get("totalAmount"),
        "canAccessVoucher": can_access_voucher(booking.get("status")),
    }


class PaymentService:
    """Orchestrates the booking side of the Midtrans payment flow."""

    def __init__(self, db, gateway: MidtransClient, settings: Settings):
        self.db = db
        self.bookings = BookingRepository(db)
        self.gateway = gateway
        self.settings = settings

    # Transaction creation

    async def create_payment(self, request: PaymentRequest) -> Dict[str, Any]:
        """
        Create a Snap transaction and persist the booking as pending.

        Raises PackageNotFound / PackageUnavailable for bad package references
        and PaymentGatewayError when Midtrans fails. Nothing is retried.
        """
        if isinstance(request, PackagePayment):
            booking_code, package_info, total_amount = await self._price_package(request)
        else:
            booking_code = request.bookingId
            package_info = request.packageInfo.model_dump()
            total_amount = request.totalAmount

        order_id = build_order_id(booking_code)
        gross_amount = int(round(total_amount))

        parameter = self._transaction_parameter(
            order_id=order_id,
            booking_code=booking_code,
            gross_amount=gross_amount,
            package_info=package_info,
            jumlah_peserta=request.jumlahPeserta,
            customer_info=request.customerInfo.model_dump(),
        )
        transaction = await self.gateway.create_transaction(parameter, notification_url=self.settings.webhook_url)

        booking = await self._save_pending_booking(
            request=request,
            booking_code=booking_code,
            package_info=package_info,
            total_amount=total_amount,
            order_id=order_id,
            transaction=transaction,
        )

        return {
            "snap_token": transaction["token"],
            "redirect_url": transaction.get("redirect_url"),
            "order_id": order_id,
            "booking_id": booking.get("customId") or str(booking["_id"]),
        }

    async def _price_package(self, request: PackagePayment) -> Tuple[str, Dict[str, Any], float]:
        package = None
        if is_object_id(request.packageId):
            package = await self.db.packages.find_one({"_id": ObjectId(request.packageId)})
        if not package:
            package = await self.db.packages.find_one({"_id": request.packageId})
        if not package:
            raise PackageNotFound(f"Package {request.packageId} not found")

        if package.get("status") == PackageStatus.SOLD_OUT.value:
            raise PackageUnavailable(f"Package {package.get('nama', request.packageId)} is sold out")

        harga = package.get("harga")
        if not isinstance(harga, (int, float)) or isinstance(harga, bool) or harga <= 0:
            raise PackageUnavailable(f"Package {request.packageId} has no valid price")

        package_info = {"id": str(package["_id"]), "nama": package.get("nama"), "harga": harga}
        return generate_booking_code(), package_info, harga * request.jumlahPeserta

    def _transaction_parameter(
        self,
        order_id: str,
        booking_code: str,
        gross_amount: int,
        package_info: Dict[str, Any],
        jumlah_peserta: int,
        customer_info: Dict[str, Any],
    ) -> Dict[str, Any]:
        names = (customer_info.get("nama") or "").split()
        unit_price = int(round(package_info["harga"]))

        # Item lines must add up to gross_amount or Snap rejects the request
        if unit_price * jumlah_peserta == gross_amount:
            item = {"price": unit_price, "quantity": jumlah_peserta}
        else:
            item = {"price": gross_amount, "quantity": 1}
        item.update({
            "id": package_info.get("id") or "tour-package",
            "name": (package_info.get("nama") or "Tour Package")[:50],
        })

        frontend = self.settings.frontend_url
        return {
            "transaction_details": {
                "order_id": order_id,
                "gross_amount": gross_amount,
            },
            "customer_details": {
                "first_name": names[0] if names else "Customer",
                "last_name": " ".join(names[1:]),
                "email": customer_info.get("email") or "customer@example.com",
                "phone": customer_info.get("telepon") or "08123456789",
            },
            "item_details": [item],
            "callbacks": {
                "finish": f"{frontend}/booking-detail/{booking_code}",
                "error": f"{frontend}/booking-error/{booking_code}",
                "pending": f"{frontend}/booking-pending/{booking_code}",
            },
        }

    async def _save_pending_booking(
        self,
        request: PaymentRequest,
        booking_code: str,
        package_info: Dict[str, Any],
        total_amount: float,
        order_id: str,
        transaction: Dict[str, Any],
    ) -> Dict[str, Any]:
        payment_fields = {
            "status": BookingStatus.PENDING.value,
            "paymentStatus": "pending",
            "paymentToken": transaction["token"],
            "paymentRedirectUrl": transaction.get("redirect_url"),
            "paymentOrderId": order_id,
        }
        customer_info = request.customerInfo.model_dump()
        schedule = request.schedule.model_dump() if request.schedule else None

        existing = None
        if isinstance(request, ExistingBookingPayment):
            existing = await self.bookings.find(booking_code)

        if existing:
            logger.info(f"Updating existing booking {existing.get('customId')} for order {order_id}")
            # Keep stored customer details the request leaves blank
            merged_customer = dict(existing.get("customerInfo") or {})
            merged_customer.update({key: value for key, value in customer_info.items() if value})

            fields = dict(payment_fields)
            fields.update({
                "customerInfo": merged_customer,
                "packageId": package_info.get("id") or existing.get("packageId"),
                "packageInfo": package_info,
                "jumlahPeserta": request.jumlahPeserta,
                "totalAmount": total_amount,
            })
            if schedule:
                fields["schedule"] = schedule
            return await self.bookings.update(existing, fields)

        document = {
            "customId": booking_code,
            "packageId": package_info.get("id"),
            "packageInfo": package_info,
            "jumlahPeserta": request.jumlahPeserta,
            "totalAmount": total_amount,
            "customerInfo": customer_info,
            "schedule": schedule,
            "webhookReceived": False,
            **payment_fields,
        }
        return await self.bookings.insert(document)

    # Webhook ingestion

    async def handle_notification(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a Midtrans notification to its booking.

        The payload is assumed to be signature-checked already. Returns a
        summary; a missing booking is logged and reported as not updated.
        """
        order_id = payload["order_id"]
        transaction_status = payload.get("transaction_status")
        fraud_status = payload.get("fraud_status")

        logger.info(
            f"📨 Midtrans notification for {order_id}: "
            f"transaction_status={transaction_status}, fraud_status={fraud_status}"
        )

        # Exact order match first; parsing is only for bookings without a stored order
        booking_code = extract_booking_code(order_id)
        booking = await self.bookings.find_by_order_id(order_id)
        if not booking and booking_code:
            booking = await self.bookings.find(booking_code)

        if not booking:
            logger.error(f"❌ No booking for order {order_id} (extracted code: {booking_code})")
            return {"updated": False, "order_id": order_id, "booking_id": booking_code}

        new_status = resolve_booking_status(transaction_status, fraud_status)
        old_status = booking.get("status")
        old_payment_status = booking.get("paymentStatus")

        fields = self._payment_fields(booking, payload, new_status)
        fields.update({
            "transactionTime": payload.get("transaction_time"),
            "settlementTime": payload.get("settlement_time"),
            "webhookReceived": True,
            "lastWebhookUpdate": datetime.now(timezone.utc),
        })
        booking = await self.bookings.update(booking, fields)

        logger.info(
            f"✅ Booking {booking.get('customId')}: status {old_status} → {new_status.value}, "
            f"payment {old_payment_status} → {transaction_status}"
        )
        if new_status == BookingStatus.CONFIRMED and old_status != BookingStatus.CONFIRMED.value:
            logger.info(f"🎉 Payment confirmed for booking {booking.get('customId')}, voucher available")

        return {
            "updated": True,
            "order_id": order_id,
            "booking_id": booking.get("customId"),
            "old_status": old_status,
            "new_status": new_status.value,
        }

    def _payment_fields(self, booking: Dict[str, Any], data: Dict[str, Any], new_status: BookingStatus) -> Dict[str, Any]:
        fields = {
            "status": new_status.value,
            "paymentStatus": data.get("transaction_status"),
            "transactionStatus": data.get("transaction_status"),
            "fraudStatus": data.get("fraud_status"),
            "midtransResponse": data,
        }
        if data.get("payment_type"):
            fields["paymentMethod"] = data["payment_type"]
        if data.get("transaction_id"):
            fields["midtransTransactionId"] = data["transaction_id"]

        if new_status == BookingStatus.CONFIRMED:
            fields["paymentDate"] = (
                parse_midtrans_time(data.get("settlement_time"))
                or booking.get("paymentDate")
                or datetime.now(timezone.utc)
            )
        return fields

    # Status queries

    async def get_booking(self, identifier: str) -> Dict[str, Any]:
        booking = await self.bookings.find(identifier)
        if not booking:
            raise BookingNotFound(f"Booking {identifier} not found")
        return booking

    async def reconcile(self, booking: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Re-read the live gateway status and persist it if it differs.

        Gateway errors are logged and leave the booking untouched. Completed
        bookings are closed by staff and never reconciled.
        """
        order_id = booking.get("paymentOrderId")
        if not order_id or booking.get("status") == BookingStatus.COMPLETED.value:
            return booking, False

        try:
            data = await self.gateway.get_transaction_status(order_id)
        except PaymentGatewayError as e:
            logger.error(f"Error querying Midtrans for {order_id}: {e}")
            return booking, False

        if not data:
            return booking, False

        new_status = resolve_booking_status(data.get("transaction_status"), data.get("fraud_status"))
        if (
            new_status.value == booking.get("status")
            and data.get("transaction_status") == booking.get("paymentStatus")
        ):
            return booking, False

        old_status = booking.get("status")
        booking = await self.bookings.update(booking, self._payment_fields(booking, data, new_status))
        logger.info(f"🔄 Reconciled booking {booking.get('customId')}: {old_status} → {new_status.value}")
        return booking, True

    async def get_status(self, identifier: str, refresh: bool = False) -> Dict[str, Any]:
        booking = await self.get_booking(identifier)
        if refresh:
            booking, _ = await self.reconcile(booking)
        return status_payload(booking)

    async def check_payment(self, identifier: str) -> Dict[str, Any]:
        booking = await self.get_booking(identifier)
        old_status = booking.get("status")
        booking, updated = await self.reconcile(booking)
        return {
            **status_payload(booking),
            "updated": updated,
            "oldStatus": old_status,
            "newStatus": booking.get("status"),
        }

    # Vouchers

    async def get_voucher(self, identifier: str) -> Dict[str, Any]:
        booking = await self.get_booking(identifier)
        if not can_access_voucher(booking.get("status")):
            raise VoucherUnavailable(booking)

        customer = booking.get("customerInfo") or {}
        package = booking.get("packageInfo") or {}
        schedule = booking.get("schedule") or {}
        payment_date = booking.get("paymentDate")
        stamp = int(payment_date.timestamp() * 1000) if isinstance(payment_date, datetime) else 0

        return {
            "voucherId": f"VOC-{booking.get('customId')}-{stamp}",
            "bookingId": booking.get("customId"),
            "customerName": customer.get("nama") or "Customer",
            "packageName": package.get("nama") or "Travel Package",
            "packageId": booking.get("packageId"),
            "startDate": schedule.get("tanggalAwal"),
            "endDate": schedule.get("tanggalAkhir"),
            "participants": booking.get("jumlahPeserta"),
            "totalAmount": booking.get("totalAmount"),
            "paymentStatus": booking.get("paymentStatus"),
            "paymentDate": payment_date,
            "qrCode": f"{self.settings.frontend_url}/voucher/{booking.get('customId')}",
            "instructions": VOUCHER_INSTRUCTIONS,
            "contactInfo": VOUCHER_CONTACT,
        }


VOUCHER_INSTRUCTIONS = [
    "Voucher ini berlaku untuk 1 kali perjalanan",
    "Harap datang 30 menit sebelum keberangkatan",
    "Bawa identitas yang valid (KTP/Passport)",
    "Hubungi customer service jika ada pertanyaan",
]

VOUCHER_CONTACT = {
    "phone": "+62-xxx-xxxx-xxxx",
    "email": "support@travedia.com",
    "website": "www.travedia.com",
}
