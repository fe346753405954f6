from pydantic import BaseModel, Field, ValidationError
from typing import Optional, Dict, Any, Union
from datetime import datetime
from bson import ObjectId
from enum import Enum


# Enums
class BookingStatus(str, Enum):
    PENDING = "pending"
    PENDING_VERIFICATION = "pending_verification"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PackageStatus(str, Enum):
    AVAILABLE = "available"
    SOLD_OUT = "sold out"


# Booking snapshots
class CustomerInfo(BaseModel):
    nama: str = ""
    email: str = ""
    telepon: str = ""
    alamat: str = ""
    instansi: str = ""
    catatan: str = ""


class PackageInfo(BaseModel):
    id: Optional[str] = None
    nama: Optional[str] = None
    harga: float = Field(..., gt=0, allow_inf_nan=False)


class Schedule(BaseModel):
    tanggalAwal: Optional[datetime] = None
    tanggalAkhir: Optional[datetime] = None


# Payment creation request variants
class ExistingBookingPayment(BaseModel):
    """Booking code and snapshots already prepared by the client."""
    bookingId: str = Field(..., min_length=1)
    customerInfo: CustomerInfo
    packageInfo: PackageInfo
    jumlahPeserta: int = Field(..., gt=0)
    totalAmount: float = Field(..., gt=0, allow_inf_nan=False)
    schedule: Optional[Schedule] = None


class PackagePayment(BaseModel):
    """Bare package reference; the server prices it and issues a booking code."""
    packageId: str = Field(..., min_length=1)
    jumlahPeserta: int = Field(..., gt=0)
    customerInfo: CustomerInfo = Field(default_factory=CustomerInfo)
    schedule: Optional[Schedule] = None


PaymentRequest = Union[ExistingBookingPayment, PackagePayment]


class PaymentRequestError(ValueError):
    pass


def _describe_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def parse_payment_request(body: Any) -> PaymentRequest:
    """
    Decide which request variant a payment-creation body is.

    A body carrying bookingId is an ExistingBookingPayment, a body with only
    packageId is a PackagePayment. Anything else raises PaymentRequestError.
    """
    if not isinstance(body, dict):
        raise PaymentRequestError("Request body must be a JSON object")

    if body.get("bookingId"):
        model = ExistingBookingPayment
    elif body.get("packageId"):
        model = PackagePayment
    else:
        raise PaymentRequestError("Missing required fields: bookingId or packageId")

    try:
        return model(**body)
    except ValidationError as e:
        raise PaymentRequestError(f"Invalid payment request: {_describe_errors(e)}")


# Utility Functions
def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value) and len(value) == 24


def parse_from_mongo(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON-friendly"""
    if isinstance(item, dict):
        for key, value in item.items():
            if isinstance(value, ObjectId):
                item[key] = str(value)
            elif isinstance(value, dict):
                item[key] = parse_from_mongo(value)
            elif isinstance(value, list):
                item[key] = [parse_from_mongo(v) if isinstance(v, dict) else v for v in value]

        # Add 'id' field for frontend compatibility
        if '_id' in item and 'id' not in item:
            item['id'] = item['_id']
    return item
