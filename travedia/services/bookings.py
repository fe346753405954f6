"""
Booking store helpers over the `bookings` collection.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from bson import ObjectId
import logging
import time

from ..models import BookingStatus, is_object_id

logger = logging.getLogger(__name__)

BOOKING_CODE_PREFIX = "BOOK"


def generate_booking_code(now_ms: Optional[int] = None) -> str:
    """Human-facing code BOOK-<last 8 digits of the ms timestamp>"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{BOOKING_CODE_PREFIX}-{str(now_ms)[-8:].zfill(8)}"


class BookingRepository:
    """
    Reads and writes booking documents.

    Updates are plain read-modify-write `$set`s with no version check, so two
    writers racing on one booking end with whichever wrote last.
    """

    def __init__(self, db):
        self.collection = db.bookings

    async def find(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Look a booking up by ObjectId string or by its booking code."""
        if not identifier:
            return None

        booking = None
        if is_object_id(identifier):
            booking = await self.collection.find_one({"_id": ObjectId(identifier)})
        if not booking:
            booking = await self.collection.find_one({"customId": identifier})
        return booking

    async def find_by_order_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"paymentOrderId": order_id})

    async def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        document.setdefault("_id", ObjectId())
        # Bookings always carry a code; fall back to the primary key
        if not document.get("customId"):
            document["customId"] = str(document["_id"])
        document.setdefault("createdAt", now)
        document["updatedAt"] = now

        await self.collection.insert_one(document)
        logger.info(f"Created booking {document['customId']} ({document['_id']})")
        return document

    async def update(self, booking: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite `fields` on the stored booking and return the merged document."""
        fields = dict(fields)
        fields["updatedAt"] = datetime.now(timezone.utc)

        await self.collection.update_one({"_id": booking["_id"]}, {"$set": fields})
        return {**booking, **fields}

    async def list_recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        cursor = self.collection.find({}).sort("createdAt", -1).limit(limit)
        return await cursor.to_list(limit)

    async def list_awaiting_payment(self, limit: int = 200) -> List[Dict[str, Any]]:
        """Bookings still waiting on the gateway that have an order on file."""
        query = {
            "status": {"$in": [BookingStatus.PENDING.value, BookingStatus.PENDING_VERIFICATION.value]},
            "paymentOrderId": {"$ne": None},
        }
        cursor = self.collection.find(query).sort("createdAt", 1).limit(limit)
        return await cursor.to_list(limit)
