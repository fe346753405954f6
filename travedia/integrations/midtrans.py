"""
Midtrans integration for Travedia - Snap transactions, status polling and
webhook signature checks
"""

import hashlib
import hmac
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

SANDBOX_SNAP_URL = "https://app.sandbox.midtrans.com/snap/v1/transactions"
PRODUCTION_SNAP_URL = "https://app.midtrans.com/snap/v1/transactions"
SANDBOX_API_URL = "https://api.sandbox.midtrans.com/v2"
PRODUCTION_API_URL = "https://api.midtrans.com/v2"

ORDER_ID_PREFIX = "TRX"
LEGACY_ORDER_ID_PREFIXES = ("TRX", "ORDER")


class PaymentGatewayError(Exception):
    """Raised when Midtrans rejects a call or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """SHA-512 hex digest of order_id + status_code + gross_amount + server_key"""
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(payload: Dict[str, Any], server_key: str) -> bool:
    """Check the signature_key of a Midtrans notification payload."""
    if not server_key:
        logger.error("MIDTRANS_SERVER_KEY not configured")
        return False

    fields = [payload.get(name) for name in ("order_id", "status_code", "gross_amount", "signature_key")]
    if any(value is None for value in fields):
        return False

    order_id, status_code, gross_amount, signature_key = (str(value) for value in fields)
    expected_signature = compute_signature(order_id, status_code, gross_amount, server_key)

    return hmac.compare_digest(signature_key, expected_signature)


def build_order_id(booking_code: str, now_ms: Optional[int] = None) -> str:
    """Order id sent to Midtrans: TRX-<bookingCode>-<ms timestamp>-<3 digits>"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{ORDER_ID_PREFIX}-{booking_code}-{now_ms}-{random.randint(0, 999):03d}"


def extract_booking_code(order_id: Any) -> Optional[str]:
    """
    Recover the booking code from an order id built by build_order_id.

    TRX-BOOK-01086213-1748601144363-421 -> BOOK-01086213
    TRX-<id>-<ts> and ORDER-<id>-<ts> -> <id>
    Anything else -> None.
    """
    if not isinstance(order_id, str) or not order_id:
        return None

    parts = order_id.split("-")
    if order_id.startswith(f"{ORDER_ID_PREFIX}-BOOK-"):
        return f"BOOK-{parts[2]}" if parts[2] else None

    if parts[0] in LEGACY_ORDER_ID_PREFIXES and len(parts) >= 2 and parts[1]:
        return parts[1]

    return None


class MidtransClient:
    """Thin async wrapper over the Snap and Core status APIs."""

    def __init__(
        self,
        server_key: str,
        is_production: bool = False,
        timeout: float = 30.0,
        dry_run: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_key = server_key
        self.is_production = is_production
        self.timeout = timeout
        self.dry_run = dry_run
        self._transport = transport

        if not server_key and not dry_run:
            logger.warning("⚠️ Midtrans server key not configured")

    @classmethod
    def from_settings(cls, settings: Settings) -> "MidtransClient":
        return cls(
            server_key=settings.midtrans_server_key,
            is_production=settings.midtrans_is_production,
            timeout=settings.midtrans_timeout,
            dry_run=settings.payments_dry_run,
        )

    @property
    def snap_url(self) -> str:
        return PRODUCTION_SNAP_URL if self.is_production else SANDBOX_SNAP_URL

    @property
    def api_url(self) -> str:
        return PRODUCTION_API_URL if self.is_production else SANDBOX_API_URL

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            auth=(self.server_key, ""),
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def create_transaction(
        self,
        parameter: Dict[str, Any],
        notification_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a Snap transaction.

        Returns the gateway response, which carries `token` and `redirect_url`.
        Raises PaymentGatewayError on any non-success answer or transport error.
        When notification_url is given it overrides the dashboard webhook URL
        for this transaction.
        """
        order_id = parameter.get("transaction_details", {}).get("order_id")

        if self.dry_run:
            # Mock session only in staging (DRY_RUN mode)
            token = f"mock-{order_id}"
            logger.info(f"DRY_RUN: Would create Midtrans transaction {order_id}")
            return {
                "token": token,
                "redirect_url": f"{self.snap_url.replace('/snap/v1/transactions', '')}/snap/v2/vtweb/{token}",
            }

        try:
            async with self._client() as client:
                headers = {"X-Override-Notification": notification_url} if notification_url else None
                response = await client.post(self.snap_url, json=parameter, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach Midtrans for {order_id}: {e}")
            raise PaymentGatewayError(f"Midtrans unreachable: {e}")

        if response.status_code not in (200, 201):
            detail = _error_detail(response)
            logger.error(f"Midtrans error: {response.status_code} - {detail}")
            raise PaymentGatewayError(
                f"Midtrans rejected transaction: {detail}",
                status_code=response.status_code,
                response=detail,
            )

        data = _json_body(response)
        if not data.get("token"):
            raise PaymentGatewayError("Midtrans response did not include a token", response=data)

        logger.info(f"✅ Midtrans transaction created for order {order_id}")
        return data

    async def get_transaction_status(self, order_id: str) -> Optional[Dict[str, Any]]:
        """
        Query the live status of an order.

        Returns None when the gateway does not know the order yet (the customer
        never opened the payment page) or in DRY_RUN mode.
        """
        if self.dry_run:
            return None

        url = f"{self.api_url}/{order_id}/status"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error(f"Failed to query Midtrans status for {order_id}: {e}")
            raise PaymentGatewayError(f"Midtrans unreachable: {e}")

        if response.status_code == 404:
            return None

        if response.status_code != 200:
            detail = _error_detail(response)
            raise PaymentGatewayError(
                f"Midtrans status query failed: {detail}",
                status_code=response.status_code,
                response=detail,
            )

        data = _json_body(response)
        # Core API answers HTTP 200 with its own status_code for unknown orders
        if str(data.get("status_code")) == "404":
            return None
        return data


def _error_detail(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get("error_messages") or body.get("status_message") or body
    return body


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        raise PaymentGatewayError("Midtrans returned a non-JSON body", status_code=response.status_code, response=response.text)
    if not isinstance(data, dict):
        raise PaymentGatewayError("Midtrans returned an unexpected body", status_code=response.status_code, response=data)
    return data
