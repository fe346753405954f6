"""
Tests for the Midtrans integration: signatures, order ids and the HTTP client.
"""
import base64
import hashlib
import json

import httpx
import pytest

from travedia.integrations.midtrans import (
    MidtransClient,
    PaymentGatewayError,
    build_order_id,
    compute_signature,
    extract_booking_code,
    verify_signature,
)
from travedia.services.bookings import generate_booking_code

from .conftest import make_settings


def signed(order_id="TRX-1", status_code="200", gross_amount="1000.00", server_key="S"):
    return {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "signature_key": compute_signature(order_id, status_code, gross_amount, server_key),
    }


class TestSignature:

    def test_known_digest(self):
        expected = hashlib.sha512(b"TRX-12001000.00S").hexdigest()
        assert compute_signature("TRX-1", "200", "1000.00", "S") == expected

    def test_valid_signature_verifies(self):
        assert verify_signature(signed(), "S")

    @pytest.mark.parametrize("field,value", [
        ("order_id", "TRX-2"),
        ("status_code", "201"),
        ("gross_amount", "1000.01"),
    ])
    def test_single_character_change_rejected(self, field, value):
        payload = signed()
        payload[field] = value
        assert not verify_signature(payload, "S")

    def test_tampered_signature_rejected(self):
        payload = signed()
        last = payload["signature_key"][-1]
        payload["signature_key"] = payload["signature_key"][:-1] + ("0" if last != "0" else "1")
        assert not verify_signature(payload, "S")

    def test_wrong_server_key_rejected(self):
        assert not verify_signature(signed(), "T")

    def test_missing_server_key_rejected(self):
        assert not verify_signature(signed(), "")

    @pytest.mark.parametrize("field", ["order_id", "status_code", "gross_amount", "signature_key"])
    def test_missing_field_rejected(self, field):
        payload = signed()
        del payload[field]
        assert not verify_signature(payload, "S")

    def test_numeric_fields_are_compared_as_text(self):
        payload = signed(status_code="200", gross_amount="1000.00")
        payload["status_code"] = 200
        assert verify_signature(payload, "S")


class TestOrderIds:

    def test_booking_code_format(self):
        assert generate_booking_code(1748601144363) == "BOOK-01144363"
        assert generate_booking_code(42) == "BOOK-00000042"

    def test_build_order_id_format(self):
        order_id = build_order_id("BOOK-01144363", now_ms=1748601144363)
        prefix, book, code, stamp, suffix = order_id.split("-")
        assert (prefix, book, code, stamp) == ("TRX", "BOOK", "01144363", "1748601144363")
        assert len(suffix) == 3 and suffix.isdigit()

    def test_round_trip_booking_code(self):
        assert extract_booking_code(build_order_id("BOOK-01144363")) == "BOOK-01144363"

    @pytest.mark.parametrize("order_id,expected", [
        ("TRX-BOOK-01086213-1748601144363-421", "BOOK-01086213"),
        ("TRX-665f1c2e8a1b2c3d4e5f6a7b-1748601144363", "665f1c2e8a1b2c3d4e5f6a7b"),
        ("ORDER-legacy42-1748601144363", "legacy42"),
        ("SOMETHING-ELSE", None),
        ("TRX", None),
        ("", None),
        (None, None),
    ])
    def test_extract_booking_code(self, order_id, expected):
        assert extract_booking_code(order_id) == expected


class TestMidtransClient:

    def client(self, handler, **kwargs):
        return MidtransClient(server_key="SB-key", transport=httpx.MockTransport(handler), **kwargs)

    @pytest.mark.asyncio
    async def test_create_transaction_posts_to_snap(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["override"] = request.headers.get("x-override-notification")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"token": "tok-1", "redirect_url": "https://pay/tok-1"})

        parameter = {"transaction_details": {"order_id": "TRX-BOOK-1-2-003", "gross_amount": 1000}}
        result = await self.client(handler).create_transaction(
            parameter, notification_url="https://api.travedia.test/api/payment/notification"
        )

        assert result["token"] == "tok-1"
        assert seen["url"] == "https://app.sandbox.midtrans.com/snap/v1/transactions"
        assert seen["auth"] == "Basic " + base64.b64encode(b"SB-key:").decode()
        assert seen["override"] == "https://api.travedia.test/api/payment/notification"
        assert seen["body"] == parameter

    def test_production_urls(self):
        client = MidtransClient(server_key="key", is_production=True)
        assert client.snap_url == "https://app.midtrans.com/snap/v1/transactions"
        assert client.api_url == "https://api.midtrans.com/v2"

    @pytest.mark.asyncio
    async def test_create_transaction_rejected(self):
        def handler(request):
            return httpx.Response(401, json={"error_messages": ["Access denied"]})

        with pytest.raises(PaymentGatewayError) as exc_info:
            await self.client(handler).create_transaction({"transaction_details": {"order_id": "X"}})
        assert exc_info.value.status_code == 401
        assert exc_info.value.response == ["Access denied"]

    @pytest.mark.asyncio
    async def test_create_transaction_without_token(self):
        def handler(request):
            return httpx.Response(201, json={"redirect_url": "https://pay"})

        with pytest.raises(PaymentGatewayError):
            await self.client(handler).create_transaction({"transaction_details": {"order_id": "X"}})

    @pytest.mark.asyncio
    async def test_create_transaction_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PaymentGatewayError):
            await self.client(handler).create_transaction({"transaction_details": {"order_id": "X"}})

    @pytest.mark.asyncio
    async def test_dry_run_never_calls_out(self):
        def handler(request):
            raise AssertionError("no HTTP call expected")

        client = self.client(handler, dry_run=True)
        result = await client.create_transaction({"transaction_details": {"order_id": "TRX-A"}})
        assert result["token"] == "mock-TRX-A"
        assert await client.get_transaction_status("TRX-A") is None

    @pytest.mark.asyncio
    async def test_status_query(self):
        def handler(request):
            assert str(request.url) == "https://api.sandbox.midtrans.com/v2/TRX-A/status"
            return httpx.Response(200, json={"status_code": "200", "transaction_status": "settlement"})

        data = await self.client(handler).get_transaction_status("TRX-A")
        assert data["transaction_status"] == "settlement"

    @pytest.mark.asyncio
    async def test_unknown_order_in_body_is_none(self):
        def handler(request):
            return httpx.Response(200, json={"status_code": "404", "status_message": "Transaction doesn't exist."})

        assert await self.client(handler).get_transaction_status("TRX-A") is None

    @pytest.mark.asyncio
    async def test_unknown_order_http_404_is_none(self):
        def handler(request):
            return httpx.Response(404, json={"status_message": "not found"})

        assert await self.client(handler).get_transaction_status("TRX-A") is None

    @pytest.mark.asyncio
    async def test_status_server_error_raises(self):
        def handler(request):
            return httpx.Response(500, text="upstream down")

        with pytest.raises(PaymentGatewayError) as exc_info:
            await self.client(handler).get_transaction_status("TRX-A")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(PaymentGatewayError):
            await self.client(handler).get_transaction_status("TRX-A")

    def test_from_settings(self):
        settings = make_settings(midtrans_is_production=True, midtrans_timeout=5.0, payments_dry_run=True)
        client = MidtransClient.from_settings(settings)
        assert client.is_production
        assert client.timeout == 5.0
        assert client.dry_run
