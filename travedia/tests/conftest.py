"""
Shared fixtures: an in-memory stand-in for the Motor database, a fake Midtrans
gateway and an app wired to both.
"""
import copy
from types import SimpleNamespace

import httpx
import pytest
from bson import ObjectId

from travedia.config import Settings
from travedia.integrations.midtrans import compute_signature
from travedia.ratelimit import MemoryRateLimiter
from travedia.server import create_app
from travedia.services.payments import PaymentService

SERVER_KEY = "SB-Mid-server-test-key"


def _matches(document, query):
    for key, condition in (query or {}).items():
        value = document.get(key)
        if isinstance(condition, dict) and any(op.startswith("$") for op in condition):
            for op, argument in condition.items():
                if op == "$in" and value not in argument:
                    return False
                if op == "$ne" and value == argument:
                    return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents):
        self._documents = documents

    def sort(self, key, direction=1):
        self._documents.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, count):
        self._documents = self._documents[:count]
        return self

    async def to_list(self, length=None):
        return self._documents[:length] if length else list(self._documents)


class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the booking store."""

    def __init__(self):
        self.documents = []
        self.fail_updates = False

    async def find_one(self, query):
        for document in self.documents:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    async def insert_one(self, document):
        document.setdefault("_id", ObjectId())
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    async def update_one(self, query, update):
        if self.fail_updates:
            raise RuntimeError("write failed")
        for document in self.documents:
            if _matches(document, query):
                document.update(copy.deepcopy(update["$set"]))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self.documents if _matches(d, query)])


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())

    def __getitem__(self, name):
        return getattr(self, name)


class FakeGateway:
    """Records Snap calls and serves canned status responses."""

    def __init__(self):
        self.created = []
        self.status_queries = []
        self.statuses = {}
        self.create_error = None
        self.status_error = None

    async def create_transaction(self, parameter, notification_url=None):
        if self.create_error:
            raise self.create_error
        self.created.append({"parameter": parameter, "notification_url": notification_url})
        order_id = parameter["transaction_details"]["order_id"]
        return {
            "token": f"snap-{order_id}",
            "redirect_url": f"https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-{order_id}",
        }

    async def get_transaction_status(self, order_id):
        self.status_queries.append(order_id)
        if self.status_error:
            raise self.status_error
        return self.statuses.get(order_id)


def make_settings(**overrides):
    values = {
        "environment": "development",
        "midtrans_server_key": SERVER_KEY,
        "frontend_url": "https://travedia.test",
        "backend_url": "https://api.travedia.test",
        "verify_webhook_signature": True,
        "payments_dry_run": False,
        "redis_url": None,
        "cors_origins": ["*"],
    }
    values.update(overrides)
    return Settings(**values)


def notification(order_id, transaction_status, fraud_status=None, gross_amount="1000000.00",
                 status_code="200", server_key=SERVER_KEY, **extra):
    """A Midtrans notification body signed with `server_key`."""
    payload = {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "transaction_status": transaction_status,
        "fraud_status": fraud_status,
        "payment_type": "bank_transfer",
        "transaction_id": f"txn-{order_id}",
        "transaction_time": "2025-05-30 17:30:00",
        "signature_key": compute_signature(order_id, status_code, gross_amount, server_key),
    }
    payload.update(extra)
    return payload


def api_client(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def service(db, gateway, settings):
    return PaymentService(db, gateway, settings)


@pytest.fixture
def package(db):
    """Bromo Sunrise at Rp 500.000 per participant."""
    document = {
        "_id": ObjectId(),
        "nama": "Bromo Sunrise 2D1N",
        "harga": 500000,
        "status": "available",
        "durasi": "2 hari 1 malam",
    }
    db.packages.documents.append(document)
    return document


@pytest.fixture
def app(settings, db, gateway):
    return create_app(
        settings=settings,
        db=db,
        gateway=gateway,
        rate_limiter=MemoryRateLimiter(limit=100, window=60),
    )
