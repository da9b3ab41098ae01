"""
Shared fixtures.

Each test gets a fresh app on an in-memory SQLite database with:
- an admin and a staff user
- one supplier
- two products (Cobre 100.00/qq, Cartón 50.00/qq)
- a 10% surcharge config row

Fixtures hand out ids, not ORM objects, so tests never touch detached rows.
The app context is pushed only around setup, teardown and direct database
access (`with app.app_context():`), so every request runs in its own context
and each test client keeps its own logged-in user.
"""

import copy
import itertools
from decimal import Decimal

import pytest

from config import TestingConfig
from intake import create_app
from intake.extensions import db
from intake.models import Product, Supplier, SystemConfig, User
from intake.pricing import lifecycle
from intake.pricing.calculator import price_item
from intake.pricing.errors import NotFoundError
from intake.pricing.lifecycle import ItemInput, ReportHeader, ReportState

ADMIN_EMAIL = "admin@example.com"
STAFF_EMAIL = "staff@example.com"
PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seed(app):
    with app.app_context():
        return _seed_rows()


def _seed_rows():
    admin = User(first_name="Ada", last_name="Admin", email=ADMIN_EMAIL, is_admin=True, is_active=True)
    admin.set_password(PASSWORD)
    staff = User(first_name="Sam", last_name="Staff", email=STAFF_EMAIL, is_admin=False, is_active=True)
    staff.set_password(PASSWORD)

    supplier = Supplier(name="Recicladora Norte", address="Zona 1", phone="5555-0000", representative="Luis")
    copper = Product(name="Cobre", price_per_quintal=Decimal("100.00"))
    cardboard = Product(name="Cartón", price_per_quintal=Decimal("50.00"))
    config = SystemConfig(extra_percentage=Decimal("10.00"))

    db.session.add_all([admin, staff, supplier, copper, cardboard, config])
    db.session.commit()

    return {
        "admin_id": admin.id,
        "staff_id": staff.id,
        "supplier_id": supplier.id,
        "copper_id": copper.id,
        "cardboard_id": cardboard.id,
    }


def login(client, email, password=PASSWORD):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def staff_client(app, seed):
    client = app.test_client()
    login(client, STAFF_EMAIL)
    return client


@pytest.fixture
def admin_client(app, seed):
    client = app.test_client()
    login(client, ADMIN_EMAIL)
    return client


@pytest.fixture
def header(seed):
    return {
        "supplierId": seed["supplier_id"],
        "plateNumber": "p-123abc",
        "driverName": "Juan Pérez",
        "grossWeight": 50,
    }


# ---------------------------------------------------------------------
# In-memory Report Service for the client core
# ---------------------------------------------------------------------
class FakeReportService:
    """
    ReportService backed by dicts, using the same pricing and lifecycle
    rules as the server.

    - `calls` records every operation name in order.
    - `fail_next` is raised by the next call.
    - `gate` (an asyncio.Event) holds every call until it is set.
    """

    def __init__(self, products, extra_percentage="10"):
        self.products = products
        self.extra_percentage = Decimal(extra_percentage)
        self.reports = {}
        self.calls = []
        self.fail_next = None
        self.gate = None
        self._report_ids = itertools.count(1)
        self._item_ids = itertools.count(1)

    async def _enter(self, name):
        self.calls.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    def _report(self, report_id):
        if report_id not in self.reports:
            raise NotFoundError(f"Report {report_id} not found.")
        return self.reports[report_id]

    async def create_report(self, header):
        await self._enter("create_report")
        parsed = ReportHeader.from_payload(header)
        report_id = next(self._report_ids)
        self.reports[report_id] = {
            "id": report_id,
            "ticketNumber": f"TK-{report_id:06d}",
            "supplierId": int(parsed.supplier_id),
            "plateNumber": parsed.plate_number,
            "driverName": parsed.driver_name,
            "grossWeight": float(parsed.gross_weight),
            "tareWeight": 0.0,
            "netWeight": 0.0,
            "extraPercentage": 0.0,
            "basePrice": 0.0,
            "totalPrice": 0.0,
            "state": ReportState.PENDING.value,
            "items": [],
        }
        return copy.deepcopy(self.reports[report_id])

    async def add_report_item(self, report_id, item):
        await self._enter("add_report_item")
        report = self._report(report_id)
        lifecycle.ensure_items_mutable(report["state"])
        parsed = ItemInput.from_payload(item)
        name, ppq = self.products[int(parsed.product_id)]
        weight_in_quintals, base_price = price_item(ppq, parsed.weight, parsed.weight_unit)
        report["items"].append({
            "id": next(self._item_ids),
            "reportId": report_id,
            "productId": int(parsed.product_id),
            "product": {"id": int(parsed.product_id), "name": name},
            "weight": float(parsed.weight),
            "weightUnit": parsed.weight_unit.value,
            "weightInQuintals": float(weight_in_quintals),
            "pricePerQuintal": float(ppq),
            "basePrice": float(base_price),
            "discountWeight": float(parsed.discount_weight) if parsed.discount_weight is not None else None,
        })
        return copy.deepcopy(report)

    async def remove_report_item(self, report_id, item_id):
        await self._enter("remove_report_item")
        report = self._report(report_id)
        lifecycle.ensure_items_mutable(report["state"])
        before = len(report["items"])
        report["items"] = [i for i in report["items"] if i["id"] != item_id]
        if len(report["items"]) == before:
            raise NotFoundError(f"Item {item_id} not found.")
        return copy.deepcopy(report)

    async def finish_report(self, report_id, tare_weight):
        await self._enter("finish_report")
        report = self._report(report_id)
        result = lifecycle.finish(
            report["state"],
            report["grossWeight"],
            tare_weight,
            [i["basePrice"] for i in report["items"]],
            self.extra_percentage,
        )
        report.update({
            "tareWeight": float(result.tare_weight),
            "netWeight": float(result.net_weight),
            "extraPercentage": float(result.extra_percentage),
            "basePrice": float(result.base_price),
            "totalPrice": float(result.total_price),
            "state": result.state.value,
        })
        return copy.deepcopy(report)

    async def cancel_report(self, report_id):
        await self._enter("cancel_report")
        report = self._report(report_id)
        report["state"] = lifecycle.cancel(report["state"]).value
        return copy.deepcopy(report)

    async def get_config(self):
        await self._enter("get_config")
        return {"id": 1, "extraPercentage": float(self.extra_percentage)}


FAKE_COPPER_ID = 1
FAKE_CARDBOARD_ID = 2


@pytest.fixture
def fake_service():
    return FakeReportService({
        FAKE_COPPER_ID: ("Cobre", Decimal("100.00")),
        FAKE_CARDBOARD_ID: ("Cartón", Decimal("50.00")),
    })


@pytest.fixture
def fake_header():
    return {"supplierId": 1, "plateNumber": "p-1", "driverName": "Ana López", "grossWeight": 50}
