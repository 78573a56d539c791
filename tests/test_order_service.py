"""
Tests for order cross-checks and OrderService.
"""

from decimal import Decimal

import pytest

from app.exceptions import AmountMismatch, CheckoutError, DuplicateOrder, MissingFields, ReferenceMismatch
from app.fsm.states import OrderStatus
from app.models.customer import Customer
from app.models.product import Product
from app.schemas.checkout import LineItem, OrderTotals
from app.services.catalog_service import CatalogService, PricedLine
from app.services.gateway_client import GatewayVerdict
from app.services.order_service import (
    OrderService,
    check_amount,
    check_cart_total,
    check_reference,
)


def verdict(amount="5000", tx_ref="A1", status="successful") -> GatewayVerdict:
    return GatewayVerdict(
        confirmed=status == "successful",
        status=status,
        amount=Decimal(amount),
        currency="NGN",
        tx_ref=tx_ref,
        transaction_id="1001",
    )


class TestCheckAmount:
    """Tests for comparing the declared total with the gateway amount."""

    def test_exact(self):
        assert check_amount(Decimal("5000"), verdict("5000")) == Decimal("5000")

    def test_within_tolerance(self):
        assert check_amount(Decimal("5000"), verdict("5000.01")) == Decimal("5000")

    def test_outside_tolerance(self):
        with pytest.raises(AmountMismatch) as exc_info:
            check_amount(Decimal("5000"), verdict("4000"))
        assert exc_info.value.details == {"expectedTotal": 5000.0, "gatewayAmount": 4000.0}

    def test_overcharge_is_also_a_mismatch(self):
        with pytest.raises(AmountMismatch):
            check_amount(Decimal("5000"), verdict("5000.02"))

    def test_without_declared_total_uses_gateway_amount(self):
        assert check_amount(None, verdict("1234.50")) == Decimal("1234.50")


class TestCheckReference:

    def test_matching(self):
        check_reference("A1", verdict(tx_ref="A1"))

    def test_mismatch(self):
        with pytest.raises(ReferenceMismatch):
            check_reference("A1", verdict(tx_ref="B2"))

    def test_missing_on_either_side(self):
        check_reference(None, verdict(tx_ref="B2"))
        check_reference("A1", verdict(tx_ref=None))


class TestCheckCartTotal:

    def test_total_recomputed(self):
        totals = OrderTotals(subtotal=5000, discountAmount=500, shippingCost=200, total=4700)
        assert check_cart_total(totals, Decimal("5000")) == Decimal("4700")

    def test_subtotal_mismatch(self):
        with pytest.raises(AmountMismatch):
            check_cart_total(OrderTotals(subtotal=4000, total=4000), Decimal("5000"))

    def test_total_mismatch(self):
        with pytest.raises(AmountMismatch):
            check_cart_total(OrderTotals(subtotal=5000, total=4000), Decimal("5000"))

    def test_missing_total_falls_back_to_computed(self):
        assert check_cart_total(OrderTotals(shippingCost=300), Decimal("5000")) == Decimal("5300")


async def make_customer(db, email="ada@example.com") -> Customer:
    customer = Customer(
        email=email,
        name="Ada Obi",
        password_hash="x",
        address="12 Allen Avenue",
        city="Ikeja",
        state="Lagos",
        country="Nigeria",
    )
    db.add(customer)
    await db.flush()
    return customer


LINES = [
    PricedLine(product_id="p-drill", name="Cordless Drill", unit_price=Decimal("2500"), quantity=2),
    PricedLine(product_id="p-bits", name="Drill Bits", unit_price=Decimal("333.33"), quantity=3),
]


@pytest.mark.asyncio
async def test_materialize_order(db):
    customer = await make_customer(db)
    totals = OrderTotals(subtotal=Decimal("5999.99"), total=Decimal("5999.99"))

    order = await OrderService(db).materialize(
        customer=customer,
        lines=LINES,
        totals=totals,
        total_price=Decimal("5999.99"),
        verdict=verdict("5999.99"),
        tx_ref="A1",
        coupon="",
    )

    assert order.id is not None
    assert order.status == OrderStatus.PAID.value
    assert order.coupon is None
    assert order.payment_transaction_id == "1001"
    assert order.shipping_address == "12 Allen Avenue, Ikeja, Lagos, Nigeria"
    assert [item.position for item in order.items] == [0, 1]
    assert order.items[1].total_price == Decimal("999.99")

    data = order.to_dict()
    assert data["totalPrice"] == 5999.99
    assert data["products"][0]["product"] == "p-drill"


@pytest.mark.asyncio
async def test_materialize_duplicate_reference(db):
    customer = await make_customer(db)
    service = OrderService(db)
    totals = OrderTotals(subtotal=5000, total=5000)

    await service.materialize(customer, LINES[:1], totals, Decimal("5000"), verdict(), "A1")
    await db.commit()

    with pytest.raises(DuplicateOrder) as exc_info:
        await service.materialize(customer, LINES[:1], totals, Decimal("5000"), verdict(), "A1")
    assert exc_info.value.status_code == 409
    await db.rollback()


@pytest.mark.asyncio
async def test_update_status_follows_lifecycle(db):
    customer = await make_customer(db)
    service = OrderService(db)
    order = await service.materialize(
        customer, LINES[:1], OrderTotals(subtotal=5000, total=5000), Decimal("5000"), verdict(), "A1"
    )

    await service.update_status(order, OrderStatus.SHIPPED)
    await service.update_status(order, OrderStatus.DELIVERED)
    assert order.status == "delivered"

    with pytest.raises(CheckoutError) as exc_info:
        await service.update_status(order, OrderStatus.CANCELLED)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_queries_and_stats(db):
    customer = await make_customer(db)
    other = await make_customer(db, email="bola@example.com")
    service = OrderService(db)
    totals = OrderTotals(subtotal=5000, total=5000)

    first = await service.materialize(customer, LINES[:1], totals, Decimal("5000"), verdict(), "A1")
    await service.materialize(other, LINES[:1], totals, Decimal("5000"), verdict(tx_ref="B1"), "B1")
    cancelled = await service.materialize(customer, LINES[:1], totals, Decimal("5000"), verdict(tx_ref="C1"), "C1")
    await service.update_status(cancelled, OrderStatus.CANCELLED)

    assert (await service.get_order_by_reference("A1")).id == first.id
    assert await service.get_order_by_reference("missing") is None
    assert len(await service.list_customer_orders(customer.id)) == 2
    assert len(await service.list_orders(status=OrderStatus.CANCELLED)) == 1
    assert len(await service.list_orders(limit=2)) == 2

    stats = await service.stats()
    assert stats == {"revenue": 10000.0, "orderCount": 3, "pendingOrderCount": 2}


@pytest.mark.asyncio
async def test_mark_paid_pending_order(db):
    customer = await make_customer(db)
    service = OrderService(db)
    order = await service.materialize(
        customer, LINES[:1], OrderTotals(subtotal=5000, total=5000), Decimal("5000"), verdict(), "A1"
    )
    order.status = OrderStatus.PENDING.value
    await db.flush()

    paid = await service.mark_paid("A1", verdict())

    assert paid.id == order.id
    assert paid.status == "paid"
    assert await service.mark_paid("unknown", verdict()) is None


@pytest.mark.asyncio
async def test_reprice_from_catalog(db):
    db.add(Product(id="p-drill", name="Cordless Drill 18V", price=Decimal("2750")))
    db.add(Product(id="p-old", name="Retired Saw", price=Decimal("9000"), active=False))
    await db.flush()

    catalog = CatalogService(db)
    lines = await catalog.reprice([
        LineItem(productId="p-drill", price=2500, quantity=2, name="Drill"),
        LineItem(productId="p-old", price=100, quantity=1, name="Saw"),
        LineItem(productId="p-unknown", price=50, quantity=1, name="Gloves"),
    ])

    assert lines[0].unit_price == Decimal("2750")
    assert lines[0].name == "Cordless Drill 18V"
    assert lines[0].from_catalog is True
    assert lines[1].unit_price == Decimal("100")
    assert lines[2].from_catalog is False
    assert catalog.subtotal(lines) == Decimal("5650.00")


def test_build_lines_rejects_empty_quantity():
    line = PricedLine(product_id="p-drill", name="Cordless Drill", unit_price=Decimal("2500"), quantity=0)

    with pytest.raises(MissingFields):
        OrderService.build_lines([line])
