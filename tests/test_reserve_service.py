from datetime import timedelta
from decimal import Decimal

import pytest

from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import Currency, SalePaymentStatus, TransactionKind
from retail_ledger.models.payment import Payment
from retail_ledger.models.product import StockMovement, StockMovementType
from retail_ledger.models.reserve import ReserveStatus
from retail_ledger.models.sale import Sale
from retail_ledger.services.reserve_service import ReserveRequestLine, ReserveService, is_expired
from retail_ledger.utils.dates import utc_now


@pytest.fixture
def reserves(db, actor, rates):
    return ReserveService(db, actor, rates)


@pytest.fixture
def reserved(reserves, make_customer, make_product):
    """Customer with 10 units of a 50.00 product on hold."""
    customer = make_customer(opening_balance="0")
    product = make_product(sale_price="50", stock_quantity=20)
    reserve = reserves.create_reserve([ReserveRequestLine(product.id, 10)], customer_id=customer.id)
    return customer, product, reserve


def test_create_reserve_holds_without_side_effects(db, reserved):
    customer, product, reserve = reserved

    assert reserve.id.startswith("RSV-")
    assert reserve.status == ReserveStatus.open
    assert reserve.items[0].unit_price == Decimal("50.00")
    assert reserve.total_amount == Decimal("500.00")
    assert not is_expired(reserve)

    db.refresh(product)
    assert product.stock_quantity == 20
    assert db.query(CustomerTransaction).filter(CustomerTransaction.kind != TransactionKind.opening).count() == 0


def test_partial_conversion(db, reserves, reserved):
    customer, product, reserve = reserved
    item = reserve.items[0]

    result = reserves.convert_reserve(reserve.id, taken={item.id: 7}, tax_rate=0)

    assert result.split.total_taken == Decimal("350")
    assert result.split.total_returned == Decimal("150")
    sale = result.sale
    assert sale.total_amount == Decimal("350.00")
    assert sale.reserve_id == reserve.id
    assert sale.items[0].quantity == 7

    db.refresh(reserve)
    assert reserve.status == ReserveStatus.completed
    assert reserve.sale_id == sale.id
    assert reserve.converted_at is not None

    db.refresh(product)
    assert product.stock_quantity == 13
    movement = db.query(StockMovement).filter_by(type=StockMovementType.reserve_out).one()
    assert movement.change_qty == -7

    entry = db.query(CustomerTransaction).filter_by(kind=TransactionKind.reserve).one()
    assert entry.ref_type == "reserve"
    assert entry.ref_id == reserve.id
    assert entry.balance_after == Decimal("350.00")


def test_conversion_splits_default_tax(reserves, reserved):
    customer, product, reserve = reserved

    sale = reserves.convert_reserve(reserve.id, taken={reserve.items[0].id: 7}).sale

    assert sale.total_amount == Decimal("350.00")
    assert sale.subtotal == Decimal("291.67")
    assert sale.tax == Decimal("58.33")


def test_untouched_lines_are_taken_in_full(reserves, reserved):
    customer, product, reserve = reserved

    result = reserves.convert_reserve(reserve.id, tax_rate=0)

    assert result.split.total_taken == Decimal("500")
    assert result.split.total_returned == Decimal("0")


def test_conversion_with_payment(db, reserves, reserved):
    customer, product, reserve = reserved

    result = reserves.convert_reserve(
        reserve.id, taken={reserve.items[0].id: 7}, tax_rate=0, payment_amount=Decimal("100"),
    )

    assert result.payment is not None
    payment = db.query(Payment).one()
    assert payment.reserve_id == reserve.id
    assert payment.sale_id == result.sale.id
    assert result.sale.paid_amount == Decimal("100.00")
    assert result.sale.payment_status == SalePaymentStatus.partially_paid

    kinds = [e.kind for e in db.query(CustomerTransaction).order_by(CustomerTransaction.id).all()]
    assert kinds == [TransactionKind.opening, TransactionKind.reserve, TransactionKind.payment]
    db.refresh(customer)
    assert customer.current_balance == Decimal("250.00")


def test_payment_above_converted_total_rejected(db, reserves, reserved):
    customer, product, reserve = reserved

    with pytest.raises(ValueError):
        reserves.convert_reserve(reserve.id, taken={reserve.items[0].id: 1}, tax_rate=0, payment_amount=Decimal("60"))
    db.refresh(reserve)
    assert reserve.status == ReserveStatus.open


def test_walk_in_reserve_conversion_is_paid(db, reserves, make_product):
    product = make_product(sale_price="25", stock_quantity=5)
    reserve = reserves.create_reserve([ReserveRequestLine(product.id, 2)])

    result = reserves.convert_reserve(reserve.id)

    assert result.sale.customer_id is None
    assert result.sale.payment_status == SalePaymentStatus.paid
    assert db.query(CustomerTransaction).count() == 0


def test_foreign_reserve_posts_in_home_currency(db, reserves, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="6900", stock_quantity=5)
    reserve = reserves.create_reserve(
        [ReserveRequestLine(product.id, 1)], customer_id=customer.id, currency=Currency.USD,
    )
    assert reserve.items[0].unit_price == Decimal("200.00")

    reserves.convert_reserve(reserve.id, tax_rate=0)

    entry = db.query(CustomerTransaction).filter_by(kind=TransactionKind.reserve).one()
    assert entry.amount == Decimal("200.00")
    assert entry.amount_home == Decimal("6900.00")


def test_cannot_convert_twice(reserves, reserved):
    customer, product, reserve = reserved
    reserves.convert_reserve(reserve.id)

    with pytest.raises(ValueError, match="only open reserves"):
        reserves.convert_reserve(reserve.id)


def test_nothing_taken_rejected(db, reserves, reserved):
    customer, product, reserve = reserved

    with pytest.raises(ValueError, match="Nothing taken"):
        reserves.convert_reserve(reserve.id, taken={reserve.items[0].id: 0})
    assert db.query(Sale).count() == 0


def test_unknown_item_rejected(reserves, reserved):
    customer, product, reserve = reserved

    with pytest.raises(ValueError, match="Unknown reserve item"):
        reserves.convert_reserve(reserve.id, taken={999999: 1})


def test_insufficient_stock_keeps_reserve_open(db, reserves, reserved):
    customer, product, reserve = reserved
    product.stock_quantity = 3
    db.commit()

    with pytest.raises(ValueError, match="Insufficient stock"):
        reserves.convert_reserve(reserve.id)

    db.refresh(reserve)
    db.refresh(customer)
    assert reserve.status == ReserveStatus.open
    assert customer.current_balance == Decimal("0.00")
    assert db.query(Sale).count() == 0


def test_cancel(reserves, reserved):
    customer, product, reserve = reserved

    cancelled = reserves.cancel_reserve(reserve.id)
    assert cancelled.status == ReserveStatus.cancelled

    with pytest.raises(ValueError):
        reserves.cancel_reserve(reserve.id)
    with pytest.raises(ValueError):
        reserves.convert_reserve(reserve.id)


def test_expired_reserve_cannot_convert_and_gets_expired(db, reserves, reserved):
    customer, product, reserve = reserved
    reserve.expires_at = utc_now() - timedelta(hours=1)
    db.commit()

    with pytest.raises(ValueError, match="expired"):
        reserves.convert_reserve(reserve.id)

    expired = reserves.expire_overdue()
    assert [r.id for r in expired] == [reserve.id]
    db.refresh(reserve)
    assert reserve.status == ReserveStatus.expired
    assert reserves.expire_overdue() == []


def test_expiry_must_be_in_future(reserves, make_product):
    product = make_product()

    with pytest.raises(ValueError, match="future"):
        reserves.create_reserve([ReserveRequestLine(product.id, 1)], expires_at=utc_now() - timedelta(days=1))


def test_invalid_reserve_lines(reserves, make_product):
    product = make_product()

    with pytest.raises(ValueError):
        reserves.create_reserve([])
    with pytest.raises(ValueError):
        reserves.create_reserve([ReserveRequestLine(product.id, 0)])


def test_list_reserves_by_status(reserves, reserved, make_product):
    customer, product, reserve = reserved
    other = reserves.create_reserve([ReserveRequestLine(make_product().id, 1)])
    reserves.cancel_reserve(other.id)

    rows, total = reserves.list_reserves(status=ReserveStatus.open)
    assert total == 1
    assert rows[0].id == reserve.id

    rows, total = reserves.list_reserves(customer_id=customer.id)
    assert [r.id for r in rows] == [reserve.id]
