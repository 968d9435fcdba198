from decimal import Decimal

import pytest

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import Currency, SalePaymentStatus, TransactionKind
from retail_ledger.models.product import StockMovement, StockMovementType
from retail_ledger.services.return_service import ReturnService
from retail_ledger.services.sale_service import SaleLine, SaleService


@pytest.fixture
def returns(db, actor):
    return ReturnService(db, actor)


@pytest.fixture
def sell(db, actor, rates):
    def _sell(lines, **kwargs):
        return SaleService(db, actor, rates).create_sale(lines, **kwargs).sale
    return _sell


def test_return_restocks_and_refunds_customer(db, returns, sell, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="120", stock_quantity=10)
    sale = sell([SaleLine(product.id, 3)], customer_id=customer.id, tax_rate=Decimal("20"))

    result = returns.create_return(sale.id, {product.id: 1}, reason="Damaged")

    assert result.refund_total == Decimal("120.00")
    assert len(result.returns) == 1
    assert result.returns[0].refund_amount == Decimal("120.00")
    assert result.sale.returned_amount == Decimal("120.00")

    db.refresh(product)
    assert product.stock_quantity == 8
    movement = db.query(StockMovement).filter_by(type=StockMovementType.return_).one()
    assert movement.change_qty == 1
    assert movement.ref_id == result.returns[0].id

    refund = db.query(CustomerTransaction).filter_by(kind=TransactionKind.refund).one()
    assert refund.ref_type == "sale"
    assert refund.ref_id == sale.id
    assert refund.amount_home == Decimal("120.00")
    assert refund.balance_after == Decimal("240.00")
    db.refresh(customer)
    assert customer.current_balance == Decimal("240.00")


def test_refund_includes_tax_for_tax_exclusive_sale(returns, sell, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="100")
    sale = sell([SaleLine(product.id, 2)], customer_id=customer.id, tax_rate=Decimal("20"), tax_included=False)
    assert sale.total_amount == Decimal("240.00")

    result = returns.create_return(sale.id, {product.id: 1}, reason="Wrong size")

    assert result.refund_total == Decimal("120.00")


def test_full_multi_line_return_refunds_exactly_the_sale_total(db, returns, sell, make_customer, make_product):
    customer = make_customer()
    first = make_product(sale_price="10.05")
    second = make_product(sale_price="10.05")
    sale = sell(
        [SaleLine(first.id, 1), SaleLine(second.id, 1)], customer_id=customer.id,
        tax_rate=Decimal("10"), tax_included=False,
    )
    assert sale.total_amount == Decimal("22.11")

    result = returns.create_return(sale.id, {first.id: 1, second.id: 1}, reason="Order cancelled")

    assert result.refund_total == Decimal("22.11")
    assert [r.refund_amount for r in result.returns] == [Decimal("11.06"), Decimal("11.05")]
    assert result.sale.returned_amount == result.sale.total_amount
    db.refresh(customer)
    assert customer.current_balance == Decimal("0.00")


def test_returns_in_steps_never_exceed_the_sale_total(db, returns, sell, make_customer, make_product):
    customer = make_customer()
    first = make_product(sale_price="10.05")
    second = make_product(sale_price="10.05")
    sale = sell(
        [SaleLine(first.id, 1), SaleLine(second.id, 1)], customer_id=customer.id,
        tax_rate=Decimal("10"), tax_included=False,
    )

    assert returns.create_return(sale.id, {first.id: 1}, reason="Damaged").refund_total == Decimal("11.06")
    assert returns.create_return(sale.id, {second.id: 1}, reason="Damaged").refund_total == Decimal("11.05")

    db.refresh(sale)
    assert sale.returned_amount == Decimal("22.11")
    refunds = db.query(CustomerTransaction).filter_by(kind=TransactionKind.refund).all()
    assert {r.ref_id for r in refunds} == {sale.id}
    db.refresh(customer)
    assert customer.current_balance == Decimal("0.00")


def test_foreign_sale_refund_uses_sale_rate(db, returns, sell, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="6900")
    sale = sell(
        [SaleLine(product.id, 2)], customer_id=customer.id, currency=Currency.USD,
        fx_rate=Decimal("34.50"), tax_rate=0,
    )

    returns.create_return(sale.id, {product.id: 1}, reason="Changed mind")

    refund = db.query(CustomerTransaction).filter_by(kind=TransactionKind.refund).one()
    assert refund.amount == Decimal("200.00")
    assert refund.fx_rate_to_home == Decimal("34.50")
    assert refund.amount_home == Decimal("6900.00")
    assert refund.balance_after == Decimal("6900.00")


def test_cannot_return_more_than_sold(returns, sell, make_product):
    product = make_product(sale_price="10")
    sale = sell([SaleLine(product.id, 3)])

    with pytest.raises(ValueError, match="only 3 left"):
        returns.create_return(sale.id, {product.id: 4}, reason="Too many")

    returns.create_return(sale.id, {product.id: 2}, reason="First")
    with pytest.raises(ValueError, match="only 1 left"):
        returns.create_return(sale.id, {product.id: 2}, reason="Second")


def test_walk_in_return_has_no_ledger_effect(db, returns, sell, make_product):
    product = make_product(sale_price="50", stock_quantity=5)
    sale = sell([SaleLine(product.id, 2)])

    returns.create_return(sale.id, {product.id: 2}, reason="Unopened")

    assert db.query(CustomerTransaction).count() == 0
    db.refresh(product)
    assert product.stock_quantity == 5


def test_return_settles_partially_paid_sale(returns, sell, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="120")
    sale = sell([SaleLine(product.id, 3)], customer_id=customer.id, paid_amount=Decimal("240"))
    assert sale.payment_status == SalePaymentStatus.partially_paid

    result = returns.create_return(sale.id, {product.id: 1}, reason="Damaged")

    assert result.sale.payment_status == SalePaymentStatus.paid


@pytest.mark.parametrize("quantities, reason", [
    ({}, "Damaged"),
    ({"PRD-OTHER": 1}, "Damaged"),
    (None, "   "),
])
def test_invalid_returns_rejected(returns, sell, make_product, quantities, reason):
    product = make_product(sale_price="10")
    sale = sell([SaleLine(product.id, 1)])
    if quantities is None:
        quantities = {product.id: 1}

    with pytest.raises(ValueError):
        returns.create_return(sale.id, quantities, reason=reason)


def test_zero_quantity_rejected(returns, sell, make_product):
    product = make_product(sale_price="10")
    sale = sell([SaleLine(product.id, 1)])

    with pytest.raises(ValueError, match="positive integer"):
        returns.create_return(sale.id, {product.id: 0}, reason="Nothing")


def test_unknown_sale(returns):
    with pytest.raises(RecordNotFoundError):
        returns.create_return("SALE-NOPE", {"PRD-X": 1}, reason="Damaged")
