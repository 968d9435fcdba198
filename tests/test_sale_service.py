from datetime import timedelta
from decimal import Decimal

import pytest

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import Currency, SalePaymentStatus, TransactionKind
from retail_ledger.models.payment import Payment
from retail_ledger.models.product import StockMovement, StockMovementType
from retail_ledger.models.sale import Sale
from retail_ledger.services.sale_service import SaleLine, SaleService
from retail_ledger.utils.dates import today


@pytest.fixture
def sales(db, actor, rates):
    return SaleService(db, actor, rates)


def test_walk_in_sale_is_paid_and_not_posted(db, sales, make_product):
    product = make_product(sale_price="120", stock_quantity=10)

    result = sales.create_sale([SaleLine(product.id, 2)])
    sale = result.sale

    assert sale.customer_id is None
    assert sale.total_amount == Decimal("240.00")
    assert sale.paid_amount == Decimal("240.00")
    assert sale.payment_status == SalePaymentStatus.paid
    assert result.credit_warning is None
    assert db.query(CustomerTransaction).count() == 0

    db.refresh(product)
    assert product.stock_quantity == 8
    movement = db.query(StockMovement).filter_by(ref_id=sale.id).one()
    assert movement.type == StockMovementType.sale
    assert movement.change_qty == -2


def test_tax_included_sale_splits_total(sales, make_product):
    product = make_product(sale_price="1200")

    sale = sales.create_sale([SaleLine(product.id, 1)], tax_rate=Decimal("20")).sale

    assert sale.subtotal == Decimal("1000.00")
    assert sale.tax == Decimal("200.00")
    assert sale.total_amount == Decimal("1200.00")


def test_tax_excluded_sale_adds_tax(sales, make_product):
    product = make_product(sale_price="500")

    sale = sales.create_sale([SaleLine(product.id, 2)], tax_rate=Decimal("20"), tax_included=False).sale

    assert sale.subtotal == Decimal("1000.00")
    assert sale.tax == Decimal("200.00")
    assert sale.total_amount == Decimal("1200.00")


def test_customer_usd_sale_posts_at_rate_snapshot(db, sales, make_customer, make_product):
    customer = make_customer(opening_balance="1000")
    product = make_product(sale_price="6900")

    sale = sales.create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, currency=Currency.USD,
        fx_rate=Decimal("34.50"), tax_rate=0,
    ).sale

    assert sale.total_amount == Decimal("200.00")
    assert sale.fx_rate == Decimal("34.50")
    assert sale.payment_status == SalePaymentStatus.pending

    entry = db.query(CustomerTransaction).filter_by(kind=TransactionKind.sale).one()
    assert entry.ref_type == "sale"
    assert entry.ref_id == sale.id
    assert entry.currency == Currency.USD
    assert entry.fx_rate_to_home == Decimal("34.50")
    assert entry.amount_home == Decimal("6900.00")
    assert entry.balance_after == Decimal("7900.00")

    db.refresh(customer)
    assert customer.current_balance == Decimal("7900.00")
    assert customer.version_id == 2


def test_foreign_sale_uses_current_rate_when_none_given(sales, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="3760")

    sale = sales.create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, currency=Currency.EUR, tax_rate=0,
    ).sale

    assert sale.fx_rate == Decimal("37.60")
    assert sale.total_amount == Decimal("100.00")


def test_explicit_unit_price_wins(sales, make_product):
    product = make_product(sale_price="100")

    sale = sales.create_sale([SaleLine(product.id, 3, Decimal("80"))], tax_rate=0).sale

    assert sale.items[0].unit_price == Decimal("80.00")
    assert sale.total_amount == Decimal("240.00")


def test_credit_limit_warns_but_saves(db, sales, make_customer, make_product):
    customer = make_customer(opening_balance="800", credit_limit=Decimal("1000"))
    product = make_product(sale_price="300")

    result = sales.create_sale([SaleLine(product.id, 1)], customer_id=customer.id)

    assert result.credit_warning is not None
    assert result.credit_warning.overage == Decimal("100.00")
    db.refresh(customer)
    assert customer.current_balance == Decimal("1100.00")


def test_payment_at_till_posts_second_entry(db, sales, make_customer, make_product):
    customer = make_customer(opening_balance="1000")
    product = make_product(sale_price="1200")

    sale = sales.create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, paid_amount=Decimal("500"),
    ).sale

    assert sale.paid_amount == Decimal("500.00")
    assert sale.payment_status == SalePaymentStatus.partially_paid

    kinds = [e.kind for e in db.query(CustomerTransaction).order_by(CustomerTransaction.id).all()]
    assert kinds == [TransactionKind.opening, TransactionKind.sale, TransactionKind.payment]
    payment = db.query(Payment).one()
    assert payment.sale_id == sale.id
    db.refresh(customer)
    assert customer.current_balance == Decimal("1700.00")


def test_paid_amount_above_total_rejected(sales, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="100")

    with pytest.raises(ValueError):
        sales.create_sale([SaleLine(product.id, 1)], customer_id=customer.id, paid_amount=Decimal("101"))


def test_overdue_when_due_date_passed(sales, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="100")

    sale = sales.create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, due_date=today() - timedelta(days=1),
    ).sale

    assert sale.payment_status == SalePaymentStatus.overdue


def test_insufficient_stock_rolls_back_everything(db, sales, make_customer, make_product):
    customer = make_customer(opening_balance="100")
    plenty = make_product(sale_price="10", stock_quantity=10)
    scarce = make_product(sale_price="10", stock_quantity=1)

    with pytest.raises(ValueError, match="Insufficient stock"):
        sales.create_sale([SaleLine(plenty.id, 2), SaleLine(scarce.id, 2)], customer_id=customer.id)

    assert db.query(Sale).count() == 0
    assert db.query(CustomerTransaction).filter_by(kind=TransactionKind.sale).count() == 0
    db.refresh(plenty)
    db.refresh(customer)
    assert plenty.stock_quantity == 10
    assert customer.current_balance == Decimal("100.00")


@pytest.mark.parametrize("quantity", [0, -1, 1.5])
def test_invalid_quantity_rejected(sales, make_product, quantity):
    product = make_product()
    with pytest.raises(ValueError):
        sales.create_sale([SaleLine(product.id, quantity)])


def test_empty_sale_rejected(sales):
    with pytest.raises(ValueError):
        sales.create_sale([])


def test_unknown_customer_or_product(sales, make_product):
    product = make_product()
    with pytest.raises(RecordNotFoundError):
        sales.create_sale([SaleLine(product.id, 1)], customer_id="CUS-NOPE")
    with pytest.raises(RecordNotFoundError):
        sales.create_sale([SaleLine("PRD-NOPE", 1)])


def test_list_sales_filters(sales, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="10")
    sales.create_sale([SaleLine(product.id, 1)])
    sales.create_sale([SaleLine(product.id, 1)], customer_id=customer.id)

    rows, total = sales.list_sales(customer_id=customer.id)
    assert total == 1
    assert rows[0].customer_id == customer.id

    rows, total = sales.list_sales(payment_status=SalePaymentStatus.paid)
    assert total == 1
    assert rows[0].customer_id is None

    rows, total = sales.list_sales(start_date=today() - timedelta(days=2))
    assert total == 2


def test_get_sale_not_found(sales):
    with pytest.raises(RecordNotFoundError):
        sales.get_sale("SALE-NOPE")
