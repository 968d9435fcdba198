from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from retail_ledger.common.exceptions import PostingFailedError, RecordNotFoundError
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import Currency, PaymentMethod, SalePaymentStatus, TransactionKind
from retail_ledger.models.payment import Payment
from retail_ledger.models.posting_failure import PostingFailure
from retail_ledger.services.payment_service import PaymentService
from retail_ledger.services.posting_service import PostingService
from retail_ledger.services.sale_service import SaleLine, SaleService


@pytest.fixture
def payments(db, actor, rates):
    return PaymentService(db, actor, rates)


def test_payment_reduces_balance(db, payments, make_customer):
    customer = make_customer(opening_balance="7900")

    result = payments.record_payment(customer.id, Decimal("500"), payment_method=PaymentMethod.BANK_TRANSFER)

    assert result.payment.id.startswith("PAY-")
    assert result.payment.created_by == "tester"
    assert result.entry.kind == TransactionKind.payment
    assert result.entry.ref_id == result.payment.id
    assert result.entry.balance_after == Decimal("7400.00")
    db.refresh(customer)
    assert customer.current_balance == Decimal("7400.00")


def test_foreign_payment_converted_at_current_rate(payments, make_customer):
    customer = make_customer(opening_balance="1000")

    result = payments.record_payment(customer.id, Decimal("10"), currency=Currency.USD)

    assert result.payment.fx_rate == Decimal("34.50")
    assert result.entry.amount_home == Decimal("345.00")
    assert result.entry.balance_after == Decimal("655.00")


def test_explicit_rate_used_for_unlinked_payment(payments, make_customer):
    customer = make_customer(opening_balance="1000")

    result = payments.record_payment(customer.id, Decimal("10"), currency=Currency.EUR, fx_rate=Decimal("40"))

    assert result.entry.amount_home == Decimal("400.00")


@pytest.mark.parametrize("amount", [0, Decimal("-5"), "abc"])
def test_invalid_amount_rejected(db, payments, make_customer, amount):
    customer = make_customer(opening_balance="100")

    with pytest.raises(ValueError):
        payments.record_payment(customer.id, amount)
    assert db.query(Payment).count() == 0


def test_unknown_customer(payments):
    with pytest.raises(RecordNotFoundError):
        payments.record_payment("CUS-NOPE", Decimal("10"))


def test_payment_against_sale_uses_sale_rate(db, actor, rates, payments, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="6900")
    sale = SaleService(db, actor, rates).create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, currency=Currency.USD,
        fx_rate=Decimal("34.50"), tax_rate=0,
    ).sale

    result = payments.record_payment(
        customer.id, Decimal("50"), currency=Currency.USD, fx_rate=Decimal("34.5"), sale_id=sale.id,
    )

    assert result.payment.fx_rate == Decimal("34.50")
    assert result.entry.amount_home == Decimal("1725.00")
    db.refresh(sale)
    assert sale.paid_amount == Decimal("50.00")
    assert sale.payment_status == SalePaymentStatus.partially_paid

    payments.record_payment(customer.id, Decimal("150"), currency=Currency.USD, sale_id=sale.id)
    db.refresh(sale)
    assert sale.payment_status == SalePaymentStatus.paid


def test_conflicting_rate_on_sale_payment_rejected(db, actor, rates, payments, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="6900")
    sale = SaleService(db, actor, rates).create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, currency=Currency.USD,
        fx_rate=Decimal("34.50"), tax_rate=0,
    ).sale

    with pytest.raises(ValueError, match="settle at its rate"):
        payments.record_payment(
            customer.id, Decimal("50"), currency=Currency.USD, fx_rate=Decimal("99"), sale_id=sale.id,
        )

    assert db.query(Payment).count() == 0
    db.refresh(sale)
    assert sale.paid_amount == Decimal("0.00")


def test_payment_currency_must_match_sale(db, actor, rates, payments, make_customer, make_product):
    customer = make_customer()
    product = make_product(sale_price="6900")
    sale = SaleService(db, actor, rates).create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, currency=Currency.USD, tax_rate=0,
    ).sale

    with pytest.raises(ValueError, match="does not match"):
        payments.record_payment(customer.id, Decimal("50"), currency=Currency.TRY, sale_id=sale.id)


def test_overpaying_a_sale_rolls_back(db, actor, rates, payments, make_customer, make_product):
    customer = make_customer(opening_balance="0")
    product = make_product(sale_price="100")
    sale = SaleService(db, actor, rates).create_sale(
        [SaleLine(product.id, 1)], customer_id=customer.id, tax_rate=0,
    ).sale

    with pytest.raises(ValueError, match="exceeds the open amount"):
        payments.record_payment(customer.id, Decimal("150"), sale_id=sale.id)

    assert db.query(Payment).count() == 0
    db.refresh(customer)
    assert customer.current_balance == Decimal("100.00")


def test_sale_of_another_customer_rejected(db, actor, rates, payments, make_customer, make_product):
    owner = make_customer(name="Owner")
    other = make_customer(name="Other")
    product = make_product(sale_price="100")
    sale = SaleService(db, actor, rates).create_sale([SaleLine(product.id, 1)], customer_id=owner.id).sale

    with pytest.raises(ValueError, match="does not belong"):
        payments.record_payment(other.id, Decimal("10"), sale_id=sale.id)


def test_store_failure_rolls_back_and_is_recorded(db, payments, make_customer, monkeypatch):
    customer = make_customer(opening_balance="1000")

    def failing_post(self, *args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(PostingService, "post", failing_post)

    with pytest.raises(PostingFailedError):
        payments.record_payment(customer.id, Decimal("500"))

    assert db.query(Payment).count() == 0
    assert db.query(CustomerTransaction).filter_by(kind=TransactionKind.payment).count() == 0
    failure = db.query(PostingFailure).one()
    assert failure.operation == "payment"
    assert failure.customer_id == customer.id
    assert failure.actor_id == "tester"
    assert failure.amount == Decimal("500.00")
    assert "disk I/O error" in failure.error
    db.refresh(customer)
    assert customer.current_balance == Decimal("1000.00")


def test_list_payments(payments, make_customer):
    customer = make_customer(opening_balance="100")
    payments.record_payment(customer.id, Decimal("10"))
    payments.record_payment(customer.id, Decimal("20"))

    rows, total = payments.list_payments(customer.id)

    assert total == 2
    assert sorted(p.amount for p in rows) == [Decimal("10.00"), Decimal("20.00")]
