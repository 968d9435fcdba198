"""
Sale Service
Creates sales and posts them to the customer ledger.

Flow for a customer sale (one transaction, see posting_unit):
1. sale + items written, stock decremented with `sale` movements
2. ledger entry (+ total, at the sale's fx snapshot)
3. customer balance updated (optimistic lock)
4. optional payment taken at the till posts a second (-) entry

Walk-in sales (no customer) are paid in full and never reach a ledger.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, joinedload

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.core.config import settings
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.customer import Customer
from retail_ledger.models.enums import Currency, PaymentMethod, SalePaymentStatus
from retail_ledger.models.payment import Payment
from retail_ledger.models.product import StockMovementType
from retail_ledger.models.sale import Sale, SaleItem
from retail_ledger.services.customer_service import require_customer
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.ledger_engine import (
    CreditLimitWarning,
    HOME_CURRENCY,
    PostingEvent,
    check_credit_limit,
    derive_payment_status,
    from_home,
    money,
    non_negative,
    split_tax,
    to_home,
)
from retail_ledger.services.posting_service import PostingAudit, PostingService, posting_unit
from retail_ledger.services.product_service import move_stock, require_product
from retail_ledger.utils.dates import day_end_exclusive, day_start, today


@dataclass
class SaleLine:
    product_id: str
    quantity: int
    unit_price: Optional[Decimal] = None


@dataclass
class SaleResult:
    sale: Sale
    credit_warning: Optional[CreditLimitWarning] = None


def credit_advisory(customer: Optional[Customer], incoming_amount_home) -> Optional[CreditLimitWarning]:
    """Never blocks a sale; a failed check is logged and treated as no warning."""
    if customer is None:
        return None
    try:
        warning = check_credit_limit(customer.current_balance, customer.credit_limit, incoming_amount_home)
    except (ValueError, ArithmeticError) as e:
        logger.warning(f"Credit check skipped for customer {customer.id}: {e}")
        return None
    if warning:
        logger.warning(f"Customer {customer.id}: {warning.message}")
    return warning


def refresh_payment_status(sale: Sale, on_date: Optional[date] = None) -> SalePaymentStatus:
    """Status against what is still owed after returns."""
    payable = money(sale.total_amount) - money(sale.returned_amount or 0)
    sale.payment_status = derive_payment_status(payable, sale.paid_amount or 0, sale.due_date, on_date or today())
    return sale.payment_status


def apply_sale_payment(sale: Sale, amount: Decimal):
    outstanding = money(sale.total_amount) - money(sale.returned_amount or 0) - money(sale.paid_amount or 0)
    if amount > outstanding:
        raise ValueError(f"Payment {amount} exceeds the open amount {outstanding} on sale {sale.id}")
    sale.paid_amount = money((sale.paid_amount or 0) + amount)
    refresh_payment_status(sale)


class SaleService:
    def __init__(self, db: Session, actor: ActorContext, rates: ExchangeRateService):
        self.db = db
        self.actor = actor
        self.rates = rates

    # ==================== QUERIES ====================

    def get_sale(self, sale_id: str) -> Sale:
        sale = (
            self.db.query(Sale)
            .options(joinedload(Sale.items), joinedload(Sale.returns))
            .filter(Sale.id == sale_id)
            .first()
        )
        if not sale:
            raise RecordNotFoundError("Sale", sale_id)
        return sale

    def list_sales(
        self,
        skip: int = 0,
        limit: int = 50,
        customer_id: Optional[str] = None,
        payment_status: Optional[SalePaymentStatus] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[List[Sale], int]:
        query = self.db.query(Sale)
        if customer_id:
            query = query.filter(Sale.customer_id == customer_id)
        if payment_status:
            query = query.filter(Sale.payment_status == payment_status)
        if start_date:
            query = query.filter(Sale.created_at >= day_start(start_date))
        if end_date:
            query = query.filter(Sale.created_at < day_end_exclusive(end_date))

        total = query.count()
        sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).offset(skip).limit(limit).all()
        return sales, total

    # ==================== CREATE ====================

    def _build_items(self, lines: Sequence[SaleLine], currency: Currency, fx_rate: Decimal):
        if not lines:
            raise ValueError("A sale needs at least one item")

        items = []
        gross = Decimal("0")
        for line in lines:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                raise ValueError("Quantity must be a positive integer")
            product = require_product(self.db, line.product_id)
            if line.unit_price is not None:
                unit_price = money(non_negative(line.unit_price, "unit_price"))
            elif currency == HOME_CURRENCY:
                unit_price = money(product.sale_price)
            else:
                unit_price = from_home(product.sale_price, fx_rate)

            subtotal = money(unit_price * line.quantity)
            gross += subtotal
            items.append((product, SaleItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price=unit_price,
                subtotal=subtotal,
            )))
        return items, gross

    def create_sale(
        self,
        lines: Sequence[SaleLine],
        customer_id: Optional[str] = None,
        currency: Currency = Currency.TRY,
        fx_rate=None,
        tax_rate=None,
        tax_included: bool = True,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        paid_amount=None,
        due_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> SaleResult:
        currency = Currency(currency)
        rate = self.rates.resolve_rate(currency, fx_rate)
        tax_rate = settings.DEFAULT_TAX_RATE if tax_rate is None else non_negative(tax_rate, "tax_rate")
        customer = require_customer(self.db, customer_id) if customer_id else None

        items, gross = self._build_items(lines, currency, rate)
        breakdown = split_tax(gross, tax_rate, tax_included).rounded()

        if customer is None:
            paid = breakdown.total
        else:
            paid = money(non_negative(paid_amount, "paid_amount")) if paid_amount is not None else Decimal("0.00")
            if paid > breakdown.total:
                raise ValueError(f"Paid amount {paid} exceeds sale total {breakdown.total}")

        warning = credit_advisory(customer, to_home(breakdown.total, rate))

        sale = Sale(
            customer_id=customer.id if customer else None,
            subtotal=breakdown.subtotal,
            tax=breakdown.tax,
            total_amount=breakdown.total,
            tax_rate=tax_rate,
            tax_included=tax_included,
            currency=currency,
            fx_rate=rate,
            payment_method=PaymentMethod(payment_method),
            paid_amount=Decimal("0.00"),
            returned_amount=Decimal("0.00"),
            due_date=due_date,
            notes=notes,
            created_by=self.actor.actor_id,
        )

        audit = PostingAudit(
            operation="sale",
            customer_id=sale.customer_id,
            amount=breakdown.total,
            currency=currency.value,
        )
        with posting_unit(self.db, audit, self.actor):
            self.db.add(sale)
            for product, item in items:
                sale.items.append(item)
            self.db.flush()
            audit.ref_id = sale.id

            for product, item in items:
                move_stock(
                    self.db, product, -item.quantity, StockMovementType.sale, self.actor,
                    ref_type="sale", ref_id=sale.id, unit_cost=item.unit_price, fx_rate=rate,
                )

            if customer is None:
                sale.paid_amount = paid
                refresh_payment_status(sale)
            else:
                posting = PostingService(self.db, self.actor)
                posting.post(
                    customer, PostingEvent.sale, sale.total_amount, currency, rate,
                    ref_type="sale", ref_id=sale.id, note=notes,
                )
                if paid > 0:
                    self._take_payment(posting, customer, sale, paid, PaymentMethod(payment_method))
                refresh_payment_status(sale)
            self.db.flush()

        self.db.refresh(sale)
        logger.info(
            f"Sale {sale.id} created: {sale.total_amount} {currency.value} "
            f"for {'customer ' + sale.customer_id if sale.customer_id else 'walk-in'}"
        )
        return SaleResult(sale=sale, credit_warning=warning)

    def _take_payment(self, posting: PostingService, customer: Customer, sale: Sale, amount: Decimal,
                      payment_method: PaymentMethod) -> Payment:
        payment = Payment(
            customer_id=customer.id,
            sale_id=sale.id,
            reserve_id=sale.reserve_id,
            amount=amount,
            currency=sale.currency,
            fx_rate=sale.fx_rate,
            payment_method=payment_method,
            notes=f"Payment at sale {sale.id}",
            created_by=self.actor.actor_id,
        )
        self.db.add(payment)
        self.db.flush()
        posting.post(
            customer, PostingEvent.payment, amount, sale.currency, sale.fx_rate,
            ref_type="payment", ref_id=payment.id, note=payment.notes,
        )
        apply_sale_payment(sale, amount)
        return payment
