from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import Currency, PaymentMethod
from retail_ledger.models.payment import Payment
from retail_ledger.models.sale import Sale
from retail_ledger.services.customer_service import require_customer
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.ledger_engine import PostingEvent, money, to_decimal
from retail_ledger.services.posting_service import PostingAudit, PostingService, posting_unit
from retail_ledger.services.sale_service import apply_sale_payment


@dataclass
class PaymentResult:
    payment: Payment
    entry: CustomerTransaction


class PaymentService:
    """Customer payments: Payment row + (-) ledger entry + balance update, atomically."""

    def __init__(self, db: Session, actor: ActorContext, rates: ExchangeRateService):
        self.db = db
        self.actor = actor
        self.rates = rates

    def list_payments(self, customer_id: str, skip: int = 0, limit: int = 50) -> Tuple[List[Payment], int]:
        require_customer(self.db, customer_id)
        query = self.db.query(Payment).filter(Payment.customer_id == customer_id)
        total = query.count()
        payments = query.order_by(Payment.paid_at.desc()).offset(skip).limit(limit).all()
        return payments, total

    def record_payment(
        self,
        customer_id: str,
        amount,
        currency: Currency = Currency.TRY,
        fx_rate=None,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        sale_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PaymentResult:
        amount = to_decimal(amount, "amount")
        if amount <= 0:
            raise ValueError("Payment amount must be positive")
        amount = money(amount)

        currency = Currency(currency)
        customer = require_customer(self.db, customer_id)

        sale = None
        if sale_id:
            sale = self.db.query(Sale).filter(Sale.id == sale_id).first()
            if not sale:
                raise RecordNotFoundError("Sale", sale_id)
            if sale.customer_id != customer.id:
                raise ValueError(f"Sale {sale_id} does not belong to customer {customer.id}")
            if Currency(sale.currency) != currency:
                raise ValueError(
                    f"Payment currency {currency.value} does not match sale currency {Currency(sale.currency).value}"
                )

        if sale is not None:
            # Payments against a sale settle at the sale's own rate snapshot
            rate = sale.fx_rate
            if fx_rate is not None and to_decimal(fx_rate, "fx_rate") != to_decimal(rate, "fx_rate"):
                raise ValueError(
                    f"Payments against sale {sale.id} settle at its rate {rate}; got fx_rate {fx_rate}"
                )
        else:
            rate = self.rates.resolve_rate(currency, fx_rate)

        payment = Payment(
            customer_id=customer.id,
            sale_id=sale.id if sale else None,
            amount=amount,
            currency=currency,
            fx_rate=rate,
            payment_method=PaymentMethod(payment_method),
            notes=notes,
            created_by=self.actor.actor_id,
        )

        audit = PostingAudit(operation="payment", customer_id=customer.id, amount=amount, currency=currency.value)
        with posting_unit(self.db, audit, self.actor):
            self.db.add(payment)
            self.db.flush()
            audit.ref_id = payment.id

            entry = PostingService(self.db, self.actor).post(
                customer, PostingEvent.payment, amount, currency, rate,
                ref_type="payment", ref_id=payment.id, note=notes,
            )
            if sale is not None:
                apply_sale_payment(sale, amount)
                self.db.flush()

        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} of {amount} {currency.value} recorded for customer {customer.id}")
        return PaymentResult(payment=payment, entry=entry)
