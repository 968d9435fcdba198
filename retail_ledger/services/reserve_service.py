"""
Reserve Service

A reserve holds product quantities for a customer at agreed prices. Creating,
cancelling or expiring a reserve never touches stock or the ledger.

Conversion (open, unexpired reserves only) splits each line into taken and
returned quantities:
- taken lines become a sale (tax split at the default rate), stock goes out
  with `reserve_out` movements and the total is posted as a reserve (+) entry
- returned quantities are informational only
- an optional payment made on the spot posts a payment (-) entry right after
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.core.config import settings
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.enums import Currency, PaymentMethod
from retail_ledger.models.payment import Payment
from retail_ledger.models.product import StockMovementType
from retail_ledger.models.reserve import Reserve, ReserveItem, ReserveStatus
from retail_ledger.models.sale import Sale, SaleItem
from retail_ledger.services.customer_service import require_customer
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.ledger_engine import (
    CreditLimitWarning,
    HOME_CURRENCY,
    PostingEvent,
    ReserveLine,
    ReserveSplit,
    from_home,
    money,
    non_negative,
    split_reserve,
    split_tax,
    to_decimal,
    to_home,
)
from retail_ledger.services.posting_service import PostingAudit, PostingService, posting_unit
from retail_ledger.services.product_service import move_stock, require_product
from retail_ledger.services.sale_service import apply_sale_payment, credit_advisory, refresh_payment_status
from retail_ledger.utils.dates import ensure_utc, utc_now


@dataclass
class ReserveRequestLine:
    product_id: str
    qty: int
    unit_price: Optional[Decimal] = None


@dataclass
class ConversionResult:
    reserve: Reserve
    sale: Sale
    split: ReserveSplit
    payment: Optional[Payment] = None
    credit_warning: Optional[CreditLimitWarning] = None


def is_expired(reserve: Reserve, now: Optional[datetime] = None) -> bool:
    expires_at = ensure_utc(reserve.expires_at)
    return expires_at is not None and expires_at < (now or utc_now())


class ReserveService:
    def __init__(self, db: Session, actor: ActorContext, rates: ExchangeRateService):
        self.db = db
        self.actor = actor
        self.rates = rates

    # ==================== QUERIES ====================

    def get_reserve(self, reserve_id: str) -> Reserve:
        reserve = (
            self.db.query(Reserve)
            .options(joinedload(Reserve.items))
            .filter(Reserve.id == reserve_id)
            .first()
        )
        if not reserve:
            raise RecordNotFoundError("Reserve", reserve_id)
        return reserve

    def list_reserves(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[ReserveStatus] = None,
        customer_id: Optional[str] = None,
    ) -> Tuple[List[Reserve], int]:
        query = self.db.query(Reserve)
        if status:
            query = query.filter(Reserve.status == status)
        if customer_id:
            query = query.filter(Reserve.customer_id == customer_id)
        total = query.count()
        reserves = query.order_by(Reserve.created_at.desc(), Reserve.id.desc()).offset(skip).limit(limit).all()
        return reserves, total

    # ==================== LIFECYCLE ====================

    def create_reserve(
        self,
        lines: Sequence[ReserveRequestLine],
        customer_id: Optional[str] = None,
        currency: Currency = Currency.TRY,
        fx_rate=None,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Reserve:
        if not lines:
            raise ValueError("A reserve needs at least one item")

        currency = Currency(currency)
        customer = require_customer(self.db, customer_id) if customer_id else None
        rate = self.rates.resolve_rate(currency, fx_rate)

        expires_at = ensure_utc(expires_at) if expires_at else utc_now() + timedelta(days=settings.RESERVE_EXPIRY_DAYS)
        if expires_at <= utc_now():
            raise ValueError("Reserve expiry must be in the future")

        reserve = Reserve(
            customer_id=customer.id if customer else None,
            currency=currency,
            status=ReserveStatus.open,
            expires_at=expires_at,
            notes=notes,
            created_by=self.actor.actor_id,
        )
        for line in lines:
            if isinstance(line.qty, bool) or not isinstance(line.qty, int) or line.qty <= 0:
                raise ValueError("Reserved quantity must be a positive integer")
            product = require_product(self.db, line.product_id)
            if line.unit_price is not None:
                unit_price = money(non_negative(line.unit_price, "unit_price"))
            elif currency == HOME_CURRENCY:
                unit_price = money(product.sale_price)
            else:
                unit_price = from_home(product.sale_price, rate)
            reserve.items.append(ReserveItem(product_id=product.id, qty_reserved=line.qty, unit_price=unit_price))

        self.db.add(reserve)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Error creating reserve: {str(e)}")
            raise ValueError("Failed to create reserve.")
        self.db.refresh(reserve)
        logger.info(f"Reserve {reserve.id} created with {len(reserve.items)} item(s), expires {expires_at}")
        return reserve

    def cancel_reserve(self, reserve_id: str) -> Reserve:
        reserve = self.get_reserve(reserve_id)
        if reserve.status != ReserveStatus.open:
            raise ValueError(f"Only open reserves can be cancelled (reserve is {reserve.status.value})")
        reserve.status = ReserveStatus.cancelled
        self.db.commit()
        self.db.refresh(reserve)
        logger.info(f"Reserve {reserve.id} cancelled")
        return reserve

    def expire_overdue(self, now: Optional[datetime] = None) -> List[Reserve]:
        """Mark every open reserve past its expiry as expired."""
        now = now or utc_now()
        open_reserves = self.db.query(Reserve).filter(Reserve.status == ReserveStatus.open).all()
        expired = [r for r in open_reserves if is_expired(r, now)]
        for reserve in expired:
            reserve.status = ReserveStatus.expired
        if expired:
            self.db.commit()
            logger.info(f"Expired {len(expired)} reserve(s)")
        return expired

    # ==================== CONVERSION ====================

    def convert_reserve(
        self,
        reserve_id: str,
        taken: Optional[Mapping[int, int]] = None,
        fx_rate=None,
        tax_rate=None,
        tax_included: bool = True,
        payment_amount=None,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None,
    ) -> ConversionResult:
        reserve = self.get_reserve(reserve_id)
        if reserve.status != ReserveStatus.open:
            raise ValueError(f"Reserve {reserve.id} is {reserve.status.value}; only open reserves can be converted")
        if is_expired(reserve):
            raise ValueError(f"Reserve {reserve.id} has expired")

        known_ids = {item.id for item in reserve.items}
        unknown = set((taken or {}).keys()) - known_ids
        if unknown:
            raise ValueError(f"Unknown reserve item(s): {sorted(unknown)}")

        split = split_reserve(
            [ReserveLine(item.id, item.product_id, item.qty_reserved, Decimal(item.unit_price)) for item in reserve.items],
            taken,
        )
        if not split.taken_lines:
            raise ValueError("Nothing taken; cancel the reserve instead")

        currency = Currency(reserve.currency)
        rate = self.rates.resolve_rate(currency, fx_rate)
        tax_rate = settings.DEFAULT_TAX_RATE if tax_rate is None else non_negative(tax_rate, "tax_rate")
        breakdown = split_tax(split.total_taken, tax_rate, tax_included).rounded()
        customer = reserve.customer

        payment_amount = money(to_decimal(payment_amount, "payment_amount")) if payment_amount else Decimal("0.00")
        if payment_amount < 0:
            raise ValueError("payment_amount cannot be negative")
        if payment_amount > breakdown.total:
            raise ValueError(f"Payment {payment_amount} exceeds the converted total {breakdown.total}")

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
            reserve_id=reserve.id,
            notes=notes or f"Converted from reserve {reserve.id}",
            created_by=self.actor.actor_id,
        )
        for line_split in split.taken_lines:
            sale.items.append(SaleItem(
                product_id=line_split.line.product_id,
                quantity=line_split.qty_taken,
                unit_price=money(line_split.line.unit_price),
                subtotal=money(line_split.taken_total),
            ))

        result = ConversionResult(reserve=reserve, sale=sale, split=split, credit_warning=warning)
        audit = PostingAudit(
            operation="reserve_conversion",
            customer_id=sale.customer_id,
            ref_id=reserve.id,
            amount=breakdown.total,
            currency=currency.value,
        )
        with posting_unit(self.db, audit, self.actor):
            self.db.add(sale)
            self.db.flush()

            for line_split in split.taken_lines:
                move_stock(
                    self.db, require_product(self.db, line_split.line.product_id), -line_split.qty_taken,
                    StockMovementType.reserve_out, self.actor,
                    ref_type="reserve", ref_id=reserve.id,
                    unit_cost=money(line_split.line.unit_price), fx_rate=rate,
                )

            if customer is None:
                sale.paid_amount = breakdown.total
            else:
                posting = PostingService(self.db, self.actor)
                posting.post(
                    customer, PostingEvent.reserve_conversion, sale.total_amount, currency, rate,
                    ref_type="reserve", ref_id=reserve.id, note=f"Reserve {reserve.id} -> sale {sale.id}",
                )
                if payment_amount > 0:
                    payment = Payment(
                        customer_id=customer.id,
                        sale_id=sale.id,
                        reserve_id=reserve.id,
                        amount=payment_amount,
                        currency=currency,
                        fx_rate=rate,
                        payment_method=PaymentMethod(payment_method),
                        notes=f"Payment at conversion of reserve {reserve.id}",
                        created_by=self.actor.actor_id,
                    )
                    self.db.add(payment)
                    self.db.flush()
                    posting.post(
                        customer, PostingEvent.payment, payment_amount, currency, rate,
                        ref_type="reserve", ref_id=reserve.id, note=payment.notes,
                    )
                    apply_sale_payment(sale, payment_amount)
                    result.payment = payment

            refresh_payment_status(sale)
            reserve.status = ReserveStatus.completed
            reserve.converted_at = utc_now()
            reserve.sale_id = sale.id
            self.db.flush()

        self.db.refresh(sale)
        logger.info(
            f"Reserve {reserve.id} converted to sale {sale.id}: taken {money(split.total_taken)}, "
            f"returned {money(split.total_returned)} {currency.value}"
        )
        return result
