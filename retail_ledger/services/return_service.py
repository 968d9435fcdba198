"""
Sales Return Service

A return puts goods back on the shelf and, for customer sales, posts a
refund (-) at the sale's original fx snapshot. The refund carries tax the
same way the sale did: for a tax-exclusive sale the customer gets the
line value plus its tax back.

Refunds are worked out on the cumulative returned value of the sale, so the
refunds of a sale add up to exactly its total once everything is back and
never exceed it.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.enums import Currency
from retail_ledger.models.product import StockMovementType
from retail_ledger.models.sale import Sale, SalesReturn
from retail_ledger.services.ledger_engine import ZERO, PostingEvent, money, split_tax
from retail_ledger.services.posting_service import PostingAudit, PostingService, posting_unit
from retail_ledger.services.product_service import move_stock, require_product
from retail_ledger.services.sale_service import refresh_payment_status


@dataclass
class ReturnableLine:
    product_id: str
    sold_qty: int
    returned_qty: int
    sold_value: Decimal

    @property
    def remaining_qty(self) -> int:
        return self.sold_qty - self.returned_qty

    @property
    def unit_price(self) -> Decimal:
        return self.sold_value / self.sold_qty

    def value_of(self, qty: int) -> Decimal:
        # multiply first: exact when qty == sold_qty
        return self.sold_value * qty / self.sold_qty


@dataclass
class ReturnResult:
    sale: Sale
    returns: List[SalesReturn] = field(default_factory=list)
    refund_total: Decimal = Decimal("0.00")


def returnable_lines(sale: Sale) -> Dict[str, ReturnableLine]:
    """Per product: quantity sold, already returned and the value sold."""
    sold_qty = defaultdict(int)
    sold_value = defaultdict(Decimal)
    for item in sale.items:
        sold_qty[item.product_id] += item.quantity
        sold_value[item.product_id] += Decimal(item.subtotal)

    returned = defaultdict(int)
    for ret in sale.returns:
        returned[ret.product_id] += ret.qty

    return {
        product_id: ReturnableLine(
            product_id=product_id,
            sold_qty=qty,
            returned_qty=returned[product_id],
            sold_value=sold_value[product_id],
        )
        for product_id, qty in sold_qty.items()
    }


def cumulative_refund(sale: Sale, lines: Mapping[str, ReturnableLine], returned_qty: Mapping[str, int]) -> Decimal:
    """Refund owed in sale currency for everything returned so far, capped at the sale total."""
    returned_value = sum(
        (lines[product_id].value_of(qty) for product_id, qty in returned_qty.items()), ZERO
    )
    refund = split_tax(returned_value, sale.tax_rate, sale.tax_included).rounded().total
    return min(refund, money(sale.total_amount))


class ReturnService:
    def __init__(self, db: Session, actor: ActorContext):
        self.db = db
        self.actor = actor

    def create_return(
        self,
        sale_id: str,
        quantities: Mapping[str, int],
        reason: str,
        notes: Optional[str] = None,
    ) -> ReturnResult:
        if not reason or not reason.strip():
            raise ValueError("A return reason is required")
        if not quantities:
            raise ValueError("Select at least one product to return")

        sale = self.db.query(Sale).filter(Sale.id == sale_id).first()
        if not sale:
            raise RecordNotFoundError("Sale", sale_id)

        lines = returnable_lines(sale)
        returned_qty = {product_id: line.returned_qty for product_id, line in lines.items()}
        refunded = money(sale.returned_amount or 0)
        plan = []
        for product_id, qty in quantities.items():
            if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
                raise ValueError(f"Return quantity for {product_id} must be a positive integer")
            line = lines.get(product_id)
            if line is None:
                raise ValueError(f"Product {product_id} is not part of sale {sale.id}")
            if qty > line.remaining_qty:
                raise ValueError(
                    f"Cannot return {qty} of {product_id}: only {line.remaining_qty} left to return"
                )
            returned_qty[product_id] += qty
            owed = cumulative_refund(sale, lines, returned_qty)
            plan.append((line, qty, max(owed - refunded, Decimal("0.00"))))
            refunded = max(owed, refunded)

        refund_total = money(sum((refund for _, _, refund in plan), ZERO))
        currency = Currency(sale.currency)
        result = ReturnResult(sale=sale, refund_total=refund_total)

        audit = PostingAudit(
            operation="sale_return",
            customer_id=sale.customer_id,
            ref_id=sale.id,
            amount=refund_total,
            currency=currency.value,
        )
        with posting_unit(self.db, audit, self.actor):
            for line, qty, refund in plan:
                sales_return = SalesReturn(
                    sale_id=sale.id,
                    product_id=line.product_id,
                    qty=qty,
                    refund_amount=refund,
                    reason=reason.strip(),
                    notes=notes,
                    created_by=self.actor.actor_id,
                )
                self.db.add(sales_return)
                self.db.flush()
                result.returns.append(sales_return)

                move_stock(
                    self.db, require_product(self.db, line.product_id), qty, StockMovementType.return_, self.actor,
                    ref_type="sales_return", ref_id=sales_return.id,
                    unit_cost=money(line.unit_price), fx_rate=sale.fx_rate,
                )

            sale.returned_amount = money((sale.returned_amount or 0) + refund_total)
            refresh_payment_status(sale)

            if sale.customer is not None and refund_total > 0:
                PostingService(self.db, self.actor).post(
                    sale.customer, PostingEvent.refund, refund_total, currency, sale.fx_rate,
                    ref_type="sale", ref_id=sale.id,
                    note=f"Return on sale {sale.id}: {reason.strip()}",
                )
            self.db.flush()

        logger.info(f"Return on sale {sale.id}: {len(result.returns)} line(s), refund {refund_total} {currency.value}")
        return result
