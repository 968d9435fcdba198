"""
Ledger Engine
Pure balance / tax / currency arithmetic shared by every posting flow
(sales, payments, returns and reserve conversion).

Nothing here touches the database. Services call these functions and persist
the results, so sign conventions and rounding rules live in one place.

Sign rule (home currency, positive balance = customer owes money):
- sale, reserve conversion  -> balance increases
- payment, refund           -> balance decreases
- opening                   -> no movement (already in opening_balance)
"""

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, Mapping, Optional, Tuple

from retail_ledger.models.enums import Currency, SalePaymentStatus, TransactionKind


HOME_CURRENCY = Currency.TRY
TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


# ==================== NUMBERS ====================

def to_decimal(value, field_name: str = "amount") -> Decimal:
    """Parse a user supplied number; ValueError for anything non-numeric."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be a number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field_name} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be a finite number")
    return result


def non_negative(value, field_name: str = "amount") -> Decimal:
    result = to_decimal(value, field_name)
    if result < 0:
        raise ValueError(f"{field_name} cannot be negative")
    return result


def money(value) -> Decimal:
    """Round to 2 decimals. Only applied at the point of persistence."""
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


# ==================== TAX ====================

@dataclass(frozen=True)
class TaxBreakdown:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> "TaxBreakdown":
        # tax is derived so that subtotal + tax == total holds after rounding
        total = money(self.total)
        subtotal = money(self.subtotal)
        return TaxBreakdown(subtotal=subtotal, tax=total - subtotal, total=total)


def split_tax(amount, tax_rate, tax_included: bool) -> TaxBreakdown:
    """
    Split a line/sale total into subtotal, tax and grand total.

    tax_included=True:  subtotal = amount / (1 + rate/100), total = amount
    tax_included=False: subtotal = amount, total = amount + amount * rate/100

    Values are left unrounded; call .rounded() when persisting.
    """
    amount = non_negative(amount, "amount")
    rate = non_negative(tax_rate, "tax_rate")

    if rate == 0:
        return TaxBreakdown(subtotal=amount, tax=ZERO, total=amount)

    if tax_included:
        subtotal = amount / (1 + rate / HUNDRED)
        return TaxBreakdown(subtotal=subtotal, tax=amount - subtotal, total=amount)

    tax = amount * rate / HUNDRED
    return TaxBreakdown(subtotal=amount, tax=tax, total=amount + tax)


# ==================== CURRENCY ====================

@dataclass(frozen=True)
class RateTable:
    """Home currency units per 1 unit of each foreign currency."""
    usd: Decimal
    eur: Decimal

    def rate_for(self, currency: Currency) -> Decimal:
        return fx_rate_for(currency, self)


def fx_rate_for(currency: Currency, rate_table: Optional[RateTable]) -> Decimal:
    currency = Currency(currency)
    if currency == HOME_CURRENCY:
        return Decimal("1")
    if rate_table is None:
        raise ValueError(f"No exchange rate available for {currency.value}")
    rate = rate_table.usd if currency == Currency.USD else rate_table.eur
    rate = to_decimal(rate, "fx_rate")
    if rate <= 0:
        raise ValueError(f"Exchange rate for {currency.value} must be positive")
    return rate


def convert(amount, rate) -> Decimal:
    """Multiply by a rate without rounding."""
    return to_decimal(amount) * to_decimal(rate, "fx_rate")


def to_home(amount, fx_rate) -> Decimal:
    """Home currency equivalent of a transaction amount at a rate snapshot."""
    return money(convert(amount, fx_rate))


def from_home(amount_home, fx_rate) -> Decimal:
    rate = to_decimal(fx_rate, "fx_rate")
    if rate <= 0:
        raise ValueError("fx_rate must be positive")
    return money(to_decimal(amount_home) / rate)


# ==================== POSTING ====================

class PostingEvent(str, enum.Enum):
    sale = "sale"
    payment = "payment"
    refund = "refund"
    reserve_conversion = "reserve_conversion"


EVENT_KINDS = {
    PostingEvent.sale: TransactionKind.sale,
    PostingEvent.payment: TransactionKind.payment,
    PostingEvent.refund: TransactionKind.refund,
    PostingEvent.reserve_conversion: TransactionKind.reserve,
}

_KIND_SIGNS = {
    TransactionKind.sale: 1,
    TransactionKind.reserve: 1,
    TransactionKind.payment: -1,
    TransactionKind.refund: -1,
    TransactionKind.opening: 0,
}


def balance_sign(kind: TransactionKind) -> int:
    return _KIND_SIGNS[TransactionKind(kind)]


def signed_home_amount(kind: TransactionKind, amount_home) -> Decimal:
    return balance_sign(kind) * to_decimal(amount_home)


@dataclass(frozen=True)
class Posting:
    kind: TransactionKind
    previous_balance: Decimal
    amount_home: Decimal
    new_balance: Decimal


def post_balance(current_balance, event: PostingEvent, amount_home) -> Posting:
    """Apply one financial event to a running balance."""
    event = PostingEvent(event)
    amount_home = money(non_negative(amount_home, "amount"))
    previous = money(current_balance)
    kind = EVENT_KINDS[event]
    new_balance = money(previous + signed_home_amount(kind, amount_home))
    return Posting(kind=kind, previous_balance=previous, amount_home=amount_home, new_balance=new_balance)


def balance_before(kind: TransactionKind, amount_home, balance_after) -> Decimal:
    return money(to_decimal(balance_after) - signed_home_amount(kind, amount_home))


def replay_balance(opening_balance, entries: Iterable[Tuple[TransactionKind, Decimal]]) -> Decimal:
    """Recompute a balance from the opening balance and (kind, amount_home) pairs in order."""
    balance = money(opening_balance)
    for kind, amount_home in entries:
        balance = money(balance + signed_home_amount(kind, amount_home))
    return balance


# ==================== RESERVE CONVERSION ====================

@dataclass(frozen=True)
class ReserveLine:
    item_id: int
    product_id: str
    qty_reserved: int
    unit_price: Decimal


@dataclass(frozen=True)
class ReserveLineSplit:
    line: ReserveLine
    qty_taken: int
    qty_returned: int

    @property
    def taken_total(self) -> Decimal:
        return self.qty_taken * self.line.unit_price

    @property
    def returned_total(self) -> Decimal:
        return self.qty_returned * self.line.unit_price


@dataclass(frozen=True)
class ReserveSplit:
    lines: List[ReserveLineSplit] = field(default_factory=list)

    @property
    def taken_lines(self) -> List[ReserveLineSplit]:
        return [s for s in self.lines if s.qty_taken > 0]

    @property
    def total_taken(self) -> Decimal:
        return sum((s.taken_total for s in self.lines), ZERO)

    @property
    def total_returned(self) -> Decimal:
        return sum((s.returned_total for s in self.lines), ZERO)


def split_reserve(lines: Iterable[ReserveLine], taken: Optional[Mapping[int, int]] = None) -> ReserveSplit:
    """
    Split reserved lines into taken and returned quantities.
    Lines missing from `taken` are taken in full.
    """
    taken = taken or {}
    result = []
    for line in lines:
        qty_taken = taken.get(line.item_id, line.qty_reserved)
        if isinstance(qty_taken, bool) or not isinstance(qty_taken, int):
            raise ValueError(f"Taken quantity for reserve item {line.item_id} must be an integer")
        if qty_taken < 0 or qty_taken > line.qty_reserved:
            raise ValueError(
                f"Taken quantity for reserve item {line.item_id} must be between 0 and {line.qty_reserved}"
            )
        result.append(ReserveLineSplit(line=line, qty_taken=qty_taken, qty_returned=line.qty_reserved - qty_taken))
    return ReserveSplit(lines=result)


# ==================== CREDIT LIMIT ====================

@dataclass(frozen=True)
class CreditLimitWarning:
    credit_limit: Decimal
    current_balance: Decimal
    projected_balance: Decimal
    overage: Decimal

    @property
    def message(self) -> str:
        return (
            f"Projected balance {self.projected_balance} exceeds credit limit "
            f"{self.credit_limit} by {self.overage}"
        )


def check_credit_limit(current_balance, credit_limit, incoming_amount_home) -> Optional[CreditLimitWarning]:
    """Advisory only. Returns a warning when the sale would push the balance over the limit."""
    if credit_limit is None:
        return None
    limit = to_decimal(credit_limit, "credit_limit")
    if limit <= 0:
        return None
    current = money(current_balance)
    projected = money(current + to_decimal(incoming_amount_home))
    if projected > limit:
        return CreditLimitWarning(
            credit_limit=money(limit),
            current_balance=current,
            projected_balance=projected,
            overage=money(projected - limit),
        )
    return None


# ==================== SALE STATUS ====================

def derive_payment_status(total, paid, due_date: Optional[date], on_date: date) -> SalePaymentStatus:
    total = to_decimal(total)
    paid = to_decimal(paid)
    if paid >= total:
        return SalePaymentStatus.paid
    if due_date is not None and due_date < on_date:
        return SalePaymentStatus.overdue
    if paid > 0:
        return SalePaymentStatus.partially_paid
    return SalePaymentStatus.pending
