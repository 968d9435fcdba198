from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import RecordNotFoundError
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.customer import Customer, RiskLevel
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.services.ledger_engine import (
    CreditLimitWarning,
    balance_before,
    balance_sign,
    check_credit_limit,
    money,
    non_negative,
    replay_balance,
)
from retail_ledger.services.posting_service import PostingAudit, PostingService, posting_unit
from retail_ledger.utils.dates import day_end_exclusive, day_start


def get_customer_by_id(db: Session, customer_id: str) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.id == customer_id).first()


def require_customer(db: Session, customer_id: str) -> Customer:
    customer = get_customer_by_id(db, customer_id)
    if not customer:
        raise RecordNotFoundError("Customer", customer_id)
    return customer


def get_all_customers(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    search: Optional[str] = None,
    with_balance: bool = False,
) -> Tuple[List[Customer], int]:
    """Get all customers with optional search filtering."""
    query = db.query(Customer)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Customer.name.ilike(search_term),
                Customer.phone.ilike(search_term),
                Customer.email.ilike(search_term),
                Customer.id.ilike(search_term),
                Customer.tax_number.ilike(search_term),
            )
        )

    if with_balance:
        query = query.filter(Customer.current_balance != 0)

    total = query.count()
    customers = query.order_by(Customer.name.asc()).offset(skip).limit(limit).all()

    return customers, total


def create_customer(
    db: Session,
    actor: ActorContext,
    name: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    tax_number: Optional[str] = None,
    opening_balance=0,
    credit_limit=None,
    risk_level: RiskLevel = RiskLevel.low,
    notes: Optional[str] = None,
) -> Customer:
    """Create a customer together with its opening ledger entry."""
    if not name or not name.strip():
        raise ValueError("Customer name is required")

    opening = money(opening_balance)
    if credit_limit is not None:
        credit_limit = money(non_negative(credit_limit, "credit_limit"))

    customer = Customer(
        name=name.strip(),
        phone=phone,
        email=email,
        address=address,
        tax_number=tax_number,
        opening_balance=opening,
        current_balance=opening,
        credit_limit=credit_limit,
        risk_level=RiskLevel(risk_level),
        notes=notes,
        created_by=actor.actor_id,
    )

    audit = PostingAudit(operation="customer_opening", amount=opening, currency="TRY")
    with posting_unit(db, audit, actor):
        db.add(customer)
        db.flush()
        audit.customer_id = customer.id
        PostingService(db, actor).open_account(customer)

    db.refresh(customer)
    logger.info(f"Customer {customer.id} created with opening balance {opening}")
    return customer


def update_customer(
    db: Session,
    customer_id: str,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    tax_number: Optional[str] = None,
    credit_limit=None,
    risk_level: Optional[RiskLevel] = None,
    notes: Optional[str] = None,
) -> Customer:
    """Update profile fields. Balances only move through ledger postings."""
    customer = require_customer(db, customer_id)

    if name is not None:
        if not name.strip():
            raise ValueError("Customer name is required")
        customer.name = name.strip()
    if phone is not None:
        customer.phone = phone
    if email is not None:
        customer.email = email
    if address is not None:
        customer.address = address
    if tax_number is not None:
        customer.tax_number = tax_number
    if credit_limit is not None:
        customer.credit_limit = money(non_negative(credit_limit, "credit_limit"))
    if risk_level is not None:
        customer.risk_level = RiskLevel(risk_level)
    if notes is not None:
        customer.notes = notes

    try:
        db.commit()
        db.refresh(customer)
        return customer
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error updating customer: {str(e)}")
        raise ValueError("Failed to update customer")


# ==================== STATEMENT ====================

@dataclass
class StatementLine:
    entry: CustomerTransaction
    balance_before: Decimal


@dataclass
class Statement:
    customer: Customer
    lines: List[StatementLine] = field(default_factory=list)
    total: int = 0


def get_statement(
    db: Session,
    customer_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
) -> Statement:
    """Ledger entries in chronological order, each with the balance it started from."""
    customer = require_customer(db, customer_id)

    query = db.query(CustomerTransaction).filter(CustomerTransaction.customer_id == customer_id)
    if start_date:
        query = query.filter(CustomerTransaction.occurred_at >= day_start(start_date))
        logger.debug(f"Filtering statement by start_date: {start_date}")
    if end_date:
        query = query.filter(CustomerTransaction.occurred_at < day_end_exclusive(end_date))
        logger.debug(f"Filtering statement by end_date: {end_date}")

    total = query.count()
    entries = query.order_by(CustomerTransaction.id.asc()).offset(skip).limit(limit).all()

    lines = [
        StatementLine(entry=e, balance_before=balance_before(e.kind, e.amount_home, e.balance_after))
        for e in entries
    ]
    return Statement(customer=customer, lines=lines, total=total)


# ==================== CREDIT ====================

def preview_credit(db: Session, customer_id: str, amount_home) -> Optional[CreditLimitWarning]:
    customer = require_customer(db, customer_id)
    amount_home = non_negative(amount_home, "amount")
    return check_credit_limit(customer.current_balance, customer.credit_limit, amount_home)


# ==================== RECONCILIATION ====================

@dataclass
class BrokenLink:
    entry_id: int
    expected_balance_after: Decimal
    recorded_balance_after: Decimal


@dataclass
class Reconciliation:
    customer_id: str
    stored_balance: Decimal
    computed_balance: Decimal
    entry_count: int
    broken_links: List[BrokenLink] = field(default_factory=list)
    fixed: bool = False

    @property
    def drift(self) -> Decimal:
        return money(self.stored_balance - self.computed_balance)

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0 and not self.broken_links


def reconcile_customer(
    db: Session,
    customer_id: str,
    fix: bool = False,
    actor: Optional[ActorContext] = None,
) -> Reconciliation:
    """
    Replay the ledger from the opening balance and compare it with the
    cached current_balance. With fix=True the cached balance is reset to the
    replayed value; ledger entries themselves are never touched.
    """
    customer = require_customer(db, customer_id)
    entries = (
        db.query(CustomerTransaction)
        .filter(CustomerTransaction.customer_id == customer_id)
        .order_by(CustomerTransaction.id.asc())
        .all()
    )

    # Each entry must continue from the one recorded before it
    broken = []
    previous = money(customer.opening_balance)
    for entry in entries:
        expected = money(previous + balance_sign(entry.kind) * entry.amount_home)
        recorded = money(entry.balance_after)
        if recorded != expected:
            broken.append(BrokenLink(
                entry_id=entry.id,
                expected_balance_after=expected,
                recorded_balance_after=recorded,
            ))
        previous = recorded

    computed = replay_balance(customer.opening_balance, [(e.kind, e.amount_home) for e in entries])
    result = Reconciliation(
        customer_id=customer.id,
        stored_balance=money(customer.current_balance),
        computed_balance=computed,
        entry_count=len(entries),
        broken_links=broken,
    )

    if result.drift != 0:
        logger.warning(
            f"Customer {customer.id} balance drift: stored {result.stored_balance}, ledger {computed}"
        )

    if fix and result.drift != 0:
        audit = PostingAudit(operation="reconciliation", customer_id=customer.id, amount=computed, currency="TRY")
        with posting_unit(db, audit, actor or ActorContext.system()):
            customer.current_balance = computed
            db.flush()
        result.fixed = True
        logger.info(f"Customer {customer.id} balance reset to {computed}")

    return result
