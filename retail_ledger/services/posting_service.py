"""
Posting Service
Writes customer ledger entries and keeps customers.current_balance in step.

Every financial flow (sale, payment, return, reserve conversion) runs inside
posting_unit(): the artifact row, its ledger entry and the balance update are
committed together or not at all. A failed unit leaves a PostingFailure row
behind so the attempt is auditable.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from retail_ledger.common.exceptions import ConcurrentUpdateError, LedgerError, PostingFailedError
from retail_ledger.core.context import ActorContext
from retail_ledger.logger_config import logger
from retail_ledger.models.customer import Customer
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import Currency, TransactionKind
from retail_ledger.models.posting_failure import PostingFailure
from retail_ledger.services.ledger_engine import PostingEvent, money, non_negative, post_balance, to_home


@dataclass
class PostingAudit:
    """Details recorded if the unit fails. Filled in as the flow learns them."""
    operation: str
    customer_id: Optional[str] = None
    ref_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


def record_posting_failure(db: Session, audit: PostingAudit, actor: ActorContext, error: Exception):
    """Persist a failure row in its own transaction after the unit was rolled back."""
    try:
        db.add(PostingFailure(
            operation=audit.operation,
            customer_id=audit.customer_id,
            ref_id=audit.ref_id,
            actor_id=actor.actor_id,
            amount=audit.amount,
            currency=audit.currency,
            error=str(error)[:2000],
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Could not record posting failure for {audit.operation}")


@contextmanager
def posting_unit(db: Session, audit: PostingAudit, actor: ActorContext):
    try:
        yield audit
        db.commit()
    except (ValueError, LedgerError):
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent update on customer {audit.customer_id} during {audit.operation}")
        record_posting_failure(db, audit, actor, e)
        raise ConcurrentUpdateError(
            f"Customer {audit.customer_id} was modified concurrently; {audit.operation} was not saved"
        ) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Posting failed for {audit.operation} (customer {audit.customer_id}): {str(e)}")
        record_posting_failure(db, audit, actor, e)
        raise PostingFailedError(f"Failed to save {audit.operation}: {str(e)}") from e


class PostingService:
    def __init__(self, db: Session, actor: ActorContext):
        self.db = db
        self.actor = actor

    def post(
        self,
        customer: Customer,
        event: PostingEvent,
        amount,
        currency: Currency,
        fx_rate,
        ref_type: Optional[str] = None,
        ref_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> CustomerTransaction:
        """
        Append one ledger entry and move the customer's cached balance.
        Must be called inside posting_unit(); nothing is committed here.
        """
        amount = money(non_negative(amount, "amount"))
        amount_home = to_home(amount, fx_rate)
        posting = post_balance(customer.current_balance, event, amount_home)

        entry = CustomerTransaction(
            customer_id=customer.id,
            kind=posting.kind,
            ref_type=ref_type,
            ref_id=ref_id,
            amount=amount,
            currency=Currency(currency),
            fx_rate_to_home=fx_rate,
            amount_home=posting.amount_home,
            balance_after=posting.new_balance,
            note=note,
            created_by=self.actor.actor_id,
        )
        self.db.add(entry)
        self.db.flush()

        # Version-checked UPDATE; raises StaleDataError on a lost race
        customer.current_balance = posting.new_balance
        self.db.flush()

        logger.info(
            f"Posted {posting.kind.value} {amount} {Currency(currency).value} "
            f"({posting.amount_home} home) for customer {customer.id}: "
            f"{posting.previous_balance} -> {posting.new_balance}"
        )
        return entry

    def open_account(self, customer: Customer) -> CustomerTransaction:
        """Opening entry: records the opening balance without moving it."""
        entry = CustomerTransaction(
            customer_id=customer.id,
            kind=TransactionKind.opening,
            ref_type="customer",
            ref_id=customer.id,
            amount=money(abs(customer.opening_balance)),
            currency=Currency.TRY,
            fx_rate_to_home=1,
            amount_home=money(customer.opening_balance),
            balance_after=money(customer.opening_balance),
            note="Opening balance",
            created_by=self.actor.actor_id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry
