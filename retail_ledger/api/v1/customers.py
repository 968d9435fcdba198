from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import LedgerError
from retail_ledger.core.context import ActorContext
from retail_ledger.core.dependencies import get_actor, get_db, get_rate_service
from retail_ledger.logger_config import logger
from retail_ledger.schemas.customer import (
    CreditCheckRequest,
    CreditCheckResponse,
    CreditWarning,
    CustomerCreate,
    CustomerListResponse,
    CustomerResponse,
    CustomerUpdate,
    ReconciliationResponse,
)
from retail_ledger.schemas.payment import (
    PaymentCreate,
    PaymentListResponse,
    PaymentRecordedResponse,
    PaymentResponse,
)
from retail_ledger.schemas.transaction import StatementLineResponse, StatementResponse, TransactionResponse
from retail_ledger.services.customer_service import (
    create_customer,
    get_all_customers,
    get_statement,
    preview_credit,
    reconcile_customer,
    require_customer,
    update_customer,
)
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.payment_service import PaymentService

router = APIRouter()


@router.get("", response_model=CustomerListResponse)
def get_customers(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    search: Optional[str] = Query(None),
    with_balance: bool = Query(False, description="Only customers with a non-zero balance"),
    db: Session = Depends(get_db),
):
    """Get all customers with optional search filtering."""
    customers, total = get_all_customers(db, skip=skip, limit=limit, search=search, with_balance=with_balance)
    return CustomerListResponse(
        total=total,
        customers=[CustomerResponse.model_validate(c) for c in customers],
    )


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer_route(
    customer_data: CustomerCreate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """
    Create a new customer.
    The opening balance is written to the ledger as an `opening` entry.
    """
    try:
        customer = create_customer(db=db, actor=actor, **customer_data.model_dump())
        logger.info(f"customer {customer.id} created by {actor.actor_id}")
        return CustomerResponse.model_validate(customer)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating customer: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create customer"
        )


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: str, db: Session = Depends(get_db)):
    return CustomerResponse.model_validate(require_customer(db, customer_id))


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer_route(
    customer_id: str,
    customer_data: CustomerUpdate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Update profile fields. Balances cannot be edited directly."""
    try:
        customer = update_customer(db=db, customer_id=customer_id, **customer_data.model_dump(exclude_unset=True))
        logger.info(f"customer {customer_id} updated by {actor.actor_id}")
        return CustomerResponse.model_validate(customer)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{customer_id}/transactions", response_model=StatementResponse)
def get_customer_statement(
    customer_id: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Customer statement: ledger entries in order with balance before and after each."""
    statement = get_statement(db, customer_id, start_date=start_date, end_date=end_date, skip=skip, limit=limit)
    customer = statement.customer
    return StatementResponse(
        customer_id=customer.id,
        customer_name=customer.name,
        opening_balance=customer.opening_balance,
        current_balance=customer.current_balance,
        total=statement.total,
        entries=[
            StatementLineResponse(
                **TransactionResponse.model_validate(line.entry).model_dump(),
                balance_before=line.balance_before,
            )
            for line in statement.lines
        ],
    )


@router.post("/{customer_id}/payments", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
def record_payment_route(
    customer_id: str,
    payment_data: PaymentCreate,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    """
    Record a customer payment.

    The payment, its ledger entry and the balance update are saved together.
    A payment against a sale must use the sale's currency and settles at the
    sale's exchange rate.
    """
    try:
        service = PaymentService(db, actor, rates)
        result = service.record_payment(customer_id=customer_id, **payment_data.model_dump())
        return PaymentRecordedResponse(
            payment=PaymentResponse.model_validate(result.payment),
            amount_home=result.entry.amount_home,
            balance_after=result.entry.balance_after,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error recording payment: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to record payment")


@router.get("/{customer_id}/payments", response_model=PaymentListResponse)
def get_customer_payments(
    customer_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    payments, total = PaymentService(db, actor, rates).list_payments(customer_id, skip=skip, limit=limit)
    return PaymentListResponse(total=total, payments=[PaymentResponse.model_validate(p) for p in payments])


@router.post("/{customer_id}/credit-check", response_model=CreditCheckResponse)
def credit_check_route(customer_id: str, data: CreditCheckRequest, db: Session = Depends(get_db)):
    """Advisory only: would this amount push the customer over their credit limit?"""
    try:
        warning = preview_credit(db, customer_id, data.amount_home)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    customer = require_customer(db, customer_id)
    return CreditCheckResponse(
        customer_id=customer.id,
        current_balance=customer.current_balance,
        credit_limit=customer.credit_limit,
        within_limit=warning is None,
        warning=CreditWarning.model_validate(warning) if warning else None,
    )


@router.get("/{customer_id}/reconciliation", response_model=ReconciliationResponse)
def reconciliation_report(customer_id: str, db: Session = Depends(get_db)):
    """Compare the cached balance with a replay of the ledger."""
    return ReconciliationResponse.model_validate(reconcile_customer(db, customer_id))


@router.post("/{customer_id}/reconciliation/fix", response_model=ReconciliationResponse)
def reconciliation_fix(
    customer_id: str,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Reset the cached balance to the ledger replay. Ledger entries are not changed."""
    result = reconcile_customer(db, customer_id, fix=True, actor=actor)
    logger.info(f"Reconciliation fix on {customer_id} by {actor.actor_id}: drift {result.drift}")
    return ReconciliationResponse.model_validate(result)
