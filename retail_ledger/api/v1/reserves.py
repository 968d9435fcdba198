from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import LedgerError
from retail_ledger.common.response import SuccessResponse
from retail_ledger.core.context import ActorContext
from retail_ledger.core.dependencies import get_actor, get_db, get_rate_service
from retail_ledger.logger_config import logger
from retail_ledger.models.reserve import ReserveStatus
from retail_ledger.schemas.customer import CreditWarning
from retail_ledger.schemas.payment import PaymentResponse
from retail_ledger.schemas.reserve import (
    ExpiredReservesResponse,
    ReserveConversionResponse,
    ReserveConvert,
    ReserveCreate,
    ReserveLineSplitResponse,
    ReserveListResponse,
    ReserveResponse,
)
from retail_ledger.schemas.sale import SaleResponse
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.reserve_service import ReserveRequestLine, ReserveService

router = APIRouter()


@router.post("", response_model=ReserveResponse, status_code=status.HTTP_201_CREATED)
def create_reserve_route(
    reserve_data: ReserveCreate,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    """Hold products for a customer. Stock and balances are not touched until conversion."""
    try:
        reserve = ReserveService(db, actor, rates).create_reserve(
            lines=[ReserveRequestLine(i.product_id, i.qty, i.unit_price) for i in reserve_data.items],
            customer_id=reserve_data.customer_id,
            currency=reserve_data.currency,
            fx_rate=reserve_data.fx_rate,
            expires_at=reserve_data.expires_at,
            notes=reserve_data.notes,
        )
        return ReserveResponse.model_validate(reserve)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=ReserveListResponse)
def get_reserves(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    status_filter: Optional[ReserveStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    reserves, total = ReserveService(db, actor, rates).list_reserves(
        skip=skip, limit=limit, status=status_filter, customer_id=customer_id
    )
    return ReserveListResponse(total=total, reserves=[ReserveResponse.model_validate(r) for r in reserves])


@router.post("/expire")
def expire_reserves_route(
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    """Mark open reserves past their expiry date as expired."""
    expired = ReserveService(db, actor, rates).expire_overdue()
    data = ExpiredReservesResponse(expired=len(expired), reserve_ids=[r.id for r in expired])
    return SuccessResponse.send(data=data, message=f"{len(expired)} reserve(s) expired")


@router.get("/{reserve_id}", response_model=ReserveResponse)
def get_reserve(
    reserve_id: str,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    return ReserveResponse.model_validate(ReserveService(db, actor, rates).get_reserve(reserve_id))


@router.post("/{reserve_id}/cancel", response_model=ReserveResponse)
def cancel_reserve_route(
    reserve_id: str,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    try:
        return ReserveResponse.model_validate(ReserveService(db, actor, rates).cancel_reserve(reserve_id))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/{reserve_id}/convert",
    response_model=ReserveConversionResponse,
    summary="Convert a reserve into a sale",
    description="""
    Split each reserved line into taken and returned quantities.

    - Taken lines become a sale at the default tax rate and leave stock.
    - The taken total is posted to the customer's ledger as a reserve entry.
    - Returned quantities have no stock or balance effect.
    - `payment_amount` posts an immediate payment right after the conversion.
    """
)
def convert_reserve_route(
    reserve_id: str,
    data: ReserveConvert,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    taken = {}
    for item in data.taken:
        if item.item_id in taken:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Reserve item {item.item_id} listed more than once"
            )
        taken[item.item_id] = item.qty

    try:
        result = ReserveService(db, actor, rates).convert_reserve(
            reserve_id,
            taken=taken,
            fx_rate=data.fx_rate,
            tax_rate=data.tax_rate,
            tax_included=data.tax_included,
            payment_amount=data.payment_amount,
            payment_method=data.payment_method,
            notes=data.notes,
        )
        return ReserveConversionResponse(
            reserve=ReserveResponse.model_validate(result.reserve),
            sale=SaleResponse.model_validate(result.sale),
            lines=[
                ReserveLineSplitResponse(
                    item_id=s.line.item_id,
                    product_id=s.line.product_id,
                    qty_reserved=s.line.qty_reserved,
                    qty_taken=s.qty_taken,
                    qty_returned=s.qty_returned,
                    unit_price=s.line.unit_price,
                )
                for s in result.split.lines
            ],
            total_taken=result.split.total_taken,
            total_returned=result.split.total_returned,
            payment=PaymentResponse.model_validate(result.payment) if result.payment else None,
            credit_warning=CreditWarning.model_validate(result.credit_warning) if result.credit_warning else None,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error converting reserve {reserve_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to convert reserve")
