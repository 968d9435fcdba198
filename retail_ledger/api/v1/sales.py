from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import LedgerError
from retail_ledger.core.context import ActorContext
from retail_ledger.core.dependencies import get_actor, get_db, get_rate_service
from retail_ledger.logger_config import logger
from retail_ledger.models.enums import SalePaymentStatus
from retail_ledger.schemas.customer import CreditWarning
from retail_ledger.schemas.sale import (
    SaleCreate,
    SaleCreatedResponse,
    SaleListResponse,
    SaleResponse,
    SaleReturnCreate,
    SaleReturnResponse,
    SalesReturnResponse,
)
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.return_service import ReturnService
from retail_ledger.services.sale_service import SaleLine, SaleService

router = APIRouter()


@router.post(
    "",
    response_model=SaleCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a sale",
    description="""
    Create a sale and post it to the customer's ledger.

    - Without `customer_id` the sale is a walk-in sale: paid in full, no ledger entry.
    - The exchange rate is fixed on the sale; omit `fx_rate` to use the current rate.
    - `credit_warning` is set when the sale takes the customer over their credit
      limit. The sale is saved either way.
    """
)
def create_sale_route(
    sale_data: SaleCreate,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    try:
        service = SaleService(db, actor, rates)
        result = service.create_sale(
            lines=[SaleLine(i.product_id, i.quantity, i.unit_price) for i in sale_data.items],
            customer_id=sale_data.customer_id,
            currency=sale_data.currency,
            fx_rate=sale_data.fx_rate,
            tax_rate=sale_data.tax_rate,
            tax_included=sale_data.tax_included,
            payment_method=sale_data.payment_method,
            paid_amount=sale_data.paid_amount,
            due_date=sale_data.due_date,
            notes=sale_data.notes,
        )
        return SaleCreatedResponse(
            sale=SaleResponse.model_validate(result.sale),
            credit_warning=CreditWarning.model_validate(result.credit_warning) if result.credit_warning else None,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating sale: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create sale")


@router.get("", response_model=SaleListResponse)
def get_sales(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    customer_id: Optional[str] = Query(None),
    payment_status: Optional[SalePaymentStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    sales, total = SaleService(db, actor, rates).list_sales(
        skip=skip,
        limit=limit,
        customer_id=customer_id,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
    )
    return SaleListResponse(total=total, sales=[SaleResponse.model_validate(s) for s in sales])


@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: str,
    actor: ActorContext = Depends(get_actor),
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    return SaleResponse.model_validate(SaleService(db, actor, rates).get_sale(sale_id))


@router.post("/{sale_id}/returns", response_model=SaleReturnResponse, status_code=status.HTTP_201_CREATED)
def create_return_route(
    sale_id: str,
    return_data: SaleReturnCreate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """
    Return products from a sale.
    Stock is added back; customer sales get a refund entry at the sale's rate.
    """
    quantities = {}
    for item in return_data.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.qty

    try:
        result = ReturnService(db, actor).create_return(
            sale_id=sale_id,
            quantities=quantities,
            reason=return_data.reason,
            notes=return_data.notes,
        )
        sale = result.sale
        return SaleReturnResponse(
            sale_id=sale.id,
            currency=sale.currency,
            refund_total=result.refund_total,
            returned_amount=sale.returned_amount,
            payment_status=sale.payment_status,
            returns=[SalesReturnResponse.model_validate(r) for r in result.returns],
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error creating return: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create return")
