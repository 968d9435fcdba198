from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from retail_ledger.common.exceptions import LedgerError
from retail_ledger.core.context import ActorContext
from retail_ledger.core.dependencies import get_actor, get_db, get_rate_service
from retail_ledger.logger_config import logger
from retail_ledger.models.product import StockMovement
from retail_ledger.schemas.product import (
    PriceComparisonResponse,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    StockAdjustmentCreate,
    StockMovementResponse,
    SupplierOfferResponse,
)
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.product_service import (
    adjust_stock,
    create_product,
    get_all_products,
    get_low_stock_products,
    get_product_by_barcode,
    require_product,
)
from retail_ledger.services.supplier_service import compare_supplier_prices

router = APIRouter()


@router.get("", response_model=ProductListResponse)
def get_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    products, total = get_all_products(db, skip=skip, limit=limit, search=search)
    return ProductListResponse(total=total, products=[ProductResponse.model_validate(p) for p in products])


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product_route(
    product_data: ProductCreate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    try:
        product = create_product(db=db, actor=actor, **product_data.model_dump())
        return ProductResponse.model_validate(product)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating product: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create product"
        )


@router.get("/low-stock", response_model=List[ProductResponse])
def get_low_stock(db: Session = Depends(get_db)):
    """Products at or below their minimum stock level."""
    return [ProductResponse.model_validate(p) for p in get_low_stock_products(db)]


@router.get("/barcode/{barcode}", response_model=ProductResponse)
def get_product_by_barcode_route(barcode: str, db: Session = Depends(get_db)):
    """Scanner lookup by barcode, falling back to SKU."""
    try:
        return ProductResponse.model_validate(get_product_by_barcode(db, barcode))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, db: Session = Depends(get_db)):
    return ProductResponse.model_validate(require_product(db, product_id))


@router.post("/{product_id}/stock", response_model=ProductResponse)
def adjust_stock_route(
    product_id: str,
    data: StockAdjustmentCreate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Receive goods (purchase) or correct a count (adjustment)."""
    try:
        product = adjust_stock(db=db, actor=actor, product_id=product_id, **data.model_dump())
        return ProductResponse.model_validate(product)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error adjusting stock: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to adjust stock")


@router.get("/{product_id}/movements", response_model=List[StockMovementResponse])
def get_stock_movements(
    product_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    product = require_product(db, product_id)
    movements = (
        db.query(StockMovement)
        .filter(StockMovement.product_id == product.id)
        .order_by(StockMovement.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return [StockMovementResponse.model_validate(m) for m in movements]


@router.get("/{product_id}/supplier-prices", response_model=PriceComparisonResponse)
def compare_prices_route(
    product_id: str,
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    """Supplier offers converted to home currency at current rates, cheapest first."""
    offers = [SupplierOfferResponse.model_validate(o) for o in compare_supplier_prices(db, rates, product_id)]
    return PriceComparisonResponse(product_id=product_id, best=offers[0] if offers else None, offers=offers)
