from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from retail_ledger.core.dependencies import get_db, get_rate_service
from retail_ledger.logger_config import logger
from retail_ledger.schemas.supplier import (
    ProductPriceLink,
    ProductSupplierResponse,
    SupplierCreate,
    SupplierListResponse,
    SupplierResponse,
)
from retail_ledger.services.exchange_rate_service import ExchangeRateService
from retail_ledger.services.supplier_service import (
    create_supplier,
    get_all_suppliers,
    link_product_price,
    require_supplier,
    unlink_product_price,
)

router = APIRouter()


@router.get("", response_model=SupplierListResponse)
def get_suppliers(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    suppliers, total = get_all_suppliers(db, skip=skip, limit=limit, search=search)
    return SupplierListResponse(total=total, suppliers=[SupplierResponse.model_validate(s) for s in suppliers])


@router.post("", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
def create_supplier_route(supplier_data: SupplierCreate, db: Session = Depends(get_db)):
    try:
        supplier = create_supplier(db=db, **supplier_data.model_dump())
        logger.info(f"supplier {supplier.id} created")
        return SupplierResponse.model_validate(supplier)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating supplier: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create supplier"
        )


@router.get("/{supplier_id}", response_model=SupplierResponse)
def get_supplier(supplier_id: str, db: Session = Depends(get_db)):
    return SupplierResponse.model_validate(require_supplier(db, supplier_id))


@router.put("/{supplier_id}/products", response_model=ProductSupplierResponse)
def link_product_price_route(
    supplier_id: str,
    data: ProductPriceLink,
    rates: ExchangeRateService = Depends(get_rate_service),
    db: Session = Depends(get_db),
):
    """Add or update the supplier's price for a product."""
    try:
        link = link_product_price(db, rates, supplier_id=supplier_id, **data.model_dump())
        return ProductSupplierResponse.model_validate(link)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{supplier_id}/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def unlink_product_price_route(supplier_id: str, product_id: str, db: Session = Depends(get_db)):
    if not unlink_product_price(db, supplier_id, product_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="supplier price not found"
        )
    return None
