from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.enums import Currency
from retail_ledger.models.product import ProductUnit, StockMovementType


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=50)
    barcode: Optional[str] = Field(None, max_length=50)
    unit: ProductUnit = ProductUnit.PIECE
    min_stock_level: int = Field(default=0, ge=0)
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    purchase_currency: Currency = Currency.TRY
    purchase_fx_rate: Decimal = Field(default=Decimal("1"), gt=0)
    sale_price: Decimal = Field(..., ge=0, description="Home currency")


class ProductCreate(ProductBase):
    stock_quantity: int = Field(default=0, ge=0)


class ProductResponse(ProductBase):
    id: str
    stock_quantity: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductListResponse(BaseModel):
    total: int
    products: List[ProductResponse]


class StockAdjustmentCreate(BaseModel):
    change_qty: int = Field(..., description="Signed quantity; negative removes stock")
    movement_type: StockMovementType = StockMovementType.adjustment
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    note: Optional[str] = Field(None, max_length=500)


class StockMovementResponse(BaseModel):
    id: int
    product_id: str
    change_qty: int
    type: StockMovementType
    ref_type: Optional[str] = None
    ref_id: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    fx_rate: Optional[Decimal] = None
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SupplierOfferResponse(BaseModel):
    supplier_id: str
    supplier_name: str
    unit_price: Decimal
    currency: Currency
    fx_rate: Decimal
    unit_price_home: Decimal
    last_purchase_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class PriceComparisonResponse(BaseModel):
    product_id: str
    best: Optional[SupplierOfferResponse] = None
    offers: List[SupplierOfferResponse]
