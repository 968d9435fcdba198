from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.enums import Currency


class SupplierBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact_person: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None


class SupplierCreate(SupplierBase):
    pass


class SupplierResponse(SupplierBase):
    id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SupplierListResponse(BaseModel):
    total: int
    suppliers: List[SupplierResponse]


class ProductPriceLink(BaseModel):
    product_id: str = Field(..., min_length=1)
    unit_price: Decimal = Field(..., ge=0)
    currency: Currency = Currency.TRY
    fx_rate_at_purchase: Optional[Decimal] = Field(None, gt=0)
    last_purchase_date: Optional[datetime] = None


class ProductSupplierResponse(BaseModel):
    id: int
    product_id: str
    supplier_id: str
    unit_price: Decimal
    currency: Currency
    fx_rate_at_purchase: Decimal
    last_purchase_date: Optional[datetime] = None

    class Config:
        from_attributes = True
