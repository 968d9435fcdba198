from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.enums import Currency, PaymentMethod
from retail_ledger.models.reserve import ReserveStatus
from retail_ledger.schemas.customer import CreditWarning
from retail_ledger.schemas.payment import PaymentResponse
from retail_ledger.schemas.sale import SaleResponse


class ReserveItemCreate(BaseModel):
    product_id: str = Field(..., min_length=1)
    qty: int = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)


class ReserveCreate(BaseModel):
    customer_id: Optional[str] = None
    items: List[ReserveItemCreate] = Field(..., min_length=1)
    currency: Currency = Currency.TRY
    fx_rate: Optional[Decimal] = Field(None, gt=0)
    expires_at: Optional[datetime] = Field(None, description="Defaults to RESERVE_EXPIRY_DAYS from now")
    notes: Optional[str] = None


class ReserveItemResponse(BaseModel):
    id: int
    product_id: str
    qty_reserved: int
    unit_price: Decimal

    class Config:
        from_attributes = True


class ReserveResponse(BaseModel):
    id: str
    customer_id: Optional[str] = None
    currency: Currency
    status: ReserveStatus
    expires_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    sale_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    total_amount: Decimal
    items: List[ReserveItemResponse] = []

    class Config:
        from_attributes = True


class ReserveListResponse(BaseModel):
    total: int
    reserves: List[ReserveResponse]


class TakenItem(BaseModel):
    item_id: int
    qty: int = Field(..., ge=0)


class ReserveConvert(BaseModel):
    taken: List[TakenItem] = Field(default_factory=list, description="Items left out are taken in full")
    fx_rate: Optional[Decimal] = Field(None, gt=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    tax_included: bool = True
    payment_amount: Optional[Decimal] = Field(None, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class ReserveLineSplitResponse(BaseModel):
    item_id: int
    product_id: str
    qty_reserved: int
    qty_taken: int
    qty_returned: int
    unit_price: Decimal


class ReserveConversionResponse(BaseModel):
    reserve: ReserveResponse
    sale: SaleResponse
    lines: List[ReserveLineSplitResponse]
    total_taken: Decimal
    total_returned: Decimal
    payment: Optional[PaymentResponse] = None
    credit_warning: Optional[CreditWarning] = None


class ExpiredReservesResponse(BaseModel):
    expired: int
    reserve_ids: List[str]
