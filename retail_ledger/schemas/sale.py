from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from retail_ledger.models.enums import Currency, PaymentMethod, SalePaymentStatus
from retail_ledger.schemas.customer import CreditWarning


class SaleItemCreate(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Sale currency; defaults to the product price")


class SaleCreate(BaseModel):
    customer_id: Optional[str] = Field(None, description="Empty for a walk-in sale")
    items: List[SaleItemCreate] = Field(..., min_length=1)
    currency: Currency = Currency.TRY
    fx_rate: Optional[Decimal] = Field(None, gt=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    tax_included: bool = True
    payment_method: PaymentMethod = PaymentMethod.CASH
    paid_amount: Optional[Decimal] = Field(None, ge=0, description="Paid at the till, sale currency")
    due_date: Optional[date] = None
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "customer_id": "CUS-ABCDEFGH",
                "items": [{"product_id": "PRD-ABCDEFGH", "quantity": 2}],
                "currency": "USD",
                "fx_rate": 34.50,
                "tax_rate": 20,
                "tax_included": True,
                "payment_method": "CREDIT_CARD"
            }
        }


class SaleItemResponse(BaseModel):
    id: int
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    class Config:
        from_attributes = True


class SalesReturnResponse(BaseModel):
    id: str
    sale_id: str
    product_id: str
    qty: int
    refund_amount: Decimal
    reason: str
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    id: str
    customer_id: Optional[str] = None
    subtotal: Decimal
    tax: Decimal
    total_amount: Decimal
    tax_rate: Decimal
    tax_included: bool
    currency: Currency
    fx_rate: Decimal
    payment_method: PaymentMethod
    paid_amount: Decimal
    returned_amount: Decimal
    payment_status: SalePaymentStatus
    due_date: Optional[date] = None
    reserve_id: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[SaleItemResponse] = []
    returns: List[SalesReturnResponse] = []

    class Config:
        from_attributes = True


class SaleCreatedResponse(BaseModel):
    sale: SaleResponse
    credit_warning: Optional[CreditWarning] = None


class SaleListResponse(BaseModel):
    total: int
    sales: List[SaleResponse]


class ReturnItemCreate(BaseModel):
    product_id: str = Field(..., min_length=1)
    qty: int = Field(..., gt=0)


class SaleReturnCreate(BaseModel):
    items: List[ReturnItemCreate] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = None


class SaleReturnResponse(BaseModel):
    sale_id: str
    currency: Currency
    refund_total: Decimal
    returned_amount: Decimal
    payment_status: SalePaymentStatus
    returns: List[SalesReturnResponse]
