from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.enums import Currency, PaymentMethod


class PaymentCreate(BaseModel):
    """Customer payment request"""
    amount: Decimal = Field(..., gt=0)
    currency: Currency = Currency.TRY
    fx_rate: Optional[Decimal] = Field(
        None, gt=0, description="Defaults to the current rate; payments against a sale use the sale rate"
    )
    payment_method: PaymentMethod = PaymentMethod.CASH
    sale_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v.as_tuple().exponent < -2:
            raise ValueError('Max 2 decimal places')
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "amount": 500.00,
                "currency": "TRY",
                "payment_method": "CASH",
                "notes": "Weekly payment"
            }
        }


class PaymentResponse(BaseModel):
    id: str
    customer_id: str
    sale_id: Optional[str] = None
    reserve_id: Optional[str] = None
    amount: Decimal
    currency: Currency
    fx_rate: Decimal
    payment_method: PaymentMethod
    notes: Optional[str] = None
    created_by: Optional[str] = None
    paid_at: datetime

    class Config:
        from_attributes = True


class PaymentRecordedResponse(BaseModel):
    payment: PaymentResponse
    amount_home: Decimal
    balance_after: Decimal


class PaymentListResponse(BaseModel):
    total: int
    payments: List[PaymentResponse]
