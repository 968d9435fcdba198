from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.customer import RiskLevel


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    tax_number: Optional[str] = Field(None, max_length=30)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    risk_level: RiskLevel = RiskLevel.low
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    opening_balance: Decimal = Field(default=Decimal("0"), description="Home currency; positive = customer owes")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Ayşe Yılmaz",
                "phone": "+90 532 000 00 00",
                "opening_balance": 1000.00,
                "credit_limit": 10000.00,
                "risk_level": "low"
            }
        }


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    tax_number: Optional[str] = Field(None, max_length=30)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    risk_level: Optional[RiskLevel] = None
    notes: Optional[str] = None


class CustomerResponse(CustomerBase):
    id: str
    opening_balance: Decimal
    current_balance: Decimal
    version_id: int
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerListResponse(BaseModel):
    total: int
    customers: List[CustomerResponse]


class CreditCheckRequest(BaseModel):
    amount_home: Decimal = Field(..., ge=0, description="Incoming sale total in home currency")


class CreditWarning(BaseModel):
    credit_limit: Decimal
    current_balance: Decimal
    projected_balance: Decimal
    overage: Decimal
    message: str

    class Config:
        from_attributes = True


class CreditCheckResponse(BaseModel):
    customer_id: str
    current_balance: Decimal
    credit_limit: Optional[Decimal] = None
    within_limit: bool
    warning: Optional[CreditWarning] = None


class BrokenLinkResponse(BaseModel):
    entry_id: int
    expected_balance_after: Decimal
    recorded_balance_after: Decimal

    class Config:
        from_attributes = True


class ReconciliationResponse(BaseModel):
    customer_id: str
    stored_balance: Decimal
    computed_balance: Decimal
    drift: Decimal
    entry_count: int
    is_consistent: bool
    fixed: bool
    broken_links: List[BrokenLinkResponse]

    class Config:
        from_attributes = True
