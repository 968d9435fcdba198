from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.enums import Currency, TransactionKind


class TransactionResponse(BaseModel):
    id: int
    customer_id: str
    kind: TransactionKind
    ref_type: Optional[str] = None
    ref_id: Optional[str] = None
    amount: Decimal
    currency: Currency
    fx_rate_to_home: Decimal
    amount_home: Decimal
    balance_after: Decimal
    note: Optional[str] = None
    created_by: Optional[str] = None
    occurred_at: datetime

    class Config:
        from_attributes = True


class StatementLineResponse(TransactionResponse):
    balance_before: Decimal


class StatementResponse(BaseModel):
    customer_id: str
    customer_name: str
    opening_balance: Decimal
    current_balance: Decimal
    total: int
    entries: List[StatementLineResponse]
