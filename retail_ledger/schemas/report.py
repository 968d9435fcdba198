from pydantic import BaseModel
from typing import Dict, List
from datetime import date
from decimal import Decimal

from retail_ledger.models.enums import PaymentMethod


class CustomerWeekSummaryResponse(BaseModel):
    customer_id: str
    customer_name: str
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    entry_count: int

    class Config:
        from_attributes = True


class WeeklyReportResponse(BaseModel):
    start_date: date
    end_date: date
    total_debit: Decimal
    total_credit: Decimal
    customers: List[CustomerWeekSummaryResponse]

    class Config:
        from_attributes = True


class ZReportResponse(BaseModel):
    report_date: date
    sale_count: int
    total_sales_home: Decimal
    walk_in_sales_home: Decimal
    on_account_sales_home: Decimal
    collections: Dict[PaymentMethod, Decimal]
    total_collected_home: Decimal
    opening_cash: Decimal
    expected_cash: Decimal

    class Config:
        from_attributes = True


class SalesPeriodTotalResponse(BaseModel):
    start_date: date
    sale_count: int
    total_home: Decimal

    class Config:
        from_attributes = True


class SalesSummaryResponse(BaseModel):
    as_of: date
    today: SalesPeriodTotalResponse
    week: SalesPeriodTotalResponse
    month: SalesPeriodTotalResponse

    class Config:
        from_attributes = True
