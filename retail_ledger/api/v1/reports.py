from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from retail_ledger.core.dependencies import get_db
from retail_ledger.schemas.report import SalesSummaryResponse, WeeklyReportResponse, ZReportResponse
from retail_ledger.services.report_service import ReportService

router = APIRouter()


@router.get("/weekly", response_model=WeeklyReportResponse)
def weekly_customer_report(
    start_date: date = Query(..., description="First day of the week"),
    end_date: Optional[date] = Query(None, description="Defaults to start_date + 6 days"),
    db: Session = Depends(get_db),
):
    """Per-customer opening, debits, credits and closing balance, built from the ledger."""
    try:
        report = ReportService(db).weekly_customer_report(start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return WeeklyReportResponse.model_validate(report)


@router.get("/z", response_model=ZReportResponse)
def daily_z_report(
    report_date: Optional[date] = Query(None, description="Defaults to today (UTC)"),
    opening_cash: Decimal = Query(Decimal("0"), ge=0, description="Cash in the drawer at opening"),
    db: Session = Depends(get_db),
):
    """Daily sales count and total at each sale's own rate, collections per payment method and expected cash."""
    try:
        report = ReportService(db).daily_z_report(report_date, opening_cash)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ZReportResponse.model_validate(report)


@router.get("/sales-summary", response_model=SalesSummaryResponse)
def sales_summary(
    as_of: Optional[date] = Query(None, description="Defaults to today (UTC)"),
    db: Session = Depends(get_db),
):
    """Today / this week / this month sales in home currency."""
    return SalesSummaryResponse.model_validate(ReportService(db).sales_summary(as_of))
