from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from retail_ledger.logger_config import logger
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.enums import PaymentMethod, TransactionKind
from retail_ledger.models.payment import Payment
from retail_ledger.models.sale import Sale
from retail_ledger.services.ledger_engine import balance_before, money, to_home
from retail_ledger.utils.dates import day_end_exclusive, day_start, ensure_utc, utc_now


DEBIT_KINDS = (TransactionKind.sale, TransactionKind.reserve)
CREDIT_KINDS = (TransactionKind.payment, TransactionKind.refund)


@dataclass
class CustomerWeekSummary:
    customer_id: str
    customer_name: str
    opening_balance: Decimal
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")
    closing_balance: Decimal = Decimal("0.00")
    entry_count: int = 0


@dataclass
class WeeklyReport:
    start_date: date
    end_date: date
    customers: List[CustomerWeekSummary] = field(default_factory=list)

    @property
    def total_debit(self) -> Decimal:
        return money(sum((c.total_debit for c in self.customers), Decimal("0")))

    @property
    def total_credit(self) -> Decimal:
        return money(sum((c.total_credit for c in self.customers), Decimal("0")))


def _empty_collections() -> Dict[PaymentMethod, Decimal]:
    return {method: Decimal("0.00") for method in PaymentMethod}


@dataclass
class ZReport:
    """End of day: sales at their own fx snapshot and money taken in, per payment method."""
    report_date: date
    sale_count: int = 0
    total_sales_home: Decimal = Decimal("0.00")
    walk_in_sales_home: Decimal = Decimal("0.00")
    on_account_sales_home: Decimal = Decimal("0.00")
    collections: Dict[PaymentMethod, Decimal] = field(default_factory=_empty_collections)
    opening_cash: Decimal = Decimal("0.00")

    @property
    def total_collected_home(self) -> Decimal:
        return money(sum(self.collections.values(), Decimal("0")))

    @property
    def expected_cash(self) -> Decimal:
        return money(self.opening_cash + self.collections[PaymentMethod.CASH])


@dataclass
class SalesPeriodTotal:
    start_date: date
    sale_count: int = 0
    total_home: Decimal = Decimal("0.00")


@dataclass
class SalesSummary:
    as_of: date
    today: SalesPeriodTotal
    week: SalesPeriodTotal
    month: SalesPeriodTotal


class ReportService:
    """Customer activity and sales summaries. Home amounts always use the stored fx snapshot."""

    def __init__(self, db: Session):
        self.db = db

    def weekly_customer_report(self, start_date: date, end_date: Optional[date] = None) -> WeeklyReport:
        end_date = end_date or start_date + timedelta(days=6)
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")

        entries = (
            self.db.query(CustomerTransaction)
            .options(joinedload(CustomerTransaction.customer))
            .filter(
                CustomerTransaction.occurred_at >= day_start(start_date),
                CustomerTransaction.occurred_at < day_end_exclusive(end_date),
            )
            .order_by(CustomerTransaction.customer_id.asc(), CustomerTransaction.id.asc())
            .all()
        )
        logger.debug(f"Weekly report {start_date}..{end_date}: {len(entries)} ledger entries")

        summaries = OrderedDict()
        for entry in entries:
            summary = summaries.get(entry.customer_id)
            if summary is None:
                summary = CustomerWeekSummary(
                    customer_id=entry.customer_id,
                    customer_name=entry.customer.name,
                    opening_balance=balance_before(entry.kind, entry.amount_home, entry.balance_after),
                )
                summaries[entry.customer_id] = summary

            if entry.kind in DEBIT_KINDS:
                summary.total_debit = money(summary.total_debit + entry.amount_home)
            elif entry.kind in CREDIT_KINDS:
                summary.total_credit = money(summary.total_credit + entry.amount_home)
            summary.closing_balance = money(entry.balance_after)
            summary.entry_count += 1

        report = WeeklyReport(start_date=start_date, end_date=end_date)
        report.customers = sorted(summaries.values(), key=lambda s: s.customer_name.lower())
        return report

    def _sales_between(self, start_date: date, end_date: date) -> List[Sale]:
        return (
            self.db.query(Sale)
            .filter(Sale.created_at >= day_start(start_date), Sale.created_at < day_end_exclusive(end_date))
            .order_by(Sale.created_at.asc())
            .all()
        )

    def daily_z_report(self, report_date: Optional[date] = None, opening_cash=Decimal("0")) -> ZReport:
        """
        Daily close for the till.

        Sales are counted on the day they were made and converted with their own
        fx_rate, never today's rate. Collections are walk-in sales (paid in full
        at the till) plus customer payments received that day; expected cash is
        the opening float plus cash collections.
        """
        report_date = report_date or utc_now().date()
        opening_cash = money(opening_cash)
        if opening_cash < 0:
            raise ValueError("opening_cash cannot be negative")

        report = ZReport(report_date=report_date, opening_cash=opening_cash)

        for sale in self._sales_between(report_date, report_date):
            amount_home = to_home(sale.total_amount, sale.fx_rate)
            report.sale_count += 1
            report.total_sales_home = money(report.total_sales_home + amount_home)
            if sale.customer_id is None:
                report.walk_in_sales_home = money(report.walk_in_sales_home + amount_home)
                method = PaymentMethod(sale.payment_method)
                report.collections[method] = money(
                    report.collections[method] + to_home(sale.paid_amount, sale.fx_rate)
                )
            else:
                report.on_account_sales_home = money(report.on_account_sales_home + amount_home)

        payments = (
            self.db.query(Payment)
            .filter(Payment.paid_at >= day_start(report_date), Payment.paid_at < day_end_exclusive(report_date))
            .all()
        )
        for payment in payments:
            method = PaymentMethod(payment.payment_method)
            report.collections[method] = money(report.collections[method] + to_home(payment.amount, payment.fx_rate))

        logger.info(
            f"Z report {report_date}: {report.sale_count} sale(s), {report.total_sales_home} home, "
            f"{len(payments)} payment(s)"
        )
        return report

    def sales_summary(self, as_of: Optional[date] = None) -> SalesSummary:
        """Today, this week (from Monday) and this month, in home currency."""
        as_of = as_of or utc_now().date()
        summary = SalesSummary(
            as_of=as_of,
            today=SalesPeriodTotal(start_date=as_of),
            week=SalesPeriodTotal(start_date=as_of - timedelta(days=as_of.weekday())),
            month=SalesPeriodTotal(start_date=as_of.replace(day=1)),
        )
        periods = (summary.today, summary.week, summary.month)

        earliest = min(period.start_date for period in periods)
        for sale in self._sales_between(earliest, as_of):
            sale_day = ensure_utc(sale.created_at).date()
            amount_home = to_home(sale.total_amount, sale.fx_rate)
            for period in periods:
                if sale_day >= period.start_date:
                    period.sale_count += 1
                    period.total_home = money(period.total_home + amount_home)
        return summary
