from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from retail_ledger.core.database import Base
from retail_ledger.models.enums import Currency, TransactionKind
from retail_ledger.utils.dates import utc_now


class CustomerTransaction(Base):
    """Append-only customer ledger entry. Rows are never updated or deleted."""
    __tablename__ = "customer_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(20), ForeignKey("customers.id"), nullable=False)
    kind = Column(Enum(TransactionKind), nullable=False)

    ref_type = Column(String(20), nullable=True)   # sale / payment / reserve / customer
    ref_id = Column(String(30), nullable=True)

    amount = Column(Numeric(15, 2), nullable=False)            # transaction currency, positive
    currency = Column(Enum(Currency), nullable=False)
    fx_rate_to_home = Column(Numeric(18, 6), nullable=False)   # snapshot at posting time
    amount_home = Column(Numeric(15, 2), nullable=False)
    balance_after = Column(Numeric(15, 2), nullable=False)

    note = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    customer = relationship("Customer", back_populates="transactions")

    __table_args__ = (
        Index("ix_customer_transactions_customer_date", "customer_id", "occurred_at"),
    )

    def __repr__(self):
        return (
            f"<CustomerTransaction(id={self.id}, customer='{self.customer_id}', "
            f"kind='{self.kind}', amount={self.amount} {self.currency}, balance_after={self.balance_after})>"
        )
