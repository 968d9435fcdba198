from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text

from retail_ledger.core.database import Base
from retail_ledger.utils.dates import utc_now


class PostingFailure(Base):
    """Durable record of a ledger posting that was attempted and rolled back."""
    __tablename__ = "posting_failures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(String(50), nullable=False)   # payment / sale / sale_return / reserve_conversion
    customer_id = Column(String(20), nullable=True)
    ref_id = Column(String(30), nullable=True)
    actor_id = Column(String(64), nullable=True)
    amount = Column(Numeric(15, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    error = Column(Text, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
