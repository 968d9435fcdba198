from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String, Text

from sqlalchemy.orm import relationship

from retail_ledger.core.database import Base
from retail_ledger.models.enums import Currency, PaymentMethod
from retail_ledger.utils.dates import utc_now
from retail_ledger.utils.ids import generate_custom_id


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(30), primary_key=True, default=lambda: generate_custom_id("PAY"))

    customer_id = Column(String(20), ForeignKey("customers.id"), nullable=False)
    sale_id = Column(String(20), ForeignKey("sales.id"), nullable=True)
    reserve_id = Column(String(20), ForeignKey("reserves.id"), nullable=True)

    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(Enum(Currency), nullable=False, default=Currency.TRY)
    fx_rate = Column(Numeric(18, 6), nullable=False, default=1)
    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    customer = relationship("Customer", back_populates="payments")
    sale = relationship("Sale", back_populates="payments")
