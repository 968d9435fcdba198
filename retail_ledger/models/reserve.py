import enum
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_ledger.core.database import Base
from retail_ledger.models.enums import Currency
from retail_ledger.utils.ids import generate_custom_id


class ReserveStatus(str, enum.Enum):
    open = "open"
    completed = "completed"
    expired = "expired"
    cancelled = "cancelled"


class Reserve(Base):
    """A hold on product quantities for a customer. Never touches stock."""
    __tablename__ = "reserves"

    id = Column(String(20), primary_key=True, default=lambda: generate_custom_id("RSV"))
    customer_id = Column(String(20), ForeignKey("customers.id"), nullable=True)
    currency = Column(Enum(Currency), nullable=False, default=Currency.TRY)
    status = Column(Enum(ReserveStatus), nullable=False, default=ReserveStatus.open)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    sale_id = Column(String(20), nullable=True)   # sale created on conversion
    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    customer = relationship("Customer")
    items = relationship("ReserveItem", back_populates="reserve", cascade="all, delete-orphan",
                         order_by="ReserveItem.id")

    @property
    def total_amount(self):
        return sum((item.qty_reserved * item.unit_price for item in self.items), 0)


class ReserveItem(Base):
    __tablename__ = "reserve_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reserve_id = Column(String(20), ForeignKey("reserves.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(15), ForeignKey("products.id"), nullable=False)
    qty_reserved = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)   # reserve currency

    reserve = relationship("Reserve", back_populates="items")
    product = relationship("Product")
