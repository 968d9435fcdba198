from sqlalchemy import Boolean, Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_ledger.core.database import Base
from retail_ledger.models.enums import Currency, PaymentMethod, SalePaymentStatus
from retail_ledger.utils.ids import generate_custom_id


class Sale(Base):
    __tablename__ = "sales"

    id = Column(String(20), primary_key=True, default=lambda: generate_custom_id("SALE"))
    customer_id = Column(String(20), ForeignKey("customers.id"), nullable=True)

    # Transaction currency amounts
    subtotal = Column(Numeric(15, 2), nullable=False)
    tax = Column(Numeric(15, 2), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    tax_included = Column(Boolean, nullable=False, default=True)
    currency = Column(Enum(Currency), nullable=False, default=Currency.TRY)
    fx_rate = Column(Numeric(18, 6), nullable=False, default=1)

    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    paid_amount = Column(Numeric(15, 2), nullable=False, default=0)
    returned_amount = Column(Numeric(15, 2), nullable=False, default=0)
    payment_status = Column(Enum(SalePaymentStatus), nullable=False, default=SalePaymentStatus.pending)
    due_date = Column(Date, nullable=True)

    reserve_id = Column(String(20), ForeignKey("reserves.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer", back_populates="sales")
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")
    returns = relationship("SalesReturn", back_populates="sale")
    payments = relationship("Payment", back_populates="sale")
    reserve = relationship("Reserve", foreign_keys=[reserve_id])


class SaleItem(Base):
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(String(20), ForeignKey("sales.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(15), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product")


class SalesReturn(Base):
    __tablename__ = "sales_returns"

    id = Column(String(20), primary_key=True, default=lambda: generate_custom_id("RET"))
    sale_id = Column(String(20), ForeignKey("sales.id"), nullable=False)
    product_id = Column(String(15), ForeignKey("products.id"), nullable=False)
    qty = Column(Integer, nullable=False)
    refund_amount = Column(Numeric(15, 2), nullable=False)   # sale currency
    reason = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sale = relationship("Sale", back_populates="returns")
    product = relationship("Product")
