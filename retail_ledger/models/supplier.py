from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_ledger.core.database import Base
from retail_ledger.models.enums import Currency
from retail_ledger.utils.ids import generate_custom_id


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(String(20), primary_key=True, default=lambda: generate_custom_id("SUP"))
    name = Column(String(255), nullable=False)
    contact_person = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product_prices = relationship("ProductSupplier", back_populates="supplier")


class ProductSupplier(Base):
    __tablename__ = "product_suppliers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(15), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(String(20), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    currency = Column(Enum(Currency), nullable=False, default=Currency.TRY)
    fx_rate_at_purchase = Column(Numeric(18, 6), nullable=False, default=1)
    last_purchase_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="supplier_prices")
    supplier = relationship("Supplier", back_populates="product_prices")

    __table_args__ = (
        UniqueConstraint("product_id", "supplier_id", name="uq_product_supplier"),
    )
