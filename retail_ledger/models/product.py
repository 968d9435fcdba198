import enum
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_ledger.core.database import Base
from retail_ledger.models.enums import Currency
from retail_ledger.utils.ids import generate_custom_id


class ProductUnit(str, enum.Enum):
    PIECE = "PIECE"
    LITRE = "LITRE"
    METRE = "METRE"
    GRAM = "GRAM"
    KG = "KG"
    M2 = "M2"
    M3 = "M3"


class StockMovementType(str, enum.Enum):
    purchase = "purchase"
    sale = "sale"
    return_ = "return"
    reserve_out = "reserve_out"
    reserve_in = "reserve_in"
    adjustment = "adjustment"


class Product(Base):
    __tablename__ = "products"

    id = Column(String(15), primary_key=True, default=lambda: generate_custom_id("PRD"))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String(50), unique=True, nullable=True)
    barcode = Column(String(50), unique=True, nullable=True)
    unit = Column(Enum(ProductUnit), nullable=False, default=ProductUnit.PIECE)

    stock_quantity = Column(Integer, nullable=False, default=0)
    min_stock_level = Column(Integer, nullable=False, default=0)

    purchase_price = Column(Numeric(15, 2), nullable=False, default=0)
    purchase_currency = Column(Enum(Currency), nullable=False, default=Currency.TRY)
    purchase_fx_rate = Column(Numeric(18, 6), nullable=False, default=1)
    sale_price = Column(Numeric(15, 2), nullable=False, default=0)   # home currency

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    movements = relationship("StockMovement", back_populates="product", order_by="StockMovement.id")
    supplier_prices = relationship("ProductSupplier", back_populates="product")

    def __repr__(self):
        return f"<Product(id='{self.id}', name='{self.name}', stock={self.stock_quantity})>"


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(15), ForeignKey("products.id"), nullable=False)
    change_qty = Column(Integer, nullable=False)    # signed
    type = Column(Enum(StockMovementType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    ref_type = Column(String(20), nullable=True)
    ref_id = Column(String(30), nullable=True)
    unit_cost = Column(Numeric(15, 2), nullable=True)
    fx_rate = Column(Numeric(18, 6), nullable=True)
    note = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="movements")
