import enum
from sqlalchemy import Column, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from retail_ledger.core.database import Base
from retail_ledger.utils.ids import generate_custom_id


class RiskLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(20), primary_key=True, default=lambda: generate_custom_id("CUS"))
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    tax_number = Column(String(30), nullable=True)

    # Home currency amounts; positive balance = customer owes money
    opening_balance = Column(Numeric(15, 2), nullable=False, default=0)
    current_balance = Column(Numeric(15, 2), nullable=False, default=0)
    credit_limit = Column(Numeric(15, 2), nullable=True)
    risk_level = Column(Enum(RiskLevel), nullable=False, default=RiskLevel.low)
    notes = Column(Text, nullable=True)

    # Optimistic lock: every balance update is a compare-and-swap on this column
    version_id = Column(Integer, nullable=False, default=1)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transactions = relationship(
        "CustomerTransaction",
        back_populates="customer",
        order_by="CustomerTransaction.id",
    )
    sales = relationship("Sale", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<Customer(id='{self.id}', name='{self.name}', balance={self.current_balance})>"
