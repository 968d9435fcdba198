# retail_ledger/models/__init__.py
from .enums import Currency, TransactionKind, PaymentMethod, SalePaymentStatus
from .customer import Customer, RiskLevel
from .customer_transaction import CustomerTransaction
from .product import Product, ProductUnit, StockMovement, StockMovementType
from .sale import Sale, SaleItem, SalesReturn
from .payment import Payment
from .reserve import Reserve, ReserveItem, ReserveStatus
from .supplier import Supplier, ProductSupplier
from .posting_failure import PostingFailure
