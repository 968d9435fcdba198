import enum


class Currency(str, enum.Enum):
    TRY = "TRY"
    USD = "USD"
    EUR = "EUR"


class TransactionKind(str, enum.Enum):
    sale = "sale"
    payment = "payment"
    refund = "refund"
    reserve = "reserve"
    opening = "opening"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    WIRE = "WIRE"
    OTHER = "OTHER"


class SalePaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    partially_paid = "partially_paid"
    overdue = "overdue"
