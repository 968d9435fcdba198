from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal


class ExchangeRatesResponse(BaseModel):
    """Home currency (TRY) per unit; gold is per gram."""
    USD: Decimal
    EUR: Decimal
    GOLD: Decimal
    last_update: datetime
    source: str
