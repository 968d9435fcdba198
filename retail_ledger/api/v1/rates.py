from fastapi import APIRouter, Depends

from retail_ledger.core.dependencies import get_rate_service
from retail_ledger.schemas.rates import ExchangeRatesResponse
from retail_ledger.services.exchange_rate_service import ExchangeRateService

router = APIRouter()


@router.get("", response_model=ExchangeRatesResponse)
def get_exchange_rates(rates: ExchangeRateService = Depends(get_rate_service)):
    """Current rate table. Falls back to cached or configured rates; never fails."""
    current = rates.get_rates()
    return ExchangeRatesResponse(
        USD=current.usd,
        EUR=current.eur,
        GOLD=current.gold,
        last_update=current.last_update,
        source=current.source,
    )
