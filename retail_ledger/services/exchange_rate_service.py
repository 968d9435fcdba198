"""
Exchange Rate Service
Wraps a rate provider (home currency per 1 USD / EUR / gram of gold).

get_rates() never raises:
1. provider result, when it returns usable rates
2. last known good result from an earlier successful fetch
3. static fallback rates from settings
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from retail_ledger.core.config import settings
from retail_ledger.logger_config import logger
from retail_ledger.models.enums import Currency
from retail_ledger.services.ledger_engine import RateTable, fx_rate_for, to_decimal
from retail_ledger.utils.dates import utc_now


@dataclass(frozen=True)
class ExchangeRates:
    usd: Decimal
    eur: Decimal
    gold: Decimal
    last_update: datetime
    source: str

    def rate_table(self) -> RateTable:
        return RateTable(usd=self.usd, eur=self.eur)

    def is_usable(self) -> bool:
        return all(rate is not None and rate > 0 for rate in (self.usd, self.eur))


class RateProvider(Protocol):
    def fetch(self) -> ExchangeRates:
        ...


class StaticRateProvider:
    """Configured constants. Used on its own when no live provider is wired in."""

    def __init__(self, usd=None, eur=None, gold=None):
        self.usd = Decimal(str(usd)) if usd is not None else settings.FALLBACK_USD_RATE
        self.eur = Decimal(str(eur)) if eur is not None else settings.FALLBACK_EUR_RATE
        self.gold = Decimal(str(gold)) if gold is not None else settings.FALLBACK_GOLD_RATE

    def fetch(self) -> ExchangeRates:
        return ExchangeRates(
            usd=self.usd,
            eur=self.eur,
            gold=self.gold,
            last_update=utc_now(),
            source="static",
        )


class ExchangeRateService:
    def __init__(self, provider: Optional[RateProvider] = None, fallback: Optional[StaticRateProvider] = None):
        self.fallback = fallback or StaticRateProvider()
        self.provider = provider or self.fallback
        self._last_good: Optional[ExchangeRates] = None

    def get_rates(self) -> ExchangeRates:
        try:
            rates = self.provider.fetch()
            if rates is None or not rates.is_usable():
                raise ValueError("provider returned no usable rates")
            self._last_good = rates
            logger.debug(f"Exchange rates from {rates.source}: USD={rates.usd} EUR={rates.eur}")
            return rates
        except Exception as e:
            # Rate lookups are non-fatal; degrade to cached or static rates
            if self._last_good is not None:
                logger.warning(f"Rate provider failed ({e}); using last known rates from {self._last_good.last_update}")
                return replace(self._last_good, source="cache")
            logger.warning(f"Rate provider failed ({e}); using fallback rates")
            return replace(self.fallback.fetch(), source="fallback")

    def rate_table(self) -> RateTable:
        return self.get_rates().rate_table()

    def rate_for(self, currency: Currency) -> Decimal:
        return fx_rate_for(currency, self.rate_table())

    def resolve_rate(self, currency: Currency, fx_rate=None) -> Decimal:
        """Explicit rate from the request wins; home currency is always 1."""
        currency = Currency(currency)
        if fx_rate is None or currency == Currency.TRY:
            return self.rate_for(currency)
        rate = to_decimal(fx_rate, "fx_rate")
        if rate <= 0:
            raise ValueError("fx_rate must be positive")
        return rate


default_rate_service = ExchangeRateService()
