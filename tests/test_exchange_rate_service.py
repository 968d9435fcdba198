from decimal import Decimal

import pytest

from retail_ledger.core.config import settings
from retail_ledger.models.enums import Currency
from retail_ledger.services.exchange_rate_service import (
    ExchangeRates,
    ExchangeRateService,
    StaticRateProvider,
)
from retail_ledger.utils.dates import utc_now


class FlakyProvider:
    def __init__(self):
        self.fail = False

    def fetch(self):
        if self.fail:
            raise ConnectionError("rate API unreachable")
        return ExchangeRates(
            usd=Decimal("35.10"),
            eur=Decimal("38.20"),
            gold=Decimal("3300"),
            last_update=utc_now(),
            source="live",
        )


class BrokenProvider:
    def fetch(self):
        return ExchangeRates(usd=Decimal("0"), eur=Decimal("38"), gold=Decimal("1"), last_update=utc_now(),
                             source="live")


def test_static_provider_rates(rates):
    current = rates.get_rates()
    assert current.source == "static"
    assert current.usd == Decimal("34.50")
    assert rates.rate_for(Currency.EUR) == Decimal("37.60")
    assert rates.rate_for(Currency.TRY) == Decimal("1")


def test_first_failure_uses_configured_fallback():
    provider = FlakyProvider()
    provider.fail = True
    service = ExchangeRateService(provider)

    current = service.get_rates()

    assert current.source == "fallback"
    assert current.usd == settings.FALLBACK_USD_RATE
    assert current.eur == settings.FALLBACK_EUR_RATE


def test_failure_after_success_uses_last_known_rates():
    provider = FlakyProvider()
    service = ExchangeRateService(provider)
    assert service.get_rates().source == "live"

    provider.fail = True
    current = service.get_rates()

    assert current.source == "cache"
    assert current.usd == Decimal("35.10")


def test_unusable_rates_are_rejected():
    service = ExchangeRateService(BrokenProvider(), fallback=StaticRateProvider(usd="30", eur="33"))

    current = service.get_rates()

    assert current.source == "fallback"
    assert current.usd == Decimal("30")


def test_resolve_rate(rates):
    assert rates.resolve_rate(Currency.TRY, Decimal("5")) == Decimal("1")
    assert rates.resolve_rate(Currency.USD) == Decimal("34.50")
    assert rates.resolve_rate(Currency.USD, "35.10") == Decimal("35.10")


@pytest.mark.parametrize("fx_rate", [0, "-1", "abc"])
def test_resolve_rate_rejects_bad_rates(rates, fx_rate):
    with pytest.raises(ValueError):
        rates.resolve_rate(Currency.EUR, fx_rate)
