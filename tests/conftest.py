"""
Shared fixtures: an in-memory SQLite database per test, an actor, a fixed
rate table (USD 34.50, EUR 37.60) and a TestClient wired to both.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from retail_ledger.core.context import ActorContext
from retail_ledger.core.database import Base
from retail_ledger.core.dependencies import get_db, get_rate_service
from retail_ledger.main import app
from retail_ledger.services.customer_service import create_customer
from retail_ledger.services.exchange_rate_service import ExchangeRateService, StaticRateProvider
from retail_ledger.services.product_service import create_product
import retail_ledger.models  # noqa: F401


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def actor():
    return ActorContext(actor_id="tester")


@pytest.fixture
def rates():
    return ExchangeRateService(StaticRateProvider(usd="34.50", eur="37.60", gold="3000"))


@pytest.fixture
def client(session_factory, rates):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_service] = lambda: rates
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------- factories ----------

@pytest.fixture
def make_customer(db, actor):
    def _make(name="Ayşe Yılmaz", opening_balance="0", **kwargs):
        return create_customer(db, actor, name=name, opening_balance=Decimal(opening_balance), **kwargs)
    return _make


@pytest.fixture
def make_product(db, actor):
    counter = {"n": 0}

    def _make(name=None, sale_price="100", stock_quantity=50, **kwargs):
        counter["n"] += 1
        return create_product(
            db,
            actor,
            name=name or f"Product {counter['n']}",
            sale_price=Decimal(sale_price),
            stock_quantity=stock_quantity,
            **kwargs,
        )
    return _make
