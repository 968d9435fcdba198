from typing import Optional

from fastapi import Header

from retail_ledger.core.context import ActorContext
from retail_ledger.core.database import SessionLocal
from retail_ledger.services.exchange_rate_service import ExchangeRateService, default_rate_service


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(x_actor_id: Optional[str] = Header(None)) -> ActorContext:
    """
    Build the actor context for the request.
    The caller identifies itself with the X-Actor-Id header; there is no
    authentication layer in front of the ledger.
    """
    actor_id = x_actor_id.strip() if x_actor_id and x_actor_id.strip() else None
    return ActorContext(actor_id=actor_id, source="api")


def get_rate_service() -> ExchangeRateService:
    """Dependency returning the process-wide exchange rate service."""
    return default_rate_service
