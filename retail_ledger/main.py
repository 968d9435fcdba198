from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from retail_ledger import __version__
from retail_ledger.api.v1 import customers, products, rates, reports, reserves, sales, suppliers
from retail_ledger.common.error_handlers import register_error_handlers
from retail_ledger.core.config import settings
from retail_ledger.core.database import Base, engine
from retail_ledger.logger_config import logger
import retail_ledger.models  # noqa: F401  (registers tables on Base.metadata)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        # Local/dev convenience; deployed databases are managed by Alembic
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Retail Ledger", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Register API routers
    app.include_router(customers.router, prefix="/api/v1/customers", tags=["customers"])
    app.include_router(products.router, prefix="/api/v1/products", tags=["products"])
    app.include_router(sales.router, prefix="/api/v1/sales", tags=["sales"])
    app.include_router(reserves.router, prefix="/api/v1/reserves", tags=["reserves"])
    app.include_router(suppliers.router, prefix="/api/v1/suppliers", tags=["suppliers"])
    app.include_router(rates.router, prefix="/api/v1/exchange-rates", tags=["exchange-rates"])
    app.include_router(reports.router, prefix="/api/v1/reports", tags=["reports"])

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Retail Ledger APIs!", "env": settings.APP_ENV}

    return app


app = create_app()
