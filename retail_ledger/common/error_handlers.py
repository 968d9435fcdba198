from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from retail_ledger.common.exceptions import LedgerError
from retail_ledger.common.response import ErrorResponse
from retail_ledger.logger_config import logger


def register_error_handlers(app: FastAPI):
    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, e: LedgerError):
        if e.status_code >= 500:
            logger.error(f"Ledger error on {request.url.path}: {e.message}")
        else:
            logger.warning(f"Ledger error on {request.url.path}: {e.message}")
        return ErrorResponse.send(message=e.message, status_code=e.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, e: StarletteHTTPException):
        # Handle HTTP (e.g. 404, 400)
        return ErrorResponse.send(message=str(e.detail), status_code=e.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, e: RequestValidationError):
        return ErrorResponse.send(
            message="Validation error",
            status_code=422,
            errors=e.errors(),
        )

    @app.exception_handler(Exception)
    async def handle_exception(request: Request, e: Exception):
        # Log the exception with traceback
        logger.exception("Unhandled exception occurred")
        return ErrorResponse.send(
            message="Internal Server Error",
            status_code=500,
            errors=[str(e)],
        )
