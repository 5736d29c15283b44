import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .logging_config import setup_logging
from .models import (
    WithdrawRequest, WithdrawResponse, AccountBalance, WithdrawalsResponse,
    UpdateBalanceRequest, UpdateBalanceResponse, ErrorResponse,
)
from .service import (
    WithdrawalService, LedgerServiceError, InternalError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_withdrawal_service(request: Request) -> WithdrawalService:
    return request.app.state.withdrawal_service


def require_admin(request: Request, x_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = request.app.state.settings.admin_token
    if expected and not (x_admin_token and secrets.compare_digest(x_admin_token, expected)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin token required")


@router.post(
    "/transactions/withdraw",
    response_model=WithdrawResponse,
    response_model_exclude_none=True,
    tags=["Transactions"],
)
def withdraw(
    request: WithdrawRequest,
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawResponse:
    return service.process_withdrawal(request)


@router.get(
    "/transactions/withdrawals",
    response_model=WithdrawalsResponse,
    response_model_exclude_none=True,
    tags=["Transactions"],
)
def list_withdrawals(service: WithdrawalService = Depends(get_withdrawal_service)) -> WithdrawalsResponse:
    return service.list_withdrawals()


@router.get("/accounts/{account_id}/balance", response_model=AccountBalance, tags=["Accounts"])
def get_account_balance(
    account_id: str,
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> AccountBalance:
    return service.get_account_balance(account_id)


@router.post(
    "/accounts/update-balance",
    response_model=UpdateBalanceResponse,
    dependencies=[Depends(require_admin)],
    tags=["Accounts"],
)
def update_balance(
    request: UpdateBalanceRequest,
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> UpdateBalanceResponse:
    return service.set_account_balance(request)


def _error(status_code: int, message: str, error: Optional[str] = None, **extra) -> JSONResponse:
    body = ErrorResponse(message=message, error=error).model_dump(exclude_none=True)
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(LedgerServiceError)
    async def ledger_error_handler(request: Request, exc: LedgerServiceError):
        if isinstance(exc, InternalError):
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Something went wrong!",
                str(exc) if settings.is_development else "Internal server error",
            )
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        if all(err.get("type") == "missing" for err in exc.errors()):
            return _error(status.HTTP_400_BAD_REQUEST, "missing required fields")
        return _error(status.HTTP_400_BAD_REQUEST, "invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return _error(exc.status_code, "Route not found", path=request.url.path)
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Something went wrong!",
            str(exc) if settings.is_development else "Internal server error",
        )


def create_app(
    service: Optional[WithdrawalService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or (service.settings if service else get_settings())
    setup_logging(settings.log_level, settings.log_format)

    if service is None:
        service = WithdrawalService(settings=settings)
        service.store.seed(settings.seed_balances)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "%s listening on %s:%s (%s)",
            settings.service_name, settings.host, settings.port, settings.environment,
        )
        yield
        logger.info("Shutting down, cancelling pending completions")
        service.shutdown()

    app = FastAPI(
        title="Account Ledger API",
        description="Account balances and withdrawal settlement",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.withdrawal_service = service

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    @app.get("/health", tags=["System"])
    def health_check():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": settings.service_name,
            "version": settings.version,
        }

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=get_settings().host, port=get_settings().port)
