"""
FastAPI REST API Module

Thin HTTP adapter over the transaction engine: account lookups, paginated
transaction history and transaction creation. Runs on port 8090.
"""

from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from . import __version__
from .config import LedgerConfig, get_config
from .engine import TransactionEngine
from .exceptions import AccountNotFound, InsufficientFunds, StorageError, ValidationError
from .logging_config import get_logger
from .schemas import (
    AccountResponse, CreateTransactionRequest, ErrorResponse, TransactionPageResponse, TransactionResponse
)
from .seed import seed_sample_accounts
from .storage import create_store

logger = get_logger("bank_ledger.api")

# Every route reports failures as {"error": message}
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request or rejected transaction"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


def get_engine(request: Request) -> TransactionEngine:
    """Dependency returning the engine owned by the application"""
    return request.app.state.engine


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _register_error_handlers(app: FastAPI) -> None:
    async def client_error(request: Request, exc):
        return _error(status.HTTP_400_BAD_REQUEST, exc.message)

    for exc_class in (ValidationError, AccountNotFound, InsufficientFunds):
        app.add_exception_handler(exc_class, client_error)

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError):
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc.message)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_shape_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid request: {problems}")


def create_app(engine: Optional[TransactionEngine] = None, config: Optional[LedgerConfig] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        engine: Engine to serve. When omitted, a store is built from config
            at startup, seeded if configured, and closed at shutdown.
        config: Configuration, defaults to the process configuration
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            yield
            return

        store = create_store(config)
        if config.seed_sample_data:
            await seed_sample_accounts(store)
        app.state.engine = TransactionEngine(store, config)
        logger.info("Ledger ready (%s storage)", config.storage_backend)
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(
        title="Bank Ledger API",
        description="Accounts and atomic ledger transactions",
        version=__version__,
        lifespan=lifespan
    )
    if engine is not None:
        app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "bank_ledger_api",
            "version": __version__
        }

    @app.get("/api/accounts", response_model=List[AccountResponse], responses=ERROR_RESPONSES)
    async def list_accounts(engine: TransactionEngine = Depends(get_engine)):
        """List all accounts"""
        accounts = await engine.list_accounts()
        return [AccountResponse.from_account(a) for a in accounts]

    @app.get("/api/accounts/{account_id}", response_model=AccountResponse, responses=ERROR_RESPONSES)
    async def get_account(account_id: str, engine: TransactionEngine = Depends(get_engine)):
        """Get account details"""
        account = await engine.get_account(account_id)
        return AccountResponse.from_account(account)

    @app.get(
        "/api/accounts/{account_id}/transactions",
        response_model=TransactionPageResponse,
        responses=ERROR_RESPONSES
    )
    async def list_transactions(
        account_id: str,
        page: int = Query(1),
        limit: int = Query(config.default_page_size),
        engine: TransactionEngine = Depends(get_engine)
    ):
        """Get one page of an account's transactions, newest first"""
        result = await engine.list_transactions(account_id, page=page, limit=limit)
        return TransactionPageResponse.from_page(result)

    @app.post(
        "/api/accounts/{account_id}/transactions",
        response_model=TransactionResponse,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES
    )
    async def create_transaction(
        account_id: str,
        request: CreateTransactionRequest,
        engine: TransactionEngine = Depends(get_engine)
    ):
        """Record a deposit, withdrawal or transfer"""
        transaction = await engine.create_transaction(
            account_id,
            request.type,
            request.amount,
            request.description
        )
        return TransactionResponse.from_transaction(transaction)

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "bank_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
