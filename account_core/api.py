"""
FastAPI REST API Module

REST endpoints over the account registry: opening accounts, deposits,
withdrawals, transfers, freeze/unfreeze/close, interest, statements and
audit queries. Every typed account failure maps to a distinct status code.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn

from .accounts import Account, CheckingTerms
from .config import get_config
from .errors import (
    AccountError, AccountNotFoundError, AccountNotZeroError, AccountStatusError,
    InsufficientFundsError, TransferRollbackFailedError
)
from .logging_config import get_logger, log_action, setup_logging
from .registry import AccountRegistry
from .storage import create_storage
from .transactions import TransactionRecord

logger = get_logger("account_core.api")


# Pydantic models for API requests
class CreateAccountRequest(BaseModel):
    owner_name: str
    account_type: str = Field(..., description="Account type (checking, savings)")
    overdraft_limit: Optional[str] = Field(None, description="Decimal as string, checking only")
    interest_rate: Optional[str] = Field(None, description="Decimal as string, savings only")


class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class TransferRequest(BaseModel):
    source_account_id: str
    target_account_id: str
    amount: str = Field(..., description="Decimal amount as string")


class ReasonRequest(BaseModel):
    reason: str = ""


class RateRequest(BaseModel):
    rate: str = Field(..., description="Decimal rate between 0 and 1")


# Registry context
registry: Optional[AccountRegistry] = None
scheduler = None


def get_registry() -> AccountRegistry:
    global registry
    if registry is None:
        config = get_config()
        registry = AccountRegistry(storage=create_storage(config.database_url), config=config)
        registry.load()
    return registry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and run the interest batch while the app is up"""
    global scheduler
    config = get_config()
    setup_logging(config.log_level, "account_core", config.log_format, config.log_file)

    if config.interest_batch_enabled:
        scheduler = get_registry().create_interest_scheduler()
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()
        scheduler = None


app = FastAPI(
    title="Account Core API",
    description="Bank accounts with status-gated operations and compensating transfers",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(error: Exception) -> HTTPException:
    """Map a typed account failure to an HTTP error"""
    if isinstance(error, AccountNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, TransferRollbackFailedError):
        log_action(logger, "critical", f"Transfer rollback failed: {error}",
                   action="transfer_rollback_failed")
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    elif isinstance(error, InsufficientFundsError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, (AccountStatusError, AccountNotZeroError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(
        status_code=code,
        detail={"error": type(error).__name__, "message": str(error)}
    )


def _record_response(record: TransactionRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "kind": record.kind.value,
        "direction": record.direction.value,
        "amount": str(record.amount.amount),
        "currency": record.amount.currency.code,
        "created_at": record.created_at.isoformat()
    }


def _account_response(account: Account) -> Dict[str, Any]:
    response = {
        "id": account.id,
        "owner_name": account.owner_name,
        "account_type": account.product_type.value,
        "currency": account.currency.code,
        "status": account.status.value,
        "balance": str(account.balance.amount),
        "transaction_count": len(account.transaction_log),
        "created_at": account.created_at.isoformat()
    }
    if isinstance(account.terms, CheckingTerms):
        response["overdraft_limit"] = str(account.terms.overdraft_limit.amount)
        response["overdraft_fee"] = str(account.terms.overdraft_fee.amount)
    else:
        response["interest_rate"] = str(account.terms.interest_rate)
    return response


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/")
async def root():
    """Root endpoint with system information"""
    return {
        "system": "Account Core",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "accounts": "/accounts",
            "transfers": "/transfers",
            "interest": "/interest",
            "audit": "/audit"
        }
    }


# Account endpoints
@app.post("/accounts", status_code=status.HTTP_201_CREATED)
def create_account(request: CreateAccountRequest,
                   registry: AccountRegistry = Depends(get_registry)):
    """Open a checking or savings account"""
    try:
        account = registry.open_account(
            owner_name=request.owner_name,
            product_type=request.account_type,
            overdraft_limit=request.overdraft_limit,
            interest_rate=request.interest_rate
        )
    except (AccountError, ValueError) as e:
        raise _http_error(e)
    return _account_response(account)


@app.get("/accounts")
def list_accounts(registry: AccountRegistry = Depends(get_registry)):
    return {"accounts": [_account_response(a) for a in registry.list_accounts()]}


@app.get("/accounts/{account_id}")
def get_account(account_id: str, registry: AccountRegistry = Depends(get_registry)):
    try:
        return _account_response(registry.get_account(account_id))
    except AccountError as e:
        raise _http_error(e)


@app.post("/accounts/{account_id}/deposit")
def deposit(account_id: str, request: AmountRequest,
            registry: AccountRegistry = Depends(get_registry)):
    try:
        record = registry.deposit(account_id, request.amount)
        account = registry.get_account(account_id)
    except (AccountError, ValueError) as e:
        raise _http_error(e)
    return {"transactions": [_record_response(record)], "balance": str(account.balance.amount)}


@app.post("/accounts/{account_id}/withdraw")
def withdraw(account_id: str, request: AmountRequest,
             registry: AccountRegistry = Depends(get_registry)):
    try:
        records = registry.withdraw(account_id, request.amount)
        account = registry.get_account(account_id)
    except (AccountError, ValueError) as e:
        raise _http_error(e)
    return {
        "transactions": [_record_response(r) for r in records],
        "balance": str(account.balance.amount)
    }


@app.post("/accounts/{account_id}/freeze")
def freeze_account(account_id: str, request: ReasonRequest,
                   registry: AccountRegistry = Depends(get_registry)):
    try:
        account = registry.freeze_account(account_id, request.reason)
    except AccountError as e:
        raise _http_error(e)
    return _account_response(account)


@app.post("/accounts/{account_id}/unfreeze")
def unfreeze_account(account_id: str, request: ReasonRequest,
                     registry: AccountRegistry = Depends(get_registry)):
    try:
        account = registry.unfreeze_account(account_id, request.reason)
    except AccountError as e:
        raise _http_error(e)
    return _account_response(account)


@app.post("/accounts/{account_id}/close")
def close_account(account_id: str, request: ReasonRequest,
                  registry: AccountRegistry = Depends(get_registry)):
    try:
        account = registry.close_account(account_id, request.reason)
    except AccountError as e:
        raise _http_error(e)
    return _account_response(account)


@app.post("/accounts/{account_id}/interest")
def apply_interest(account_id: str, registry: AccountRegistry = Depends(get_registry)):
    """Apply the account's interest rate once"""
    try:
        record = registry.apply_interest(account_id)
        account = registry.get_account(account_id)
    except (AccountError, ValueError) as e:
        raise _http_error(e)
    return {
        "transaction": _record_response(record) if record else None,
        "balance": str(account.balance.amount)
    }


@app.get("/accounts/{account_id}/transactions")
def get_transactions(account_id: str, kind: Optional[str] = None,
                     registry: AccountRegistry = Depends(get_registry)):
    """Transaction log in chronological order, optionally of one kind"""
    try:
        if kind:
            records = registry.get_transactions_by_kind(account_id, kind)
        else:
            records = list(registry.get_account(account_id).transaction_log)
    except (AccountError, ValueError) as e:
        raise _http_error(e)
    return {"transactions": [_record_response(r) for r in records]}


@app.get("/accounts/{account_id}/statement")
def get_statement(account_id: str, registry: AccountRegistry = Depends(get_registry)):
    try:
        lines: List[str] = registry.statement(account_id)
    except AccountError as e:
        raise _http_error(e)
    return {"lines": lines}


# Transfer endpoint
@app.post("/transfers")
def create_transfer(request: TransferRequest,
                    registry: AccountRegistry = Depends(get_registry)):
    try:
        result = registry.transfer(
            request.source_account_id, request.target_account_id, request.amount
        )
    except (AccountError, ValueError) as e:
        raise _http_error(e)
    return {
        "source_account_id": result.source_id,
        "target_account_id": result.target_id,
        "amount": str(result.amount.amount),
        "source_transactions": [_record_response(r) for r in result.source_records],
        "target_transaction": _record_response(result.target_record)
    }


# Interest endpoints
@app.get("/interest/rate")
def get_interest_rate(registry: AccountRegistry = Depends(get_registry)):
    return {"rate": str(registry.rate_provider.get_rate())}


@app.put("/interest/rate")
def set_interest_rate(request: RateRequest, registry: AccountRegistry = Depends(get_registry)):
    try:
        rate = registry.set_interest_rate(request.rate)
    except ValueError as e:
        raise _http_error(e)
    return {"rate": str(rate)}


@app.post("/interest/batch")
def run_interest_batch(registry: AccountRegistry = Depends(get_registry)):
    """Pay interest to every savings account now"""
    return registry.pay_global_interest().to_dict()


# Audit endpoints
@app.get("/audit/events")
def get_audit_events(entity_id: Optional[str] = None, limit: Optional[int] = 100,
                     registry: AccountRegistry = Depends(get_registry)):
    if registry.audit_trail is None:
        return {"events": []}
    if entity_id:
        events = registry.audit_trail.get_events_for_entity("account", entity_id, limit)
    else:
        events = registry.audit_trail.get_all_events(limit=limit)
    return {
        "events": [
            {
                "id": event.id,
                "event_type": event.event_type.value,
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "created_at": event.created_at.isoformat(),
                "metadata": event.metadata
            }
            for event in events
        ]
    }


@app.get("/audit/integrity")
def verify_audit_integrity(registry: AccountRegistry = Depends(get_registry)):
    if registry.audit_trail is None:
        return {"valid": True, "total_events": 0, "hash_errors": [], "chain_breaks": []}
    return registry.audit_trail.verify_integrity()


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "account_core.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
