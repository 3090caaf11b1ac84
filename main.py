from fastapi import FastAPI, HTTPException, Request, Depends, status
from fastapi.responses import JSONResponse
from typing import Optional
import logging
import sys
import structlog
import time
from contextlib import asynccontextmanager

from adapters import InMemorySubmissionAdapter, RawTransactionFileAdapter, SubmissionAdapter
from config import Settings, get_settings
from exceptions import RosterError
from models import (
    ErrorResponse,
    HealthResponse,
    RoundRequest,
    RoundResponse,
    RoundSummary,
    RunRequest,
    TxStatus,
    TxStatusKind,
    WorkerAccounts,
)
from repositories import AccountRoster, get_account_roster
from services import WorkloadRound


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings())

logger = structlog.get_logger()

# Current round, one per process
_current_round: Optional[WorkloadRound] = None


def get_current_round() -> Optional[WorkloadRound]:
    return _current_round


def reset_current_round():
    """Drop the active round (for testing only)."""
    global _current_round
    _current_round = None


def create_submission_adapter(settings: Settings) -> SubmissionAdapter:
    if settings.output_dir:
        return RawTransactionFileAdapter()
    return InMemorySubmissionAdapter()


def require_round() -> WorkloadRound:
    workload_round = get_current_round()
    if workload_round is None:
        raise HTTPException(status_code=409, detail="No active round")
    return workload_round


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting workload generator")
    yield
    # Shutdown
    logger.info("Shutting down workload generator")


# Create FastAPI app
app = FastAPI(
    title="Transfer Workload Generator",
    description="Deterministic round-robin transfer workload for benchmark harnesses",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=round(process_time, 4)
    )

    return response


# Health check endpoint
@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check service health and current round statistics"
)
async def health_check(roster: AccountRoster = Depends(get_account_roster)):
    workload_round = get_current_round()
    return HealthResponse(
        status="healthy",
        accounts_count=roster.get_accounts_count(),
        workers=workload_round.total_workers if workload_round else 0,
        transactions_generated=workload_round.transactions_generated if workload_round else 0
    )


@app.post(
    "/rounds",
    response_model=RoundResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start Round",
    description="Initialize one workload module per worker for a new round",
    responses={
        201: {"description": "Round initialized"},
        400: {"description": "Account roster cannot be used"},
    }
)
async def start_round(
    round_request: RoundRequest,
    settings: Settings = Depends(get_settings),
    roster: AccountRoster = Depends(get_account_roster)
):
    global _current_round
    try:
        _current_round = WorkloadRound(
            settings,
            create_submission_adapter(settings),
            roster,
            round_index=round_request.round_index,
            total_workers=round_request.total_workers,
            round_arguments=round_request.round_arguments,
        )
    except RosterError as e:
        logger.warning("Round rejected", round_index=round_request.round_index, error=str(e))
        raise HTTPException(status_code=400, detail=str(e))

    return RoundResponse(
        round_index=_current_round.round_index,
        total_workers=_current_round.total_workers,
        accounts_count=roster.get_accounts_count()
    )


@app.post(
    "/rounds/current/workers/{worker_index}/transactions",
    response_model=TxStatus,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Transaction",
    description="Generate one transfer for the worker and hand it to the submission adapter",
    responses={
        404: {"description": "Worker not part of the round"},
        409: {"description": "No active round"},
    }
)
async def submit_transaction(worker_index: int, workload_round: WorkloadRound = Depends(require_round)):
    try:
        worker = workload_round.get_worker(worker_index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))

    result = await worker.submit_transaction()
    if result.status != TxStatusKind.success:
        logger.warning(
            "Transaction submission failed",
            worker_index=worker_index,
            transaction_id=result.transaction_id,
            error=result.error
        )
    return result


@app.post(
    "/rounds/current/run",
    response_model=RoundSummary,
    summary="Run Round",
    description="Run every worker of the current round to completion"
)
async def run_round(run_request: RunRequest, workload_round: WorkloadRound = Depends(require_round)):
    return await workload_round.run(run_request.transactions_per_worker)


@app.get(
    "/rounds/current/workers/{worker_index}/accounts",
    response_model=WorkerAccounts,
    summary="Worker Balances",
    description="Illustrative balances kept by the worker's generator"
)
async def worker_accounts(worker_index: int, workload_round: WorkloadRound = Depends(require_round)):
    try:
        worker = workload_round.get_worker(worker_index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return WorkerAccounts(
        worker_index=worker_index,
        generated=worker.generated,
        accounts=worker.accounts
    )


# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            detail=exc.detail,
            error_code=f"HTTP_{exc.status_code}"
        ).model_dump(mode="json")
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail="Internal server error",
            error_code="INTERNAL_ERROR"
        ).model_dump(mode="json")
    )


# Root endpoint
@app.get("/", include_in_schema=False)
async def root():
    return {"message": "Transfer Workload Generator", "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
