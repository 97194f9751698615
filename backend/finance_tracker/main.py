import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .batch_processor import BatchProcessor, SourceFile
from .config import Settings, get_settings
from .errors import ParseError, RowValidationError, SchemaViolationError, StoreUnavailableError
from .ingestion import BulkIngestionService
from .models import (
    BatchPreviewResponse,
    BulkTransactionRequest,
    BulkUploadResponse,
    CategoryBreakdown,
    MonthlyOverview,
    StoredTransaction,
    TransactionStats,
    WireTransaction,
)
from .reports import category_breakdown, compute_stats, monthly_overview
from .row_validator import validate_payload
from .store import JsonFileTransactionStore, TransactionStore
from .tracing import IngestionTracer

logger = logging.getLogger(__name__)

EMPTY_BULK_MESSAGE = "Transactions array is required and cannot be empty"

router = APIRouter(prefix="/api")


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_ingestion_service(request: Request) -> BulkIngestionService:
    return request.app.state.ingestion


def get_batch_processor(request: Request) -> BatchProcessor:
    return request.app.state.batch_processor


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/transactions", response_model=List[StoredTransaction])
def list_transactions(
    store: TransactionStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Most recent transactions, newest date first"""
    return store.recent(settings.recent_transactions_limit)


@router.post("/transactions", status_code=201, response_model=StoredTransaction)
def create_transaction(
    record: WireTransaction,
    store: TransactionStore = Depends(get_store),
):
    """Create a single transaction"""
    try:
        transaction = validate_payload(record)
    except RowValidationError as exc:
        logger.info("Validation failed: %s", exc.message)
        raise HTTPException(status_code=400, detail=exc.message)

    try:
        stored = store.insert(transaction)
    except SchemaViolationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StoreUnavailableError:
        logger.exception("Error in POST /api/transactions")
        raise HTTPException(status_code=500, detail="Error creating transaction")

    logger.info("Transaction saved successfully: %s", stored.id)
    return stored


@router.post("/transactions/bulk", response_model=BulkUploadResponse)
def create_transactions_bulk(
    payload: Optional[BulkTransactionRequest] = Body(None),
    service: BulkIngestionService = Depends(get_ingestion_service),
):
    """Validate and persist each transaction independently"""
    if payload is None or not payload.transactions:
        raise HTTPException(status_code=400, detail=EMPTY_BULK_MESSAGE)

    try:
        return service.ingest(payload.transactions)
    except StoreUnavailableError:
        logger.exception("Error in POST /api/transactions/bulk")
        raise HTTPException(status_code=500, detail="Error processing bulk transactions")


@router.post("/transactions/preview", response_model=BatchPreviewResponse)
async def preview_upload(
    files: List[UploadFile] = File(...),
    processor: BatchProcessor = Depends(get_batch_processor),
):
    """Parse and validate uploaded spreadsheets without saving anything"""
    sources = []
    for upload in files:
        if not upload.filename:
            raise HTTPException(status_code=400, detail="No file provided")
        sources.append(SourceFile(name=upload.filename, content=await upload.read()))

    try:
        batch = processor.process(sources)
    except ParseError as exc:
        raise HTTPException(status_code=400, detail=f"Could not parse {exc}")
    return BatchPreviewResponse.from_batch(batch)


@router.get("/stats", response_model=TransactionStats)
def get_stats(store: TransactionStore = Depends(get_store)):
    return compute_stats(store.list_transactions())


@router.get("/monthly-overview", response_model=List[MonthlyOverview])
def get_monthly_overview(store: TransactionStore = Depends(get_store)):
    return monthly_overview(store.list_transactions())


@router.get("/category-breakdown", response_model=List[CategoryBreakdown])
def get_category_breakdown(store: TransactionStore = Depends(get_store)):
    return category_breakdown(store.list_transactions())


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body: " + "; ".join(problems)},
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TransactionStore] = None,
    tracer: Optional[IngestionTracer] = None,
) -> FastAPI:
    """
    Build the API application.

    The store is opened here, once, so a store that cannot be reached stops
    the app from being built at all.

    Raises:
        StoreUnavailableError: if no store is given and the configured one
            cannot be opened
    """
    settings = settings or get_settings()
    if store is None:
        store = JsonFileTransactionStore.connect(settings.store_path)
    tracer = tracer or IngestionTracer.from_settings(settings)

    app = FastAPI(title=settings.api_title)
    app.state.settings = settings
    app.state.store = store
    app.state.ingestion = BulkIngestionService(
        store,
        max_workers=settings.bulk_max_workers,
        persist_timeout=settings.persist_timeout_seconds,
        tracer=tracer,
    )
    app.state.batch_processor = BatchProcessor(tracer=tracer)

    # CORS middleware for the browser dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/")
    def read_root():
        return {"message": settings.api_title}

    app.include_router(router)
    return app
