"""FastAPI application for organizing reimbursement invoices.

Production-ready API with:
- Health and readiness checks
- Model service configuration and trip metadata persistence
- Person management with per-person invoice uploads
- Concurrent per-file extraction with independent outcomes
- Manual correction, retry and deletion of invoices
- Detail and summary spreadsheet exports
- Prometheus metrics for monitoring

State lives in one ``AppState`` owned by this module and is saved to the
local JSON store after every mutating request.

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import asyncio
import threading
import time
from decimal import Decimal
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from invoice_organizer.api import metrics
from invoice_organizer.documents.classifier import is_supported_upload
from invoice_organizer.export.service import (
    XLSX_MEDIA_TYPE,
    ExportStats,
    collect_stats,
    export_detail,
    export_summary,
    has_exportable_invoices,
)
from invoice_organizer.extraction.openai_provider import OpenAIStructuringProvider
from invoice_organizer.extraction.pipeline import ExtractionPipeline
from invoice_organizer.extraction.schema import InvoiceType
from invoice_organizer.ocr.factory import create_ocr_service
from invoice_organizer.shared.config import get_settings
from invoice_organizer.shared.errors import (
    ConfigurationMissingError,
    InvalidStateTransitionError,
    RecordNotFoundError,
    UnsupportedFormatError,
)
from invoice_organizer.shared.logging import configure_logging
from invoice_organizer.state.models import (
    InvoiceRecord,
    InvoiceStatus,
    LLMConfig,
    PersonRecord,
    TripInfo,
)
from invoice_organizer.storage.service import StateStore

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title="Invoice Organizer",
    description="Receipt OCR, LLM field extraction and reimbursement spreadsheet export",
    version=settings.service_version,
)

store = StateStore(settings)
state = store.load_state()
pipeline = ExtractionPipeline(
    settings,
    provider=OpenAIStructuringProvider(settings),
    ocr_service=create_ocr_service(settings),
)
_save_lock = threading.Lock()


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    # Route template keeps ids out of the label set
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=endpoint,
    ).observe(duration)

    return response


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvalidStateTransitionError)
async def conflict_handler(request: Request, exc: InvalidStateTransitionError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(ConfigurationMissingError)
async def configuration_handler(request: Request, exc: ConfigurationMissingError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": exc.message, "code": exc.code},
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool


class PersonRequest(BaseModel):
    """Create or rename a person."""

    name: str = Field(..., min_length=1)
    employee_id: str = Field(..., min_length=1, description="Employee or student number")


class InvoiceEditRequest(BaseModel):
    """Manual correction of an invoice's fields."""

    type: InvoiceType | None = None
    amount: Decimal | None = Field(None, ge=0)
    date: str | None = Field(None, description="YYYY-MM-DD")
    description: str | None = None


class SummaryExportRequest(BaseModel):
    """Trip metadata required by the summary export."""

    competition_name: str = Field(..., min_length=1)
    time: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    team_name: str = Field(..., min_length=1)
    remarks: str = ""


class UploadOutcome(BaseModel):
    """Outcome of one uploaded file.

    ``invoice_id`` is None when the file was rejected before a record was
    created; ``status`` is None when the record was deleted before or during
    parsing.
    """

    file_name: str
    invoice_id: str | None = None
    status: InvoiceStatus | None = None
    error: str | None = None
    error_code: str | None = None


class UploadResponse(BaseModel):
    """Batch upload response."""

    person_id: str
    results: list[UploadOutcome]


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Liveness check endpoint."""
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint."""
    return ReadinessResponse(ready=True)


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


# Configuration and trip metadata


@app.get("/api/v1/config", response_model=LLMConfig, tags=["Settings"])
def get_config() -> LLMConfig:
    """Return the model service configuration."""
    return state.config


@app.put("/api/v1/config", response_model=LLMConfig, tags=["Settings"])
def put_config(config: LLMConfig) -> LLMConfig:
    """Replace and persist the model service configuration."""
    with _save_lock:
        state.set_config(config)
        store.save_config(state.config)
    return state.config


@app.get("/api/v1/trip", response_model=TripInfo, tags=["Settings"])
def get_trip() -> TripInfo:
    """Return the saved trip metadata."""
    return state.trip


@app.put("/api/v1/trip", response_model=TripInfo, tags=["Settings"])
def put_trip(trip: TripInfo) -> TripInfo:
    """Replace and persist the trip metadata."""
    with _save_lock:
        state.set_trip(trip)
        store.save_trip(state.trip)
    return state.trip


# Persons


def _save_persons() -> None:
    # Snapshot and write under one lock so the file only moves forward
    with _save_lock:
        store.save_persons(state.persons())


@app.get("/api/v1/persons", response_model=list[PersonRecord], tags=["Persons"])
def list_persons() -> list[PersonRecord]:
    """List persons with their invoices."""
    return state.persons()


@app.post(
    "/api/v1/persons",
    response_model=PersonRecord,
    status_code=status.HTTP_201_CREATED,
    tags=["Persons"],
)
def create_person(body: PersonRequest) -> PersonRecord:
    """Add a claimant."""
    person = state.add_person(body.name, body.employee_id)
    _save_persons()
    return person


@app.put("/api/v1/persons/{person_id}", response_model=PersonRecord, tags=["Persons"])
def update_person(person_id: str, body: PersonRequest) -> PersonRecord:
    """Rename a claimant or change their employee id."""
    person = state.update_person(person_id, body.name, body.employee_id)
    _save_persons()
    return person


@app.delete(
    "/api/v1/persons/{person_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Persons"]
)
def delete_person(person_id: str) -> Response:
    """Delete a claimant and every invoice they own."""
    state.delete_person(person_id)
    _save_persons()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Invoices


def _require_owner(person_id: str, invoice_id: str) -> None:
    if state.owner_of(invoice_id) != person_id:
        raise RecordNotFoundError(f"Invoice not found: {invoice_id}")


async def _parse_invoice(invoice_id: str) -> InvoiceRecord | None:
    """Run one extraction attempt off the event loop and record metrics."""
    start = time.time()
    record = await run_in_threadpool(pipeline.process, state, invoice_id)
    metrics.invoice_parse_duration_seconds.observe(time.time() - start)
    outcome = record.status.value if record is not None else "skipped"
    metrics.invoices_parsed_total.labels(status=outcome).inc()
    return record


async def _upload_outcome(file_name: str, invoice_id: str) -> UploadOutcome:
    try:
        record = await _parse_invoice(invoice_id)
    except ConfigurationMissingError as e:
        # Record stays pending; the user can parse it once configured
        return UploadOutcome(
            file_name=file_name,
            invoice_id=invoice_id,
            status=InvoiceStatus.PENDING,
            error=e.message,
            error_code=e.code,
        )
    except InvalidStateTransitionError as e:
        # Another request is parsing it; that request records the result
        return UploadOutcome(
            file_name=file_name,
            invoice_id=invoice_id,
            status=InvoiceStatus.IN_PROGRESS,
            error=str(e),
        )

    if record is None:
        return UploadOutcome(file_name=file_name, invoice_id=invoice_id)
    return UploadOutcome(
        file_name=file_name,
        invoice_id=invoice_id,
        status=record.status,
        error=record.error_message,
        error_code=record.error_code,
    )


@app.post(
    "/api/v1/persons/{person_id}/invoices",
    response_model=UploadResponse,
    tags=["Invoices"],
)
async def upload_invoices(
    person_id: str,
    files: list[UploadFile] = File(..., description="Receipt images or PDFs"),  # noqa: B008
) -> UploadResponse:
    """Upload receipts for a person and parse each of them.

    Every file is handled independently: an unsupported or empty file, or a
    failed extraction, never blocks the other files of the batch.

    Returns:
        One outcome per uploaded file, in upload order
    """
    state.get_person(person_id)

    outcomes: list[UploadOutcome | None] = []
    pending: list[tuple[int, str, str]] = []

    for file in files:
        file_name = file.filename or "unnamed"
        content = await file.read()

        if not is_supported_upload(file_name, file.content_type):
            metrics.invoices_uploaded_total.labels(status="rejected").inc()
            outcomes.append(
                UploadOutcome(
                    file_name=file_name,
                    error=f"Unsupported file type: {file.content_type}. Upload images or PDFs.",
                    error_code=UnsupportedFormatError.code,
                )
            )
            continue
        if not content:
            metrics.invoices_uploaded_total.labels(status="rejected").inc()
            outcomes.append(
                UploadOutcome(
                    file_name=file_name,
                    error="Empty file",
                    error_code=UnsupportedFormatError.code,
                )
            )
            continue

        metrics.invoices_uploaded_total.labels(status="accepted").inc()
        metrics.invoice_upload_size_bytes.observe(len(content))
        invoice = state.add_invoice(person_id, file_name, file.content_type, content)
        pending.append((len(outcomes), file_name, invoice.id))
        outcomes.append(None)

    _save_persons()

    try:
        results = await asyncio.gather(
            *(_upload_outcome(file_name, invoice_id) for _, file_name, invoice_id in pending)
        )
    finally:
        _save_persons()
    for (index, _, _), result in zip(pending, results):
        outcomes[index] = result

    return UploadResponse(
        person_id=person_id,
        results=[outcome for outcome in outcomes if outcome is not None],
    )


@app.post(
    "/api/v1/persons/{person_id}/invoices/{invoice_id}/parse",
    response_model=InvoiceRecord,
    tags=["Invoices"],
)
async def reparse_invoice(person_id: str, invoice_id: str) -> InvoiceRecord:
    """Retry (or redo) extraction for one invoice.

    Raises:
        HTTPException: 410 if the invoice was deleted while parsing
    """
    _require_owner(person_id, invoice_id)
    record = await _parse_invoice(invoice_id)
    _save_persons()
    if record is None:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Invoice was deleted")
    return record


@app.put(
    "/api/v1/persons/{person_id}/invoices/{invoice_id}",
    response_model=InvoiceRecord,
    tags=["Invoices"],
)
def edit_invoice(person_id: str, invoice_id: str, body: InvoiceEditRequest) -> InvoiceRecord:
    """Correct an invoice by hand; it is marked successful."""
    record = state.edit_invoice(
        person_id,
        invoice_id,
        type=body.type,
        amount=body.amount,
        date=body.date,
        description=body.description,
    )
    _save_persons()
    return record


@app.delete(
    "/api/v1/persons/{person_id}/invoices/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Invoices"],
)
def delete_invoice(person_id: str, invoice_id: str) -> Response:
    """Delete an invoice."""
    state.delete_invoice(person_id, invoice_id)
    _save_persons()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/v1/stats", response_model=ExportStats, tags=["Invoices"])
def get_stats() -> ExportStats:
    """Person, invoice and amount totals."""
    return collect_stats(state.persons())


# Exports


def _xlsx_response(content: bytes, filename: str) -> Response:
    disposition = f"attachment; filename*=UTF-8''{quote(filename + '.xlsx')}"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": disposition},
    )


def _require_exportable(persons: list[PersonRecord]) -> None:
    if not has_exportable_invoices(persons):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No parsed invoices to export",
        )


@app.get("/api/v1/export/detail", tags=["Export"])
def export_detail_sheet(
    filename: str | None = Query(None, description="File name without extension"),
) -> Response:
    """Download the detail spreadsheet (one row per parsed invoice)."""
    persons = state.persons()
    _require_exportable(persons)
    content = export_detail(persons)
    metrics.exports_total.labels(layout="detail").inc()
    return _xlsx_response(content, filename or settings.detail_export_filename)


@app.post("/api/v1/export/summary", tags=["Export"])
def export_summary_sheet(
    body: SummaryExportRequest,
    filename: str | None = Query(None, description="File name without extension"),
) -> Response:
    """Download the travel summary spreadsheet.

    The submitted trip metadata is saved for the next export.
    """
    persons = state.persons()
    _require_exportable(persons)

    trip = TripInfo(**body.model_dump())
    state.set_trip(trip)
    store.save_trip(trip)

    content = export_summary(persons, trip)
    metrics.exports_total.labels(layout="summary").inc()
    return _xlsx_response(content, filename or settings.summary_export_filename)
