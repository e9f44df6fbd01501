import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Query, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import crud, currency, schemas
from .core.config import settings
from .core.errors import FieldError, InvoiceServiceError, NotFoundError, ValidationError
from .core.logging import get_logger, setup_logging
from .core.security import SessionContext, get_session
from .database import get_db
from .init_db import create_tables
from .invoice_calculator import InvoiceCalculator
from .pdf_generator import ExportResult, PDFGenerator
from .storage import LogoStorage
from .template_downloads import download_template
from .templates import get_template_info, list_templates, project
from .validation import validate_amounts, validate_client, validate_invoice, validate_logo, validate_profile

logger = get_logger("api")

PROFILE_FIELDS = tuple(schemas.UserProfileBase.model_fields)

calculator = InvoiceCalculator()
pdf_generator = PDFGenerator()
logo_storage = LogoStorage()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    logger.info(f"{settings.APP_NAME} {settings.VERSION} started")
    yield


app = FastAPI(
    title="Invoice Studio Invoice Service",
    description="Invoice drafting, totals, template rendering and PDF export",
    version=settings.VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "catalogue", "description": "Currencies and invoice templates"},
        {"name": "drafts", "description": "In-progress invoices: totals, line items, preview and export"},
        {"name": "invoices", "description": "Saved invoice CRUD operations"},
        {"name": "clients", "description": "Client list management"},
        {"name": "profile", "description": "Business profile and logo"},
        {"name": "pdf", "description": "PDF generation and download"},
    ],
)


# === ERROR HANDLERS ===

@app.exception_handler(InvoiceServiceError)
async def invoice_service_error_handler(request: Request, exc: InvoiceServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} ({exc.context})")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content=InvoiceServiceError().to_response())


def pdf_response(result: ExportResult) -> Response:
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Export-Mode": result.mode.value,
            "X-Page-Count": str(result.page_count),
            "X-Export-Scaled": "true" if result.scaled else "false",
        },
    )


def export_key(session: SessionContext, invoice_number: Optional[str]) -> str:
    """Export guard key, shared by the draft and saved invoice routes"""
    return f"{session.user_id}:{invoice_number or 'draft'}"


async def read_logo(file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded logo without buffering more than ``max_bytes + 1`` bytes"""
    if file.size is not None and file.size > max_bytes:
        validate_logo(file.content_type, file.size, max_bytes)
    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        validate_logo(file.content_type, len(content), max_bytes)
    return content


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "invoice-service", "timestamp": datetime.now(timezone.utc)}


# === CATALOGUE ENDPOINTS ===

@app.get("/currencies", response_model=List[schemas.CurrencyOut], tags=["catalogue"])
async def get_currencies():
    """Every ISO 4217 currency, popular ones first"""
    return currency.list_currencies()


@app.get("/currencies/{code}", response_model=schemas.CurrencyOut, tags=["catalogue"])
async def get_currency(code: str):
    return currency.resolve(code)


@app.get("/templates", response_model=List[schemas.TemplateInfo], tags=["catalogue"])
async def get_templates():
    return list_templates()


@app.get("/templates/{template_id}", response_model=schemas.TemplateInfo, tags=["catalogue"])
async def get_template(template_id: str):
    return get_template_info(template_id)


@app.get("/templates/{template_id}/download", tags=["catalogue", "pdf"])
async def download_template_file(
    template_id: str,
    format: schemas.DownloadFormatType = Query(schemas.DownloadFormatType.PDF),
):
    """Download a template as a real PDF or a Word/Excel placeholder"""
    result = await asyncio.to_thread(download_template, template_id, format)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Template-Placeholder": "true" if result.is_placeholder else "false",
            "X-Download-Message": result.message,
        },
    )


# === DRAFT ENDPOINTS ===

@app.post("/drafts", response_model=schemas.InvoiceData, tags=["drafts"])
async def create_draft(
    options: Optional[schemas.DraftRequest] = None,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """Start a new invoice with defaults, prefilled from the business profile"""
    profile = None
    if options is None or options.prefill_from_profile:
        profile = await crud.get_profile(db, session)
    return calculator.new_draft(profile)


@app.post("/drafts/calculate", response_model=schemas.InvoiceData, tags=["drafts"])
async def calculate_draft(invoice: schemas.InvoiceData):
    validate_amounts(invoice)
    return calculator.calculate_totals(invoice)


@app.post("/drafts/validate", tags=["drafts"])
async def validate_draft(invoice: schemas.InvoiceData):
    validate_invoice(invoice)
    return {"success": True, "message": "Invoice is valid"}


@app.post("/drafts/line-items", response_model=schemas.InvoiceData, tags=["drafts"])
async def add_line_item(request: schemas.LineItemCreate):
    validate_amounts(request.invoice)
    return calculator.add_line_item(request.invoice)


@app.patch("/drafts/line-items/{item_id}", response_model=schemas.InvoiceData, tags=["drafts"])
async def update_line_item(item_id: str, request: schemas.LineItemUpdate):
    validate_amounts(request.invoice, quantity=request.quantity, rate=request.rate)
    return calculator.update_line_item(
        request.invoice,
        item_id,
        description=request.description,
        quantity=request.quantity,
        rate=request.rate,
    )


@app.delete("/drafts/line-items/{item_id}", response_model=schemas.InvoiceData, tags=["drafts"])
async def remove_line_item(item_id: str, request: schemas.LineItemCreate):
    remaining = [item for item in request.invoice.line_items if item.id != item_id]
    validate_amounts(request.invoice.model_copy(update={"line_items": remaining}))
    return calculator.remove_line_item(request.invoice, item_id)


@app.post("/drafts/preview", tags=["drafts"])
async def preview_draft(invoice: schemas.InvoiceData, template: Optional[str] = Query(None)) -> Dict[str, Any]:
    """Render tree for on-screen preview. Unknown templates fall back to the default."""
    validate_amounts(invoice)
    return project(calculator.calculate_totals(invoice), template).to_dict()


@app.post("/drafts/export", tags=["drafts", "pdf"])
async def export_draft(
    invoice: schemas.InvoiceData,
    template: Optional[str] = Query(None),
    mode: schemas.ExportMode = Query(schemas.ExportMode.STRUCTURED),
    session: SessionContext = Depends(get_session),
):
    validate_amounts(invoice)
    key = export_key(session, invoice.invoice_number)
    result = await pdf_generator.generate_invoice_pdf(invoice, template, mode, key=key)
    return pdf_response(result)


@app.post("/drafts/logo", response_model=schemas.LogoUploadResponse, tags=["drafts"])
async def upload_invoice_logo(
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session),
):
    content = await read_logo(file, settings.INVOICE_LOGO_MAX_BYTES)
    url = await logo_storage.upload(
        session.user_id, content, file.filename, file.content_type, settings.INVOICE_LOGO_MAX_BYTES
    )
    return schemas.LogoUploadResponse(logo_url=url)


# === INVOICE ENDPOINTS ===

@app.post("/invoices", response_model=schemas.SavedInvoice, status_code=status.HTTP_201_CREATED, tags=["invoices"])
async def create_invoice(
    request: schemas.InvoiceSaveRequest,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """Save a snapshot of the draft"""
    validate_invoice(request.invoice)
    db_invoice = await crud.create_invoice(db, session, request.invoice, request.template.value)
    logger.info(f"Invoice {db_invoice.invoice_number} saved for {session.user_id}")
    return crud.to_saved_invoice(db_invoice)


@app.get("/invoices", response_model=List[schemas.InvoiceSummary], tags=["invoices"])
async def get_invoices(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    return await crud.list_invoices(db, session, skip=skip, limit=limit)


@app.get("/invoices/{invoice_id}", response_model=schemas.SavedInvoice, tags=["invoices"])
async def get_invoice(
    invoice_id: str,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    return crud.to_saved_invoice(await crud.get_invoice(db, session, invoice_id))


@app.put("/invoices/{invoice_id}", response_model=schemas.SavedInvoice, tags=["invoices"])
async def update_invoice(
    invoice_id: str,
    request: schemas.InvoiceSaveRequest,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    validate_invoice(request.invoice)
    db_invoice = await crud.update_invoice(db, session, invoice_id, request.invoice, request.template.value)
    return crud.to_saved_invoice(db_invoice)


@app.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["invoices"])
async def delete_invoice(
    invoice_id: str,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    await crud.delete_invoice(db, session, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/invoices/{invoice_id}/email-sent", response_model=schemas.SavedInvoice, tags=["invoices"])
async def mark_invoice_email_sent(
    invoice_id: str,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """Record that the invoice was emailed to the client"""
    return crud.to_saved_invoice(await crud.mark_email_sent(db, session, invoice_id))


@app.get("/invoices/{invoice_id}/schedule", tags=["invoices"])
async def get_recurring_schedule(
    invoice_id: str,
    occurrences: int = Query(6, ge=1, le=60),
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, List[date]]:
    """Upcoming issue dates of a recurring invoice"""
    saved = crud.to_saved_invoice(await crud.get_invoice(db, session, invoice_id))
    if not saved.is_recurring:
        raise ValidationError([FieldError("is_recurring", "Invoice is not recurring")])
    return {"dates": calculator.next_issue_dates(saved.issue_date, saved.recurring_interval, occurrences)}


@app.get("/invoices/{invoice_id}/pdf", tags=["invoices", "pdf"])
async def download_invoice_pdf(
    invoice_id: str,
    mode: schemas.ExportMode = Query(schemas.ExportMode.STRUCTURED),
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """Export a saved invoice through its chosen template"""
    saved = crud.to_saved_invoice(await crud.get_invoice(db, session, invoice_id))
    result = await pdf_generator.generate_invoice_pdf(
        saved, saved.template, mode, key=export_key(session, saved.invoice_number)
    )
    return pdf_response(result)


# === CLIENT ENDPOINTS ===

@app.post("/clients", response_model=schemas.Client, status_code=status.HTTP_201_CREATED, tags=["clients"])
async def create_client(
    client: schemas.ClientCreate,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    data = validate_client(client.model_dump())
    return await crud.create_client(db, session, data)


@app.get("/clients", response_model=List[schemas.Client], tags=["clients"])
async def get_clients(session: SessionContext = Depends(get_session), db: AsyncSession = Depends(get_db)):
    return await crud.list_clients(db, session)


@app.get("/clients/{client_id}", response_model=schemas.Client, tags=["clients"])
async def get_client(
    client_id: str,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    return await crud.get_client(db, session, client_id)


@app.patch("/clients/{client_id}", response_model=schemas.Client, tags=["clients"])
async def update_client(
    client_id: str,
    changes: schemas.ClientUpdate,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    data = validate_client(changes.model_dump(exclude_unset=True), partial=True)
    return await crud.update_client(db, session, client_id, data)


@app.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["clients"])
async def delete_client(
    client_id: str,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    await crud.delete_client(db, session, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === PROFILE ENDPOINTS ===

@app.get("/profile", response_model=schemas.UserProfile, tags=["profile"])
async def get_profile(session: SessionContext = Depends(get_session), db: AsyncSession = Depends(get_db)):
    profile = await crud.get_profile(db, session)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


@app.put("/profile", response_model=schemas.UserProfile, tags=["profile"])
async def update_profile(
    changes: schemas.UserProfileUpdate,
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    """Create or update the business profile; cross-field rules see the merged record"""
    existing = await crud.get_profile(db, session)
    merged = {field: getattr(existing, field, None) for field in PROFILE_FIELDS} if existing else {}
    merged.update(changes.model_dump(exclude_unset=True))
    return await crud.upsert_profile(db, session, validate_profile(merged))


@app.delete("/profile", status_code=status.HTTP_204_NO_CONTENT, tags=["profile"])
async def delete_profile(session: SessionContext = Depends(get_session), db: AsyncSession = Depends(get_db)):
    await crud.delete_profile(db, session)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/profile/logo", response_model=schemas.UserProfile, tags=["profile"])
async def upload_profile_logo(
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session),
    db: AsyncSession = Depends(get_db),
):
    content = await read_logo(file, settings.PROFILE_LOGO_MAX_BYTES)
    url = await logo_storage.upload(
        session.user_id, content, file.filename, file.content_type, settings.PROFILE_LOGO_MAX_BYTES
    )
    return await crud.upsert_profile(db, session, {"logo_url": url})


@app.get("/dashboard/summary", response_model=schemas.DashboardSummary, tags=["invoices"])
async def get_dashboard_summary(session: SessionContext = Depends(get_session), db: AsyncSession = Depends(get_db)):
    return await crud.get_dashboard_summary(db, session)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
