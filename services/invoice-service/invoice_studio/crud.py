from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import models, schemas
from .core.errors import NotFoundError, operation_boundary
from .core.security import SessionContext
from .currency import round_money
from .invoice_calculator import InvoiceCalculator

calculator = InvoiceCalculator()


def _plain(value: Decimal) -> float:
    return float(value)


# === INVOICE MAPPING ===

def invoice_to_columns(invoice: schemas.InvoiceData, template: str) -> Dict[str, Any]:
    """Flatten a draft into invoice columns, recomputing totals first"""
    invoice = calculator.calculate_totals(invoice)
    business, client, banking = invoice.business_info, invoice.client_info, invoice.banking_info
    return {
        "invoice_number": invoice.invoice_number,
        "template": template,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "business_name": business.name,
        "business_email": business.email or None,
        "business_phone": business.phone or None,
        "business_address": business.address or None,
        "business_logo": business.logo or None,
        "client_name": client.name,
        "client_email": client.email or None,
        "client_phone": client.phone or None,
        "client_address": client.address or None,
        "bank_name": banking.bank_name or None,
        "account_number": banking.account_number or None,
        "swift_code": banking.swift_code or None,
        "iban": banking.iban or None,
        "line_items": [
            {
                "description": item.description,
                "quantity": item.quantity,
                "rate": _plain(item.rate),
                "amount": _plain(item.amount),
            }
            for item in invoice.line_items
        ],
        "currency": invoice.currency.upper(),
        "tax_rate": invoice.tax_rate,
        "discount_rate": invoice.discount_rate,
        "subtotal": round_money(invoice.subtotal),
        "discount_amount": round_money(invoice.discount_amount),
        "tax_amount": round_money(invoice.tax_amount),
        "total": round_money(invoice.total),
        "notes": invoice.notes or None,
        "is_recurring": invoice.is_recurring,
        "recurring_interval": invoice.recurring_interval.value if invoice.is_recurring else None,
    }


def to_saved_invoice(db_invoice: models.Invoice) -> schemas.SavedInvoice:
    """Rebuild the API view of a stored invoice. Line item ids are regenerated."""
    return schemas.SavedInvoice(
        id=db_invoice.id,
        user_id=db_invoice.user_id,
        template=db_invoice.template,
        invoice_number=db_invoice.invoice_number,
        issue_date=db_invoice.issue_date,
        due_date=db_invoice.due_date,
        currency=db_invoice.currency,
        is_recurring=db_invoice.is_recurring,
        recurring_interval=db_invoice.recurring_interval or schemas.RecurringInterval.MONTHLY,
        business_info=schemas.BusinessInfo(
            name=db_invoice.business_name,
            email=db_invoice.business_email or "",
            phone=db_invoice.business_phone,
            address=db_invoice.business_address or "",
            logo=db_invoice.business_logo,
        ),
        client_info=schemas.ClientInfo(
            name=db_invoice.client_name,
            email=db_invoice.client_email or "",
            phone=db_invoice.client_phone,
            address=db_invoice.client_address or "",
        ),
        banking_info=schemas.BankingInfo(
            bank_name=db_invoice.bank_name or "",
            account_number=db_invoice.account_number or "",
            swift_code=db_invoice.swift_code or "",
            iban=db_invoice.iban or "",
        ),
        line_items=[
            schemas.LineItem(
                description=item.get("description", ""),
                quantity=int(item.get("quantity", 0)),
                rate=Decimal(str(item.get("rate", 0))),
                amount=Decimal(str(item.get("amount", 0))),
            )
            for item in db_invoice.line_items or []
        ],
        tax_rate=db_invoice.tax_rate,
        discount_rate=db_invoice.discount_rate,
        notes=db_invoice.notes or "",
        subtotal=db_invoice.subtotal,
        discount_amount=db_invoice.discount_amount,
        tax_amount=db_invoice.tax_amount,
        total=db_invoice.total,
        email_sent_date=db_invoice.email_sent_date,
        created_at=db_invoice.created_at,
        updated_at=db_invoice.updated_at,
    )


# === INVOICE CRUD OPERATIONS ===

async def create_invoice(
    db: AsyncSession,
    session: SessionContext,
    invoice: schemas.InvoiceData,
    template: str,
) -> models.Invoice:
    """Persist a snapshot of the draft"""
    with operation_boundary("create_invoice", user_id=session.user_id):
        db_invoice = models.Invoice(user_id=session.user_id, **invoice_to_columns(invoice, template))
        db.add(db_invoice)
        await db.commit()
        await db.refresh(db_invoice)
        return db_invoice


async def get_invoice(db: AsyncSession, session: SessionContext, invoice_id: str) -> models.Invoice:
    """Get invoice by ID for the session owner"""
    with operation_boundary("get_invoice", user_id=session.user_id, invoice_id=invoice_id):
        result = await db.execute(
            select(models.Invoice).where(
                models.Invoice.id == invoice_id,
                models.Invoice.user_id == session.user_id,
            )
        )
        db_invoice = result.scalar_one_or_none()
    if db_invoice is None:
        raise NotFoundError("Invoice not found")
    return db_invoice


async def list_invoices(
    db: AsyncSession,
    session: SessionContext,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Invoice]:
    with operation_boundary("list_invoices", user_id=session.user_id):
        result = await db.execute(
            select(models.Invoice)
            .where(models.Invoice.user_id == session.user_id)
            .order_by(desc(models.Invoice.created_at), desc(models.Invoice.issue_date))
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())


async def update_invoice(
    db: AsyncSession,
    session: SessionContext,
    invoice_id: str,
    invoice: schemas.InvoiceData,
    template: str,
) -> models.Invoice:
    """Replace the stored snapshot with the edited draft"""
    db_invoice = await get_invoice(db, session, invoice_id)
    with operation_boundary("update_invoice", user_id=session.user_id, invoice_id=invoice_id):
        for field, value in invoice_to_columns(invoice, template).items():
            setattr(db_invoice, field, value)
        await db.commit()
        await db.refresh(db_invoice)
        return db_invoice


async def delete_invoice(db: AsyncSession, session: SessionContext, invoice_id: str) -> None:
    db_invoice = await get_invoice(db, session, invoice_id)
    with operation_boundary("delete_invoice", user_id=session.user_id, invoice_id=invoice_id):
        await db.delete(db_invoice)
        await db.commit()


async def mark_email_sent(
    db: AsyncSession,
    session: SessionContext,
    invoice_id: str,
    sent_at: Optional[datetime] = None,
) -> models.Invoice:
    db_invoice = await get_invoice(db, session, invoice_id)
    with operation_boundary("mark_email_sent", user_id=session.user_id, invoice_id=invoice_id):
        db_invoice.email_sent_date = sent_at or datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(db_invoice)
        return db_invoice


# === CLIENT CRUD OPERATIONS ===

async def create_client(db: AsyncSession, session: SessionContext, data: Dict[str, Any]) -> models.Client:
    with operation_boundary("create_client", user_id=session.user_id):
        db_client = models.Client(
            user_id=session.user_id,
            name=data["name"],
            email=data["email"],
            address=data.get("address"),
        )
        db.add(db_client)
        await db.commit()
        await db.refresh(db_client)
        return db_client


async def get_client(db: AsyncSession, session: SessionContext, client_id: str) -> models.Client:
    with operation_boundary("get_client", user_id=session.user_id, client_id=client_id):
        result = await db.execute(
            select(models.Client).where(
                models.Client.id == client_id,
                models.Client.user_id == session.user_id,
            )
        )
        db_client = result.scalar_one_or_none()
    if db_client is None:
        raise NotFoundError("Client not found")
    return db_client


async def list_clients(db: AsyncSession, session: SessionContext) -> List[models.Client]:
    with operation_boundary("list_clients", user_id=session.user_id):
        result = await db.execute(
            select(models.Client)
            .where(models.Client.user_id == session.user_id)
            .order_by(models.Client.name)
        )
        return list(result.scalars().all())


async def update_client(
    db: AsyncSession,
    session: SessionContext,
    client_id: str,
    changes: Dict[str, Any],
) -> models.Client:
    db_client = await get_client(db, session, client_id)
    with operation_boundary("update_client", user_id=session.user_id, client_id=client_id):
        for field, value in changes.items():
            setattr(db_client, field, value)
        await db.commit()
        await db.refresh(db_client)
        return db_client


async def delete_client(db: AsyncSession, session: SessionContext, client_id: str) -> None:
    db_client = await get_client(db, session, client_id)
    with operation_boundary("delete_client", user_id=session.user_id, client_id=client_id):
        await db.delete(db_client)
        await db.commit()


# === PROFILE OPERATIONS ===

async def get_profile(db: AsyncSession, session: SessionContext) -> Optional[models.UserProfile]:
    with operation_boundary("get_profile", user_id=session.user_id):
        result = await db.execute(
            select(models.UserProfile).where(models.UserProfile.user_id == session.user_id)
        )
        return result.scalar_one_or_none()


async def upsert_profile(db: AsyncSession, session: SessionContext, data: Dict[str, Any]) -> models.UserProfile:
    """Create the profile on first save, otherwise apply the supplied fields"""
    profile = await get_profile(db, session)
    with operation_boundary("upsert_profile", user_id=session.user_id):
        if profile is None:
            profile = models.UserProfile(user_id=session.user_id)
            db.add(profile)
        for field, value in data.items():
            setattr(profile, field, value)
        await db.commit()
        await db.refresh(profile)
        return profile


async def delete_profile(db: AsyncSession, session: SessionContext) -> None:
    profile = await get_profile(db, session)
    if profile is None:
        raise NotFoundError("Profile not found")
    with operation_boundary("delete_profile", user_id=session.user_id):
        await db.delete(profile)
        await db.commit()


# === DASHBOARD ===

async def get_dashboard_summary(db: AsyncSession, session: SessionContext, recent: int = 5) -> schemas.DashboardSummary:
    with operation_boundary("dashboard_summary", user_id=session.user_id):
        invoice_count = await db.scalar(
            select(func.count(models.Invoice.id)).where(models.Invoice.user_id == session.user_id)
        )
        client_count = await db.scalar(
            select(func.count(models.Client.id)).where(models.Client.user_id == session.user_id)
        )
        totals = await db.execute(
            select(models.Invoice.currency, func.sum(models.Invoice.total))
            .where(models.Invoice.user_id == session.user_id)
            .group_by(models.Invoice.currency)
        )
        recent_invoices = await list_invoices(db, session, limit=recent)

    return schemas.DashboardSummary(
        total_invoices=invoice_count or 0,
        total_clients=client_count or 0,
        totals_by_currency={code: round_money(amount or 0) for code, amount in totals.all()},
        recent_invoices=[schemas.InvoiceSummary.model_validate(item) for item in recent_invoices],
    )
