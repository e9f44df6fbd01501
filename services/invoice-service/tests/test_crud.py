from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from invoice_studio import crud, schemas
from invoice_studio.core.errors import NotFoundError
from invoice_studio.core.security import SessionContext
from invoice_studio.database import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

OWNER = SessionContext(user_id="user-123", token="token")
STRANGER = SessionContext(user_id="user-456", token="token")


@pytest_asyncio.fixture()
async def db_session():
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    TestingSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with TestingSessionLocal() as session:
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# --- Invoices ---

@pytest.mark.asyncio
async def test_create_invoice_stores_recomputed_snapshot(db_session, invoice_factory):
    invoice = invoice_factory([(2, 750), (1, 800)], tax_rate="15", discount_rate="10", is_recurring=True)

    db_invoice = await crud.create_invoice(db_session, OWNER, invoice, "classic")

    assert db_invoice.user_id == "user-123"
    assert db_invoice.template == "classic"
    assert Decimal(str(db_invoice.total)) == Decimal("2380.50")
    assert db_invoice.recurring_interval == "monthly"
    assert db_invoice.line_items[0] == {"description": "Item 1", "quantity": 2, "rate": 750.0, "amount": 1500.0}

    saved = crud.to_saved_invoice(db_invoice)
    assert saved.id == db_invoice.id
    assert saved.client_info.address == "456 Client Avenue\nSpringfield"
    assert [item.amount for item in saved.line_items] == [Decimal("1500.0"), Decimal("800.0")]
    assert saved.banking_info.is_empty


@pytest.mark.asyncio
async def test_invoices_are_scoped_to_owner(db_session, invoice_factory):
    db_invoice = await crud.create_invoice(db_session, OWNER, invoice_factory([(1, 10)]), "modern")

    assert (await crud.get_invoice(db_session, OWNER, db_invoice.id)).id == db_invoice.id
    with pytest.raises(NotFoundError, match="Invoice not found"):
        await crud.get_invoice(db_session, STRANGER, db_invoice.id)
    assert await crud.list_invoices(db_session, STRANGER) == []


@pytest.mark.asyncio
async def test_update_invoice_replaces_snapshot(db_session, invoice_factory):
    db_invoice = await crud.create_invoice(db_session, OWNER, invoice_factory([(1, 10)]), "modern")

    updated = await crud.update_invoice(
        db_session, OWNER, db_invoice.id, invoice_factory([(3, 10)], invoice_number="INV-002"), "minimal"
    )

    assert updated.invoice_number == "INV-002"
    assert updated.template == "minimal"
    assert Decimal(str(updated.subtotal)) == Decimal("30.00")
    assert updated.recurring_interval is None


@pytest.mark.asyncio
async def test_delete_invoice(db_session, invoice_factory):
    db_invoice = await crud.create_invoice(db_session, OWNER, invoice_factory([(1, 10)]), "modern")
    await crud.delete_invoice(db_session, OWNER, db_invoice.id)
    with pytest.raises(NotFoundError):
        await crud.get_invoice(db_session, OWNER, db_invoice.id)


@pytest.mark.asyncio
async def test_mark_email_sent(db_session, invoice_factory):
    db_invoice = await crud.create_invoice(db_session, OWNER, invoice_factory([(1, 10)]), "modern")
    sent_at = datetime(2025, 1, 20, 9, 30, tzinfo=timezone.utc)

    updated = await crud.mark_email_sent(db_session, OWNER, db_invoice.id, sent_at)

    assert updated.email_sent_date.replace(tzinfo=None) == sent_at.replace(tzinfo=None)


# --- Clients ---

@pytest.mark.asyncio
async def test_client_lifecycle(db_session):
    created = await crud.create_client(db_session, OWNER, {"name": "Globex", "email": "ap@globex.test"})
    await crud.create_client(db_session, OWNER, {"name": "Acme", "email": "ap@acme.test"})

    assert [client.name for client in await crud.list_clients(db_session, OWNER)] == ["Acme", "Globex"]

    updated = await crud.update_client(db_session, OWNER, created.id, {"address": "1 Main St"})
    assert updated.address == "1 Main St"
    assert updated.name == "Globex"

    with pytest.raises(NotFoundError, match="Client not found"):
        await crud.get_client(db_session, STRANGER, created.id)

    await crud.delete_client(db_session, OWNER, created.id)
    assert [client.name for client in await crud.list_clients(db_session, OWNER)] == ["Acme"]


# --- Profile ---

@pytest.mark.asyncio
async def test_profile_upsert_and_delete(db_session):
    assert await crud.get_profile(db_session, OWNER) is None

    created = await crud.upsert_profile(db_session, OWNER, {"business_name": "Acme", "default_currency": "EUR"})
    updated = await crud.upsert_profile(db_session, OWNER, {"invoice_prefix": "ACM"})

    assert updated.id == created.id
    assert (updated.business_name, updated.default_currency, updated.invoice_prefix) == ("Acme", "EUR", "ACM")

    await crud.delete_profile(db_session, OWNER)
    assert await crud.get_profile(db_session, OWNER) is None
    with pytest.raises(NotFoundError, match="Profile not found"):
        await crud.delete_profile(db_session, OWNER)


# --- Dashboard ---

@pytest.mark.asyncio
async def test_dashboard_summary(db_session, invoice_factory):
    await crud.create_invoice(db_session, OWNER, invoice_factory([(1, 100)]), "modern")
    await crud.create_invoice(db_session, OWNER, invoice_factory([(2, 100)], invoice_number="INV-002"), "modern")
    await crud.create_invoice(db_session, OWNER, invoice_factory([(1, 50)], currency="EUR"), "modern")
    await crud.create_invoice(db_session, STRANGER, invoice_factory([(1, 999)]), "modern")
    await crud.create_client(db_session, OWNER, {"name": "Globex", "email": "ap@globex.test"})

    summary = await crud.get_dashboard_summary(db_session, OWNER, recent=2)

    assert summary.total_invoices == 3
    assert summary.total_clients == 1
    assert summary.totals_by_currency == {"USD": Decimal("300.00"), "EUR": Decimal("50.00")}
    assert len(summary.recent_invoices) == 2
    assert isinstance(summary.recent_invoices[0], schemas.InvoiceSummary)
