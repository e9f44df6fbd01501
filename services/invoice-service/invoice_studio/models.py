import uuid

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Numeric, String, Text
from sqlalchemy.sql import func

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Invoice(Base):
    """Saved invoice snapshot. Totals are stored as computed at save time."""
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    invoice_number = Column(String, nullable=False, index=True)
    template = Column(String(20), nullable=False, default="modern")

    # Dates
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    # Business Information
    business_name = Column(String, nullable=False)
    business_email = Column(String, nullable=True)
    business_phone = Column(String, nullable=True)
    business_address = Column(Text, nullable=True)
    business_logo = Column(String, nullable=True)

    # Client Information
    client_name = Column(String, nullable=False)
    client_email = Column(String, nullable=True)
    client_phone = Column(String, nullable=True)
    client_address = Column(Text, nullable=True)

    # Banking Information
    bank_name = Column(String, nullable=True)
    account_number = Column(String, nullable=True)
    swift_code = Column(String, nullable=True)
    iban = Column(String, nullable=True)

    # Ordered [{description, quantity, rate, amount}]
    line_items = Column(JSON, nullable=False, default=list)

    # Financial Information
    currency = Column(String(3), nullable=False, default="USD")
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    discount_rate = Column(Numeric(5, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    # Recurrence
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_interval = Column(String(20), nullable=True)

    email_sent_date = Column(DateTime(timezone=True), nullable=True)

    # Audit Trail
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=False)
    address = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class UserProfile(Base):
    """Business profile used to prefill new invoices"""
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, index=True, default=_uuid)
    user_id = Column(String, nullable=False, unique=True, index=True)

    business_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    website = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    logo_url = Column(String, nullable=True)

    default_currency = Column(String(3), nullable=True)
    default_tax_rate = Column(Numeric(5, 2), nullable=True)
    invoice_prefix = Column(String(10), nullable=True)

    bank_name = Column(String, nullable=True)
    account_number = Column(String, nullable=True)
    swift_code = Column(String(11), nullable=True)
    iban = Column(String(34), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
