"""
Shared pre-projection of an invoice into display values.

Conditional visibility lives here and only here: the discount row exists only
when the discount rate is positive, the tax row only when the tax rate is
positive, notes only when non-blank, banking only when any detail is set.
Every template renderer builds on the resulting ``InvoiceView``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from babel import dates  # type: ignore

from .. import currency, schemas
from .render_tree import Field, TotalsRow

DATE_LOCALE = "en_US"


@dataclass(frozen=True)
class ItemView:
    description: str
    quantity: str
    rate: str
    amount: str


@dataclass(frozen=True)
class InvoiceView:
    invoice_number: str
    issue_date: str
    due_date: str
    currency_code: str
    business_name: str
    business_lines: List[str]
    client_name: str
    client_lines: List[str]
    logo: Optional[str]
    items: List[ItemView]
    totals: List[TotalsRow]
    notes: Optional[str]
    banking: List[Field]


def format_date(value: Optional[date]) -> str:
    if value is None:
        return ""
    return dates.format_date(value, format="long", locale=DATE_LOCALE)


def format_rate(rate: Decimal) -> str:
    """``10`` for 10%, ``12.5`` for 12.5%"""
    return f"{Decimal(str(rate)).normalize():f}"


def _contact_lines(email: str, phone: Optional[str], address: str) -> List[str]:
    lines = [value.strip() for value in (email, phone or "") if value and value.strip()]
    if address and address.strip():
        # Embedded line breaks are kept as separate display lines
        lines += [line.rstrip() for line in address.strip().splitlines()]
    return lines


def totals_rows(invoice: schemas.InvoiceData) -> List[TotalsRow]:
    code = invoice.currency
    rows = [TotalsRow("Subtotal", currency.format_amount(invoice.subtotal, code))]
    if invoice.discount_rate > 0:
        rows.append(
            TotalsRow(
                f"Discount ({format_rate(invoice.discount_rate)}%)",
                currency.format_amount(-invoice.discount_amount, code),
            )
        )
    if invoice.tax_rate > 0:
        rows.append(
            TotalsRow(f"Tax ({format_rate(invoice.tax_rate)}%)", currency.format_amount(invoice.tax_amount, code))
        )
    rows.append(TotalsRow("Total", currency.format_amount(invoice.total, code), emphasized=True))
    return rows


def banking_fields(banking: schemas.BankingInfo) -> List[Field]:
    if banking.is_empty:
        return []
    labelled = (
        ("Bank", banking.bank_name),
        ("Account Number", banking.account_number),
        ("SWIFT", banking.swift_code),
        ("IBAN", banking.iban),
    )
    return [Field(label, value.strip()) for label, value in labelled if value and value.strip()]


def project_invoice(invoice: schemas.InvoiceData) -> InvoiceView:
    """Format an invoice for display. Totals are taken as already computed."""
    code = invoice.currency
    business = invoice.business_info
    client = invoice.client_info
    return InvoiceView(
        invoice_number=invoice.invoice_number,
        issue_date=format_date(invoice.issue_date),
        due_date=format_date(invoice.due_date),
        currency_code=(code or "").upper(),
        business_name=business.name.strip(),
        business_lines=_contact_lines(business.email, business.phone, business.address),
        client_name=client.name.strip(),
        client_lines=_contact_lines(client.email, client.phone, client.address),
        logo=business.logo or None,
        items=[
            ItemView(
                description=item.description,
                quantity=str(item.quantity),
                rate=currency.format_amount(item.rate, code),
                amount=currency.format_amount(item.amount, code),
            )
            for item in invoice.line_items
        ],
        totals=totals_rows(invoice),
        notes=invoice.notes.strip() if invoice.notes and invoice.notes.strip() else None,
        banking=banking_fields(invoice.banking_info),
    )
