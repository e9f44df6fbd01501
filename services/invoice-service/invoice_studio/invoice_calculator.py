import time
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional

from dateutil.relativedelta import relativedelta

from . import schemas
from .core.config import settings
from .core.errors import NotFoundError


class InvoiceCalculator:
    """Handles invoice calculations - line amounts, discount, tax and totals.

    Every method returns a new ``InvoiceData``; inputs are never mutated.
    Totals are kept at full precision and only rounded for display.
    """

    RECURRING_STEPS = {
        schemas.RecurringInterval.WEEKLY: relativedelta(weeks=1),
        schemas.RecurringInterval.MONTHLY: relativedelta(months=1),
        schemas.RecurringInterval.QUARTERLY: relativedelta(months=3),
        schemas.RecurringInterval.YEARLY: relativedelta(years=1),
    }

    def calculate_line_amount(self, line_item: schemas.LineItem) -> Decimal:
        """Calculate amount for a single line item (quantity * rate)"""
        if not line_item.quantity or not line_item.rate:
            return Decimal("0.00")
        return self.round_currency(Decimal(line_item.quantity) * Decimal(str(line_item.rate)))

    def calculate_totals(self, invoice: schemas.InvoiceData) -> schemas.InvoiceData:
        """Recompute line amounts, subtotal, discount, tax and total.

        Discount is applied to the subtotal; tax is applied after the discount.
        """
        line_items = [
            item.model_copy(update={"amount": self.calculate_line_amount(item)})
            for item in invoice.line_items
        ]

        subtotal = sum((item.amount for item in line_items), Decimal("0"))
        discount_amount = subtotal * Decimal(str(invoice.discount_rate)) / 100
        taxable = subtotal - discount_amount
        tax_amount = taxable * Decimal(str(invoice.tax_rate)) / 100
        total = taxable + tax_amount

        return invoice.model_copy(
            update={
                "line_items": line_items,
                "subtotal": subtotal,
                "discount_amount": discount_amount,
                "tax_amount": tax_amount,
                "total": total,
            }
        )

    def round_currency(self, amount: Decimal) -> Decimal:
        """Round to 2 decimal places for currency"""
        return Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    # === LINE ITEMS ===

    def add_line_item(self, invoice: schemas.InvoiceData) -> schemas.InvoiceData:
        item = schemas.LineItem(description="", quantity=1, rate=Decimal("0"), amount=Decimal("0"))
        return self.calculate_totals(invoice.model_copy(update={"line_items": [*invoice.line_items, item]}))

    def update_line_item(
        self,
        invoice: schemas.InvoiceData,
        item_id: str,
        description: Optional[str] = None,
        quantity: Optional[int] = None,
        rate: Optional[Decimal] = None,
    ) -> schemas.InvoiceData:
        changes = {
            key: value
            for key, value in (("description", description), ("quantity", quantity), ("rate", rate))
            if value is not None
        }
        found = False
        line_items = []
        for item in invoice.line_items:
            if item.id == item_id:
                found = True
                item = item.model_copy(update=changes)
            line_items.append(item)
        if not found:
            raise NotFoundError(f"Line item {item_id} not found")
        return self.calculate_totals(invoice.model_copy(update={"line_items": line_items}))

    def remove_line_item(self, invoice: schemas.InvoiceData, item_id: str) -> schemas.InvoiceData:
        line_items = [item for item in invoice.line_items if item.id != item_id]
        if len(line_items) == len(invoice.line_items):
            raise NotFoundError(f"Line item {item_id} not found")
        return self.calculate_totals(invoice.model_copy(update={"line_items": line_items}))

    # === DRAFTS ===

    def generate_invoice_number(self, prefix: Optional[str] = None, now_ms: Optional[int] = None) -> str:
        """``PREFIX-NNNNNN`` where the digits are the last six of the epoch millis"""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        prefix = (prefix or settings.DEFAULT_INVOICE_PREFIX).strip().upper() or settings.DEFAULT_INVOICE_PREFIX
        return f"{prefix}-{str(now_ms)[-6:]}"

    def calculate_due_date(self, issue_date: date, days: Optional[int] = None) -> date:
        return issue_date + timedelta(days=settings.DEFAULT_DUE_DAYS if days is None else days)

    def new_draft(self, profile: Optional[Any] = None, today: Optional[date] = None) -> schemas.InvoiceData:
        """Create an empty draft with sensible defaults, prefilled from a profile"""
        issue_date = today or date.today()
        prefix = getattr(profile, "invoice_prefix", None) if profile else None
        tax_rate = getattr(profile, "default_tax_rate", None) if profile else None
        currency = getattr(profile, "default_currency", None) if profile else None

        draft = schemas.InvoiceData(
            invoice_number=self.generate_invoice_number(prefix),
            issue_date=issue_date,
            due_date=self.calculate_due_date(issue_date),
            currency=currency or settings.DEFAULT_CURRENCY,
            tax_rate=Decimal(str(tax_rate)) if tax_rate is not None else Decimal("0"),
            discount_rate=Decimal("0"),
            notes=settings.DEFAULT_NOTES,
            line_items=[],
        )
        if profile is not None:
            draft = self.apply_profile(draft, profile)
        return self.calculate_totals(draft)

    def apply_profile(self, invoice: schemas.InvoiceData, profile: Any) -> schemas.InvoiceData:
        """Fill business and banking fields from a profile, keeping anything already entered"""

        def pick(current, attribute):
            if current:
                return current
            return getattr(profile, attribute, None) or current

        business = invoice.business_info
        banking = invoice.banking_info
        return invoice.model_copy(
            update={
                "business_info": business.model_copy(
                    update={
                        "name": pick(business.name, "business_name"),
                        "email": pick(business.email, "email"),
                        "phone": pick(business.phone, "phone"),
                        "address": pick(business.address, "address"),
                        "logo": pick(business.logo, "logo_url"),
                    }
                ),
                "banking_info": banking.model_copy(
                    update={
                        "bank_name": pick(banking.bank_name, "bank_name"),
                        "account_number": pick(banking.account_number, "account_number"),
                        "swift_code": pick(banking.swift_code, "swift_code"),
                        "iban": pick(banking.iban, "iban"),
                    }
                ),
            }
        )

    # === RECURRING ===

    def next_issue_dates(
        self,
        start_date: date,
        interval: schemas.RecurringInterval,
        occurrences: int,
    ) -> List[date]:
        """Future issue dates for a recurring invoice, starting with ``start_date``"""
        step = self.RECURRING_STEPS[schemas.RecurringInterval(interval)]
        return [start_date + step * index for index in range(max(occurrences, 0))]
