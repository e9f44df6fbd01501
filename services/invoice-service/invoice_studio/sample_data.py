"""Sample invoices shown when a template is downloaded without real data."""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from . import schemas
from .invoice_calculator import InvoiceCalculator

BASE_ITEMS = [("Web Development", 1, "1000"), ("Design Services", 1, "500")]

# template id -> (line items, tax rate, company name)
SAMPLES = {
    schemas.TemplateId.MODERN: ([("Consulting", 2, "750"), ("Implementation", 1, "800")], "15", None),
    schemas.TemplateId.MINIMAL: (
        [("Design Work", 1, "800"), ("Development", 1, "1200"), ("Testing", 1, "300")],
        "10",
        None,
    ),
    schemas.TemplateId.CORPORATE: (
        [("Software License", 5, "200"), ("Support Package", 1, "500"), ("Training", 2, "300")],
        "18",
        "Your Company Ltd.",
    ),
    schemas.TemplateId.CREATIVE: (
        [("Logo Design", 8, "75"), ("Brand Identity", 12, "85"), ("Mockups", 6, "60")],
        "12",
        "Your Creative Studio",
    ),
}


def _line_items(rows: List[Tuple[str, int, str]]) -> List[schemas.LineItem]:
    return [schemas.LineItem(description=text, quantity=qty, rate=Decimal(rate)) for text, qty, rate in rows]


def sample_invoice(template_id: schemas.TemplateId, today: Optional[date] = None) -> schemas.InvoiceData:
    calculator = InvoiceCalculator()
    issue_date = today or date.today()
    items, tax_rate, company = SAMPLES.get(template_id, (BASE_ITEMS, "20", None))

    invoice = schemas.InvoiceData(
        invoice_number="INV-001",
        issue_date=issue_date,
        due_date=calculator.calculate_due_date(issue_date),
        currency="USD",
        business_info=schemas.BusinessInfo(
            name=company or "Your Company",
            email="billing@yourcompany.com",
            phone="+1 (555) 123-4567",
            address="123 Business Street\nCity, State 12345",
        ),
        client_info=schemas.ClientInfo(
            name="Client Name",
            email="client@example.com",
            address="456 Client Avenue\nCity, State 67890",
        ),
        line_items=_line_items(items),
        tax_rate=Decimal(tax_rate),
        notes="Please pay within 30 days of invoice date.",
    )
    return calculator.calculate_totals(invoice)
