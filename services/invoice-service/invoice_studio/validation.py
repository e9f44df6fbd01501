"""
Field-level validation and input cleaning.

Validators collect every problem they find as ``FieldError`` entries and raise a
single ``ValidationError`` so the caller can show each message next to its field.
"""

import re
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from . import currency, schemas
from .core.config import settings
from .core.errors import FieldError, ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WEBSITE_PATTERN = re.compile(r"^https?://.+\..+")
SWIFT_PATTERN = re.compile(r"^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$")
IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{4}[0-9]{7}([A-Z0-9]?){0,16}$")

ALLOWED_LOGO_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")

BANKING_TRIO = (
    ("bank_name", "Bank name"),
    ("account_number", "Account number"),
    ("swift_code", "SWIFT code"),
)

CLIENT_NAME_MIN = 2
CLIENT_NAME_MAX = 100
CLIENT_ADDRESS_MAX = 500
INVOICE_PREFIX_MAX = 10


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def banking_trio_errors(banking: Any, prefix: str = "") -> List[FieldError]:
    """If any of bank name, account number or SWIFT code is set, all three are required.

    IBAN stays independently optional.
    """
    values = {field: getattr(banking, field, None) for field, _ in BANKING_TRIO}
    if all(_blank(value) for value in values.values()):
        return []
    return [
        FieldError(f"{prefix}{field}", f"{label} is required when banking details are provided")
        for field, label in BANKING_TRIO
        if _blank(values[field])
    ]


def _rate_errors(field: str, label: str, value: Optional[Decimal]) -> List[FieldError]:
    if value is None:
        return []
    if value < 0 or value > 100:
        return [FieldError(field, f"{label} must be between 0 and 100")]
    return []


# === INVOICES ===

def invoice_errors(
    invoice: schemas.InvoiceData,
    enforce_due_after_issue: Optional[bool] = None,
) -> List[FieldError]:
    if enforce_due_after_issue is None:
        enforce_due_after_issue = settings.ENFORCE_DUE_AFTER_ISSUE

    errors: List[FieldError] = []

    if _blank(invoice.invoice_number):
        errors.append(FieldError("invoice_number", "Invoice number is required"))
    if _blank(invoice.currency):
        errors.append(FieldError("currency", "Currency is required"))
    elif not currency.is_known(invoice.currency):
        errors.append(FieldError("currency", f"Unknown currency code: {invoice.currency}"))

    if enforce_due_after_issue and invoice.due_date < invoice.issue_date:
        errors.append(FieldError("due_date", "Due date cannot be before issue date"))

    business = invoice.business_info
    if _blank(business.name):
        errors.append(FieldError("business_info.name", "Business name is required"))
    if not _blank(business.email) and not is_valid_email(business.email):
        errors.append(FieldError("business_info.email", "Please enter a valid email address"))

    client = invoice.client_info
    if _blank(client.name):
        errors.append(FieldError("client_info.name", "Client name is required"))
    if not _blank(client.email) and not is_valid_email(client.email):
        errors.append(FieldError("client_info.email", "Please enter a valid email address"))

    if not invoice.line_items:
        errors.append(FieldError("line_items", "At least one line item is required"))
    for index, item in enumerate(invoice.line_items):
        if _blank(item.description):
            errors.append(
                FieldError(f"line_items.{index}.description", f"Line item {index + 1}: Description is required")
            )

    errors += amount_errors(invoice)
    errors += banking_trio_errors(invoice.banking_info, prefix="banking_info.")
    return errors


def line_amount_errors(
    quantity: Optional[int],
    rate: Optional[Decimal],
    field: str = "",
    label: str = "",
) -> List[FieldError]:
    """Quantity must be positive and rate non-negative; ``None`` means not supplied"""
    errors: List[FieldError] = []
    if quantity is not None and quantity <= 0:
        errors.append(FieldError(f"{field}quantity", f"{label}Quantity must be greater than 0"))
    if rate is not None and rate < 0:
        errors.append(FieldError(f"{field}rate", f"{label}Rate cannot be negative"))
    return errors


def amount_errors(invoice: schemas.InvoiceData) -> List[FieldError]:
    """The numeric inputs of the totals engine: quantities, rates, tax and discount"""
    errors: List[FieldError] = []
    for index, item in enumerate(invoice.line_items):
        errors += line_amount_errors(
            item.quantity, item.rate, field=f"line_items.{index}.", label=f"Line item {index + 1}: "
        )
    errors += _rate_errors("tax_rate", "Tax rate", invoice.tax_rate)
    errors += _rate_errors("discount_rate", "Discount rate", invoice.discount_rate)
    return errors


def validate_invoice(invoice: schemas.InvoiceData, enforce_due_after_issue: Optional[bool] = None) -> None:
    errors = invoice_errors(invoice, enforce_due_after_issue)
    if errors:
        raise ValidationError(errors, "Please fix the highlighted invoice fields")


def validate_amounts(
    invoice: schemas.InvoiceData,
    quantity: Optional[int] = None,
    rate: Optional[Decimal] = None,
) -> None:
    """Reject a draft whose amounts would compute negative or out-of-range totals.

    Drafts may still be incomplete (blank descriptions, no client yet); only the
    numbers feeding the calculator are checked. ``quantity`` and ``rate`` are a
    pending line item change, reported under their own field names.
    """
    errors = amount_errors(invoice) + line_amount_errors(quantity, rate)
    if errors:
        raise ValidationError(errors, "Please fix the highlighted amounts")


# === CLIENTS ===

def client_errors(data: Mapping[str, Any], partial: bool = False) -> List[FieldError]:
    """Validate client fields; with ``partial`` only the supplied fields are checked"""
    errors: List[FieldError] = []

    if not partial or "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            errors.append(FieldError("name", "Client name is required"))
        elif len(name) < CLIENT_NAME_MIN:
            errors.append(FieldError("name", f"Client name must be at least {CLIENT_NAME_MIN} characters"))
        elif len(name) > CLIENT_NAME_MAX:
            errors.append(FieldError("name", f"Client name must be at most {CLIENT_NAME_MAX} characters"))

    if not partial or "email" in data:
        email = (data.get("email") or "").strip()
        if not email:
            errors.append(FieldError("email", "Email is required"))
        elif not is_valid_email(email):
            errors.append(FieldError("email", "Please enter a valid email address"))

    address = data.get("address")
    if address and len(address) > CLIENT_ADDRESS_MAX:
        errors.append(FieldError("address", f"Address must be at most {CLIENT_ADDRESS_MAX} characters"))

    return errors


def validate_client(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Clean and validate client input, returning the cleaned mapping"""
    cleaned = clean_record(data)
    errors = client_errors(cleaned, partial=partial)
    if errors:
        raise ValidationError(errors, "Please fix the highlighted client fields")
    return cleaned


# === PROFILES ===

def profile_errors(data: Mapping[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []

    email = data.get("email")
    if email and not is_valid_email(email):
        errors.append(FieldError("email", "Please enter a valid email address"))

    website = data.get("website")
    if website and not WEBSITE_PATTERN.match(website):
        errors.append(FieldError("website", "Website must start with http:// or https://"))

    invoice_prefix = data.get("invoice_prefix")
    if invoice_prefix and len(invoice_prefix) > INVOICE_PREFIX_MAX:
        errors.append(
            FieldError("invoice_prefix", f"Invoice prefix must be at most {INVOICE_PREFIX_MAX} characters")
        )

    default_currency = data.get("default_currency")
    if default_currency and not currency.is_known(default_currency):
        errors.append(FieldError("default_currency", f"Unknown currency code: {default_currency}"))

    tax_rate = data.get("default_tax_rate")
    if tax_rate is not None:
        errors += _rate_errors("default_tax_rate", "Default tax rate", Decimal(str(tax_rate)))

    swift_code = data.get("swift_code")
    if swift_code and not SWIFT_PATTERN.match(swift_code):
        errors.append(FieldError("swift_code", "SWIFT code must be 8 or 11 characters"))

    iban = data.get("iban")
    if iban and not IBAN_PATTERN.match(iban):
        errors.append(FieldError("iban", "Please enter a valid IBAN"))

    errors += banking_trio_errors(_Fields(data))
    return errors


def validate_profile(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Clean and validate a complete profile, returning the cleaned mapping"""
    cleaned = clean_record(data)
    errors = profile_errors(cleaned)
    if errors:
        raise ValidationError(errors, "Please fix the highlighted profile fields")
    return cleaned


class _Fields:
    """Attribute access over a mapping, for the shared banking trio check"""

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    def __getattr__(self, name: str) -> Any:
        return self._data.get(name)


# === FILES ===

def validate_logo(content_type: Optional[str], size: int, max_bytes: int) -> None:
    errors: List[FieldError] = []
    if (content_type or "").lower() not in ALLOWED_LOGO_TYPES:
        errors.append(FieldError("logo", "Please upload a JPEG, PNG, GIF or WebP image"))
    if size > max_bytes:
        errors.append(FieldError("logo", f"Logo must be smaller than {max_bytes // (1024 * 1024)}MB"))
    if size == 0:
        errors.append(FieldError("logo", "The uploaded file is empty"))
    if errors:
        raise ValidationError(errors, "Invalid logo file")


# === CLEANING ===

UPPER_CASE_FIELDS = ("invoice_prefix", "swift_code", "iban", "default_currency")


def clean_record(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Trim strings, turn empty strings into None and normalise case-sensitive codes"""
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = value.strip() or None
        if value is not None:
            if key == "email":
                value = value.lower()
            elif key in UPPER_CASE_FIELDS:
                value = value.upper().replace(" ", "") if key == "iban" else value.upper()
        cleaned[key] = value
    return cleaned
