from datetime import date
from decimal import Decimal

import pytest

from invoice_studio import schemas
from invoice_studio.core.errors import ValidationError
from invoice_studio.validation import (
    banking_trio_errors,
    clean_record,
    invoice_errors,
    validate_amounts,
    validate_client,
    validate_invoice,
    validate_logo,
    validate_profile,
)

TRIO_MESSAGES = {
    "bank_name": "Bank name is required when banking details are provided",
    "account_number": "Account number is required when banking details are provided",
    "swift_code": "SWIFT code is required when banking details are provided",
}


@pytest.mark.parametrize(
    "banking,missing",
    [
        ({}, []),
        ({"iban": "GB82WEST12345698765432"}, []),
        ({"bank_name": "First Bank"}, ["account_number", "swift_code"]),
        ({"bank_name": "First Bank", "account_number": "12345678"}, ["swift_code"]),
        ({"swift_code": "FIRSGB2L"}, ["bank_name", "account_number"]),
        ({"bank_name": "First Bank", "account_number": "12345678", "swift_code": "FIRSGB2L"}, []),
        ({"bank_name": "  ", "account_number": "", "swift_code": ""}, []),
    ],
)
def test_banking_trio(banking, missing):
    errors = banking_trio_errors(schemas.BankingInfo(**banking))
    assert [error.field for error in errors] == missing
    assert [error.message for error in errors] == [TRIO_MESSAGES[field] for field in missing]


def test_valid_invoice_passes(invoice_factory):
    validate_invoice(invoice_factory([(1, 100)]))


def test_invoice_errors_are_collected(invoice_factory):
    invoice = invoice_factory(
        [],
        line_items=[schemas.LineItem(description="", quantity=0, rate=Decimal("-5"))],
        tax_rate="120",
        invoice_number=" ",
        currency="QQQ",
        business_info=schemas.BusinessInfo(name="", email="not-an-email"),
        client_info=schemas.ClientInfo(name="", email="also@bad"),
    )
    fields = [error.field for error in invoice_errors(invoice)]
    assert fields == [
        "invoice_number",
        "currency",
        "business_info.name",
        "business_info.email",
        "client_info.name",
        "client_info.email",
        "line_items.0.description",
        "line_items.0.quantity",
        "line_items.0.rate",
        "tax_rate",
    ]


def test_invoice_requires_line_items(invoice_factory):
    with pytest.raises(ValidationError) as exc_info:
        validate_invoice(invoice_factory([]))
    assert exc_info.value.errors[0].message == "At least one line item is required"
    assert exc_info.value.status_code == 422


def test_due_date_before_issue_date(invoice_factory):
    invoice = invoice_factory([(1, 10)], issue_date=date(2025, 3, 1), due_date=date(2025, 2, 1))
    errors = invoice_errors(invoice)
    assert [(error.field, error.message) for error in errors] == [
        ("due_date", "Due date cannot be before issue date")
    ]
    assert invoice_errors(invoice, enforce_due_after_issue=False) == []


def test_invoice_banking_errors_are_prefixed(invoice_factory):
    invoice = invoice_factory([(1, 10)], banking_info=schemas.BankingInfo(bank_name="First Bank"))
    fields = [error.field for error in invoice_errors(invoice)]
    assert fields == ["banking_info.account_number", "banking_info.swift_code"]


def test_discount_rate_out_of_range(invoice_factory):
    errors = invoice_errors(invoice_factory([(1, 10)], discount_rate="-1"))
    assert [(error.field, error.message) for error in errors] == [
        ("discount_rate", "Discount rate must be between 0 and 100")
    ]


def test_validate_amounts_allows_incomplete_draft(invoice_factory):
    invoice = invoice_factory(
        [(1, 0)],
        client_info=schemas.ClientInfo(name="", email=""),
    )
    invoice.line_items[0].description = ""
    validate_amounts(invoice)


def test_validate_amounts_rejects_negative_inputs(invoice_factory):
    invoice = invoice_factory([(2, 10), (-3, 100), (1, -5)], tax_rate="250")
    with pytest.raises(ValidationError, match="Please fix the highlighted amounts") as exc_info:
        validate_amounts(invoice)
    assert [(error.field, error.message) for error in exc_info.value.errors] == [
        ("line_items.1.quantity", "Line item 2: Quantity must be greater than 0"),
        ("line_items.2.rate", "Line item 3: Rate cannot be negative"),
        ("tax_rate", "Tax rate must be between 0 and 100"),
    ]


def test_validate_client_cleans_input():
    cleaned = validate_client({"name": "  Globex  ", "email": " AP@Globex.TEST ", "address": "   "})
    assert cleaned == {"name": "Globex", "email": "ap@globex.test", "address": None}


@pytest.mark.parametrize(
    "data,field",
    [
        ({"name": "G", "email": "ap@globex.test"}, "name"),
        ({"name": "x" * 101, "email": "ap@globex.test"}, "name"),
        ({"name": "Globex", "email": ""}, "email"),
        ({"name": "Globex", "email": "globex"}, "email"),
        ({"name": "Globex", "email": "ap@globex.test", "address": "a" * 501}, "address"),
    ],
)
def test_validate_client_rejects(data, field):
    with pytest.raises(ValidationError) as exc_info:
        validate_client(data)
    assert exc_info.value.fields == [field]


def test_partial_client_update_checks_supplied_fields_only():
    assert validate_client({"address": "1 Main St"}, partial=True) == {"address": "1 Main St"}
    with pytest.raises(ValidationError):
        validate_client({"email": "bad"}, partial=True)


def test_validate_profile_normalises_codes():
    cleaned = validate_profile(
        {
            "business_name": "Acme",
            "email": "Hello@Acme.test",
            "website": "https://acme.test",
            "default_currency": "eur",
            "default_tax_rate": Decimal("20"),
            "invoice_prefix": "acm",
            "bank_name": "First Bank",
            "account_number": "12345678",
            "swift_code": "firsgb2l",
            "iban": "gb82 west 1234 5698 7654 32",
        }
    )
    assert cleaned["email"] == "hello@acme.test"
    assert cleaned["default_currency"] == "EUR"
    assert cleaned["invoice_prefix"] == "ACM"
    assert cleaned["swift_code"] == "FIRSGB2L"
    assert cleaned["iban"] == "GB82WEST12345698765432"


@pytest.mark.parametrize(
    "data,field,message",
    [
        ({"website": "acme.test"}, "website", "Website must start with http:// or https://"),
        ({"default_currency": "QQQ"}, "default_currency", "Unknown currency code: QQQ"),
        ({"default_tax_rate": 101}, "default_tax_rate", "Default tax rate must be between 0 and 100"),
        (
            {"bank_name": "B", "account_number": "1", "swift_code": "ABC"},
            "swift_code",
            "SWIFT code must be 8 or 11 characters",
        ),
        ({"iban": "12345"}, "iban", "Please enter a valid IBAN"),
        ({"invoice_prefix": "abcdefghijk"}, "invoice_prefix", "Invoice prefix must be at most 10 characters"),
    ],
)
def test_validate_profile_rejects(data, field, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_profile(data)
    assert (exc_info.value.errors[0].field, exc_info.value.errors[0].message) == (field, message)


def test_validate_profile_enforces_banking_trio():
    with pytest.raises(ValidationError) as exc_info:
        validate_profile({"bank_name": "First Bank"})
    assert exc_info.value.fields == ["account_number", "swift_code"]


def test_validate_logo():
    validate_logo("image/png", 1024, 2 * 1024 * 1024)
    with pytest.raises(ValidationError, match="Invalid logo file") as exc_info:
        validate_logo("application/pdf", 3 * 1024 * 1024, 2 * 1024 * 1024)
    assert [error.message for error in exc_info.value.errors] == [
        "Please upload a JPEG, PNG, GIF or WebP image",
        "Logo must be smaller than 2MB",
    ]
    with pytest.raises(ValidationError):
        validate_logo("image/png", 0, 1024)


def test_clean_record_keeps_non_string_values():
    assert clean_record({"default_tax_rate": Decimal("0"), "phone": "", "name": " A "}) == {
        "default_tax_rate": Decimal("0"),
        "phone": None,
        "name": "A",
    }
