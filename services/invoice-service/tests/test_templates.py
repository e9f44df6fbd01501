import pytest

from invoice_studio import schemas
from invoice_studio.core.errors import NotFoundError
from invoice_studio.invoice_calculator import InvoiceCalculator
from invoice_studio.templates import get_template_info, list_templates, project, resolve_template_id
from invoice_studio.templates.render_tree import Section, SectionKind, SectionRow

calculator = InvoiceCalculator()
ALL_TEMPLATES = [template.value for template in schemas.TemplateId]


def _sections(tree):
    for block in tree.blocks:
        if isinstance(block, Section):
            yield block
        elif isinstance(block, SectionRow):
            yield from block.sections


def _section(tree, kind):
    return next((section for section in _sections(tree) if section.kind == kind), None)


def _totals(tree):
    return [(row.label.rstrip(":"), row.value) for row in tree.totals.rows]


@pytest.mark.parametrize("template_id", ALL_TEMPLATES)
def test_zero_rates_hide_discount_and_tax_rows(invoice_factory, template_id):
    invoice = calculator.calculate_totals(invoice_factory([(1, 1000), (1, 500)]))
    assert _totals(project(invoice, template_id)) == [("Subtotal", "$1,500.00"), ("Total", "$1,500.00")]


@pytest.mark.parametrize("template_id", ALL_TEMPLATES)
def test_discount_and_tax_rows(invoice_factory, template_id):
    invoice = calculator.calculate_totals(
        invoice_factory([(2, 750), (1, 800)], tax_rate="15", discount_rate="10")
    )
    rows = project(invoice, template_id).totals.rows
    assert _totals(project(invoice, template_id)) == [
        ("Subtotal", "$2,300.00"),
        ("Discount (10%)", "-$230.00"),
        ("Tax (15%)", "$310.50"),
        ("Total", "$2,380.50"),
    ]
    assert [row.emphasized for row in rows] == [False, False, False, True]


def test_tax_without_discount(invoice_factory):
    invoice = calculator.calculate_totals(invoice_factory([(1, 1000), (1, 500)], tax_rate="20"))
    assert _totals(project(invoice, "classic")) == [
        ("Subtotal", "$1,500.00"),
        ("Tax (20%)", "$300.00"),
        ("Total", "$1,800.00"),
    ]


def test_fractional_rate_label(invoice_factory):
    invoice = calculator.calculate_totals(invoice_factory([(1, 100)], tax_rate="12.5"))
    assert _totals(project(invoice, "modern"))[1] == ("Tax (12.5%)", "$12.50")


def test_labels_carry_colons_except_minimal(invoice_factory):
    invoice = calculator.calculate_totals(invoice_factory([(1, 100)], tax_rate="10"))
    assert project(invoice, "modern").totals.rows[0].label == "Subtotal:"
    assert project(invoice, "minimal").totals.rows[0].label == "Subtotal"
    assert _section(project(invoice, "minimal"), SectionKind.BILL_TO).heading == "Bill To"


def test_unknown_template_falls_back_to_default(invoice_factory):
    invoice = calculator.calculate_totals(invoice_factory([(1, 100)]))
    assert project(invoice, "bogus") == project(invoice, "modern")
    assert project(invoice, None).template_id == "modern"
    assert resolve_template_id("CLASSIC") == schemas.TemplateId.CLASSIC


@pytest.mark.parametrize("template_id", ALL_TEMPLATES)
def test_notes_and_banking_hidden_when_empty(invoice_factory, template_id):
    tree = project(calculator.calculate_totals(invoice_factory([(1, 100)], notes="   ")), template_id)
    assert _section(tree, SectionKind.NOTES) is None
    assert _section(tree, SectionKind.BANKING) is None


@pytest.mark.parametrize("template_id", ALL_TEMPLATES)
def test_banking_shows_only_filled_fields(invoice_factory, template_id):
    invoice = invoice_factory(
        [(1, 100)],
        notes="Payment within 30 days",
        banking_info=schemas.BankingInfo(iban="GB82WEST12345698765432"),
    )
    tree = project(calculator.calculate_totals(invoice), template_id)
    banking = _section(tree, SectionKind.BANKING)
    assert [(field.label.rstrip(":"), field.value) for field in banking.fields] == [
        ("IBAN", "GB82WEST12345698765432")
    ]
    assert _section(tree, SectionKind.NOTES).lines == ["Payment within 30 days"]


def test_multiline_address_becomes_separate_lines(invoice_factory):
    tree = project(calculator.calculate_totals(invoice_factory([(1, 100)])), "modern")
    assert _section(tree, SectionKind.BILL_TO).lines == [
        "Globex",
        "ap@globex.test",
        "456 Client Avenue",
        "Springfield",
    ]


def test_dates_and_line_rows_are_display_strings(invoice_factory):
    tree = project(calculator.calculate_totals(invoice_factory([(3, "19.99")])), "corporate")
    details = _section(tree, SectionKind.DETAILS)
    assert [field.value for field in details.fields] == ["January 15, 2025", "February 14, 2025", "USD"]
    assert tree.table.rows == [["Item 1", "3", "$19.99", "$59.97"]]
    assert tree.table.heading is None


def test_templates_differ_in_theme_and_layout(invoice_factory):
    invoice = calculator.calculate_totals(
        invoice_factory([(1, 100)], notes="Thanks", banking_info=schemas.BankingInfo(bank_name="B", account_number="1", swift_code="FIRSGB2L"))
    )
    trees = {template_id: project(invoice, template_id) for template_id in ALL_TEMPLATES}
    assert len({tree.theme.primary for tree in trees.values()}) == len(ALL_TEMPLATES)
    assert trees["modern"].block_types() == [
        "header", "bill_to+details", "line_items", "totals", "notes", "banking", "footer",
    ]
    assert trees["corporate"].block_types().index("banking") < trees["corporate"].block_types().index("notes")
    assert trees["creative"].table.heading == "Items & Services"
    assert trees["creative"].chrome.tinted_background


def test_header_carries_business_and_number(invoice_factory):
    tree = project(calculator.calculate_totals(invoice_factory([(1, 100)])), "classic")
    header = _section(tree, SectionKind.HEADER)
    assert header.heading == "Acme Studio"
    assert header.subtitle == "#INV-001"
    assert header.align == "C"


def test_render_tree_to_dict(invoice_factory):
    data = project(calculator.calculate_totals(invoice_factory([(1, 100)])), "minimal").to_dict()
    assert data["template_id"] == "minimal"
    assert data["layout"][0] == "header"
    assert data["theme"]["primary"] == "#374151"


def test_catalogue():
    templates = list_templates()
    assert [template.id.value for template in templates] == ["classic", "modern", "minimal", "corporate", "creative"]
    assert [template.id.value for template in templates if template.is_popular] == ["classic", "corporate"]
    assert all(len(template.download_formats) == 3 for template in templates)
    assert get_template_info("Modern").is_new
    with pytest.raises(NotFoundError, match="Template not found"):
        get_template_info("bogus")


@pytest.mark.parametrize("template_id", ALL_TEMPLATES)
def test_empty_invoice_still_renders_totals(invoice_factory, template_id):
    tree = project(calculator.calculate_totals(invoice_factory([])), template_id)
    assert _totals(tree) == [("Subtotal", "$0.00"), ("Total", "$0.00")]
    assert tree.table.rows == []
