from datetime import date
from decimal import Decimal

import pytest

from invoice_studio import schemas
from invoice_studio.core.errors import NotFoundError
from invoice_studio.sample_data import sample_invoice
from invoice_studio.template_downloads import download_template


@pytest.mark.parametrize(
    "template_id,total",
    [
        (schemas.TemplateId.MODERN, "2645.00"),
        (schemas.TemplateId.MINIMAL, "2530.00"),
        (schemas.TemplateId.CORPORATE, "2478.00"),
        (schemas.TemplateId.CREATIVE, "2217.60"),
        (schemas.TemplateId.CLASSIC, "1800.00"),
    ],
)
def test_sample_invoice_totals(template_id, total):
    invoice = sample_invoice(template_id, today=date(2025, 1, 1))
    assert invoice.total.quantize(Decimal("0.01")) == Decimal(total)
    assert invoice.due_date == date(2025, 1, 31)


def test_pdf_download_is_a_real_document():
    download = download_template("classic", schemas.DownloadFormatType.PDF)
    assert download.content.startswith(b"%PDF")
    assert download.filename == "Classic_Invoice_Template.pdf"
    assert download.media_type == "application/pdf"
    assert not download.is_placeholder
    assert download.message == "Classic Invoice template downloaded successfully as PDF (real template)"


@pytest.mark.parametrize(
    "download_format,extension",
    [(schemas.DownloadFormatType.WORD, "docx"), (schemas.DownloadFormatType.EXCEL, "xlsx")],
)
def test_word_and_excel_downloads_are_flagged_placeholders(download_format, extension):
    download = download_template("corporate", download_format)
    assert download.is_placeholder
    assert download.filename == f"Corporate_Invoice_Template.{extension}"
    assert download.message.endswith("(placeholder)")
    assert b"placeholder" in download.content


def test_download_unknown_template():
    with pytest.raises(NotFoundError):
        download_template("bogus", schemas.DownloadFormatType.PDF)
