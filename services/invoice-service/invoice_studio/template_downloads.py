from dataclasses import dataclass
from typing import Optional

from . import schemas
from .core.logging import get_logger
from .pdf_generator import DocumentExporter
from .sample_data import sample_invoice
from .templates import get_template_info, project

logger = get_logger("template_downloads")

EXTENSIONS = {
    schemas.DownloadFormatType.PDF: "pdf",
    schemas.DownloadFormatType.WORD: "docx",
    schemas.DownloadFormatType.EXCEL: "xlsx",
}

MEDIA_TYPES = {
    schemas.DownloadFormatType.PDF: "application/pdf",
    schemas.DownloadFormatType.WORD: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    schemas.DownloadFormatType.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class TemplateDownload:
    content: bytes
    filename: str
    media_type: str
    is_placeholder: bool
    message: str


def download_template(
    template_id: str,
    download_format: schemas.DownloadFormatType,
    exporter: Optional[DocumentExporter] = None,
) -> TemplateDownload:
    """Produce a template file in the requested format.

    PDF is a real document rendered from sample data. Word and Excel are
    plain-text placeholders, flagged with ``is_placeholder``.
    """
    info = get_template_info(template_id)
    download_format = schemas.DownloadFormatType(download_format)
    filename = f"{info.name.replace(' ', '_')}_Template.{EXTENSIONS[download_format]}"

    if download_format == schemas.DownloadFormatType.PDF:
        tree = project(sample_invoice(info.id), info.id)
        content = (exporter or DocumentExporter()).export_structured(tree).content
        is_placeholder = False
    else:
        content = (
            f"This is a placeholder {download_format.value.upper()} file for {info.name}. "
            "PDF generation is fully functional, but Word and Excel generation will be "
            "implemented in a future update."
        ).encode("utf-8")
        is_placeholder = True

    suffix = "(placeholder)" if is_placeholder else "(real template)"
    logger.info(f"Template download {info.id.value} as {download_format.value} {suffix}")
    return TemplateDownload(
        content=content,
        filename=filename,
        media_type=MEDIA_TYPES[download_format],
        is_placeholder=is_placeholder,
        message=f"{info.name} template downloaded successfully as {download_format.value.upper()} {suffix}",
    )
