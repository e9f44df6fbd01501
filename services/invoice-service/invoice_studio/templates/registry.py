from typing import Dict, List, Optional, Union

from .. import schemas
from ..core.config import settings
from ..core.errors import NotFoundError
from ..core.logging import get_logger
from .base import TemplateRenderer
from .classic import ClassicTemplate
from .corporate import CorporateTemplate
from .creative import CreativeTemplate
from .minimal import MinimalTemplate
from .modern import ModernTemplate
from .render_tree import RenderTree

logger = get_logger("templates")

RENDERERS: Dict[schemas.TemplateId, TemplateRenderer] = {
    renderer.template_id: renderer
    for renderer in (
        ModernTemplate(),
        ClassicTemplate(),
        MinimalTemplate(),
        CreativeTemplate(),
        CorporateTemplate(),
    )
}

DOWNLOAD_FORMATS = [
    schemas.DownloadFormat(type=schemas.DownloadFormatType.PDF, label="PDF", description="Print-ready format"),
    schemas.DownloadFormat(type=schemas.DownloadFormatType.WORD, label="Word", description="Editable document"),
    schemas.DownloadFormat(type=schemas.DownloadFormatType.EXCEL, label="Excel", description="With formulas"),
]

CATALOGUE: List[schemas.TemplateInfo] = [
    schemas.TemplateInfo(
        id=schemas.TemplateId.CLASSIC,
        name="Classic Invoice",
        description="A traditional, professional invoice template perfect for established businesses.",
        category="Professional",
        features=[
            "Clean, professional layout",
            "Company logo placement",
            "Itemized billing section",
            "Tax calculations",
            "Payment terms section",
        ],
        download_formats=DOWNLOAD_FORMATS,
        is_popular=True,
    ),
    schemas.TemplateInfo(
        id=schemas.TemplateId.MODERN,
        name="Modern Invoice",
        description="A sleek, contemporary design with modern typography and clean lines.",
        category="Contemporary",
        features=[
            "Modern typography",
            "Color-coded sections",
            "Responsive design",
            "Digital-friendly layout",
            "Social media integration",
        ],
        download_formats=DOWNLOAD_FORMATS,
        is_new=True,
    ),
    schemas.TemplateInfo(
        id=schemas.TemplateId.MINIMAL,
        name="Minimal Invoice",
        description="A clean, uncluttered design focusing on essential information.",
        category="Minimalist",
        features=[
            "Ultra-clean design",
            "Essential information only",
            "Easy to read",
            "Quick to customize",
            "Mobile-optimized",
        ],
        download_formats=DOWNLOAD_FORMATS,
    ),
    schemas.TemplateInfo(
        id=schemas.TemplateId.CORPORATE,
        name="Corporate Invoice",
        description="A formal, business-focused template for large corporations.",
        category="Corporate",
        features=[
            "Formal business layout",
            "Multiple currency support",
            "Detailed terms & conditions",
            "Signature sections",
            "Compliance-ready",
        ],
        download_formats=DOWNLOAD_FORMATS,
        is_popular=True,
    ),
    schemas.TemplateInfo(
        id=schemas.TemplateId.CREATIVE,
        name="Creative Invoice",
        description="An artistic, unique design perfect for creative professionals.",
        category="Creative",
        features=[
            "Artistic design elements",
            "Custom color schemes",
            "Creative typography",
            "Visual hierarchy",
            "Brand personality",
        ],
        download_formats=DOWNLOAD_FORMATS,
    ),
]


def resolve_template_id(template_id: Union[str, schemas.TemplateId, None]) -> schemas.TemplateId:
    """Map any identifier onto a known template, falling back to the default"""
    try:
        return schemas.TemplateId((template_id or "").strip().lower())
    except (ValueError, AttributeError):
        default = schemas.TemplateId(settings.DEFAULT_TEMPLATE)
        logger.info(f"Unknown template '{template_id}', using '{default.value}'")
        return default


def get_renderer(template_id: Union[str, schemas.TemplateId, None]) -> TemplateRenderer:
    return RENDERERS[resolve_template_id(template_id)]


def project(invoice: schemas.InvoiceData, template_id: Union[str, schemas.TemplateId, None] = None) -> RenderTree:
    """Render an invoice through the selected template. Never fails on an unknown id."""
    return get_renderer(template_id).render(invoice)


def list_templates() -> List[schemas.TemplateInfo]:
    return list(CATALOGUE)


def get_template_info(template_id: str) -> schemas.TemplateInfo:
    info: Optional[schemas.TemplateInfo] = next(
        (entry for entry in CATALOGUE if entry.id.value == (template_id or "").lower()), None
    )
    if info is None:
        raise NotFoundError("Template not found")
    return info
