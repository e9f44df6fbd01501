"""
Document export: turns a ``RenderTree`` into an A4 PDF.

Two strategies are available:

- structured layout (default): text and table primitives are drawn at explicit page
  coordinates. Every block is measured first, then ``paginate`` assigns blocks to
  pages so that no block crosses the bottom threshold. Line item rows that continue
  on a new page get the table header repeated above them.
- raster: the tree is flattened to one bitmap by ``rasterizer`` and scaled to fit a
  single page. Long invoices are shrunk; ``ExportResult.scaled`` reports when.
"""

import asyncio
import base64
import io
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Set, Tuple

import httpx
from fpdf import FPDF
from PIL import Image, UnidentifiedImageError

from . import rasterizer, schemas
from .core.config import settings
from .core.errors import ExportError, operation_boundary
from .core.logging import get_logger
from .invoice_calculator import InvoiceCalculator
from .templates import project
from .templates.render_tree import (
    Chrome,
    LineItemsTable,
    RenderTree,
    Section,
    SectionKind,
    SectionRow,
    Theme,
    TotalsBlock,
)
from .text_layout import truncate_lines, wrap_text

logger = get_logger("pdf_generator")

PAGE_WIDTH = 210.0
PAGE_HEIGHT = 297.0
FOOTER_BAND = 6.0
BLOCK_GAP = 6.0
COLUMN_GAP = 8.0
LINE_HEIGHT = 4.6
HEADING_LINE_HEIGHT = 6.0
CELL_PADDING = 2.0
TABLE_HEADER_HEIGHT = 8.0
TOTALS_WIDTH = 80.0
LOGO_BOX = (36.0, 16.0)

CORE_FONT = "helvetica"
CUSTOM_FONT = "InvoiceSans"

# Core PDF fonts only cover latin-1
CORE_FONT_REPLACEMENTS = {
    "€": "EUR ",
    "₹": "INR ",
    "₩": "KRW ",
    "₺": "TRY ",
    "₽": "RUB ",
    "₪": "ILS ",
    "₱": "PHP ",
    "₫": "VND ",
    "₴": "UAH ",
    "₦": "NGN ",
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "\u2013": "-",
    "\u2014": "-",
    "…": "...",
    "\u00a0": " ",
    "•": "-",
}

WHITE = (255, 255, 255)
MUTED = (107, 114, 128)
TEXT = (17, 24, 39)


def sanitize_text(text: str) -> str:
    for source, target in CORE_FONT_REPLACEMENTS.items():
        text = text.replace(source, target)
    return text.encode("latin-1", "replace").decode("latin-1")


def export_filename(invoice_number: Optional[str], now_ms: Optional[int] = None) -> str:
    """``invoice-<number|draft>-<epochMillis>.pdf``"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", (invoice_number or "").strip()).strip("-.") or "draft"
    return f"invoice-{slug}-{now_ms}.pdf"


@dataclass
class ExportResult:
    content: bytes
    filename: str
    mode: schemas.ExportMode
    page_count: int
    scaled: bool = False

    media_type = "application/pdf"


# === PAGINATION ===

@dataclass
class LayoutBlock:
    kind: str
    height: float
    draw: Callable[[FPDF, float], None] = field(repr=False, compare=False)
    keep_with_next: bool = False
    # Drawn first when this block opens a new page (repeated table header)
    continuation: Optional["LayoutBlock"] = field(default=None, repr=False, compare=False)


@dataclass
class Placement:
    page: int
    y: float
    block: LayoutBlock

    @property
    def bottom(self) -> float:
        return self.y + self.block.height


def paginate(blocks: List[LayoutBlock], top: float, bottom: float) -> List[Placement]:
    """Assign every block a page and a y offset.

    A block never straddles ``bottom``: if it does not fit in what is left of the
    page, a new page is started. Blocks marked ``keep_with_next`` move together
    with the block that follows them. Gaps are dropped at the top of a page.
    """
    placements: List[Placement] = []
    page, y = 1, top

    for index, block in enumerate(blocks):
        if block.kind == "gap":
            if y > top and y + block.height <= bottom:
                y += block.height
            continue

        needed = block.height
        cursor = index
        while blocks[cursor].keep_with_next and cursor + 1 < len(blocks):
            cursor += 1
            needed += blocks[cursor].height

        if y + needed > bottom and y > top:
            page += 1
            y = top
            if block.continuation is not None:
                placements.append(Placement(page, y, block.continuation))
                y += block.continuation.height

        placements.append(Placement(page, y, block))
        y += block.height

    return placements


class InvoicePDF(FPDF):
    """A4 page carrying the template chrome and a page counter"""

    def __init__(self, theme: Theme, chrome: Chrome, margin: float, font_family: str):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.theme = theme
        self.chrome = chrome
        self.margin = margin
        self.base_family = font_family
        self.set_auto_page_break(auto=False)
        self.set_margins(margin, margin, margin)

    def header(self):
        if self.chrome.tinted_background:
            self.set_fill_color(*Theme.to_rgb(self.theme.background))
            self.rect(0, 0, PAGE_WIDTH, PAGE_HEIGHT, style="F")
        if self.chrome.header_bar:
            self.set_fill_color(*Theme.to_rgb(self.theme.primary))
            self.rect(0, 0, PAGE_WIDTH, min(6.0, self.margin - 4), style="F")

    def footer(self):
        if self.chrome.footer_bar:
            height = min(6.0, self.margin - 4)
            self.set_fill_color(*Theme.to_rgb(self.theme.primary))
            self.rect(0, PAGE_HEIGHT - height, PAGE_WIDTH, height, style="F")
        self.set_font(self.base_family, "", 8)
        self.set_text_color(*MUTED)
        self.set_xy(self.margin, PAGE_HEIGHT - self.margin - FOOTER_BAND + 1)
        self.cell(PAGE_WIDTH - 2 * self.margin, FOOTER_BAND - 1, f"Page {self.page_no()} of {{nb}}", align="R")


class StructuredLayout:
    """Measures a render tree into ``LayoutBlock``s bound to one ``InvoicePDF``"""

    def __init__(self, tree: RenderTree, pdf: InvoicePDF, logo: Optional[Image.Image] = None):
        self.tree = tree
        self.pdf = pdf
        self.logo = logo
        self.unicode = pdf.base_family != CORE_FONT
        self.left = pdf.margin
        self.width = PAGE_WIDTH - 2 * pdf.margin
        self.top = pdf.margin
        self.bottom = PAGE_HEIGHT - pdf.margin - FOOTER_BAND
        self.primary = Theme.to_rgb(tree.theme.primary)
        self.secondary = Theme.to_rgb(tree.theme.secondary)
        self.stripe = Theme.to_rgb(tree.theme.background)

    # --- text helpers ---

    def text(self, value: str) -> str:
        return value if self.unicode else sanitize_text(value)

    def font(self, style: str = "", size: float = 9):
        self.pdf.set_font(self.pdf.base_family, style, size)

    def wrap(self, value: str, width: float, style: str = "", size: float = 9) -> List[str]:
        self.font(style, size)
        return wrap_text(self.text(value), width, self.pdf.get_string_width)

    def write_line(self, x: float, y: float, width: float, height: float, value: str, align: str = "L"):
        self.pdf.set_xy(x, y)
        self.pdf.cell(width, height, value, align=align)

    # --- blocks ---

    def build(self) -> List[LayoutBlock]:
        blocks: List[LayoutBlock] = []
        for item in self.tree.blocks:
            if isinstance(item, Section) and item.kind == SectionKind.HEADER:
                produced = [self.header_block(item)]
            elif isinstance(item, Section):
                produced = [self.section_block(item)]
            elif isinstance(item, SectionRow):
                produced = [self.section_row_block(item)]
            elif isinstance(item, LineItemsTable):
                produced = self.table_blocks(item)
            elif isinstance(item, TotalsBlock):
                produced = [self.totals_block(item)]
            else:
                raise ExportError(f"Unsupported block: {type(item).__name__}")
            if blocks:
                blocks.append(LayoutBlock("gap", BLOCK_GAP, lambda pdf, y: None))
            blocks += produced
        return blocks

    def header_block(self, section: Section) -> LayoutBlock:
        centred = section.align == "C"
        column = self.width if centred else (self.width - COLUMN_GAP) / 2
        heading = truncate_lines(self.wrap(section.heading, column, "B", 12), 2) if section.heading else []
        heading_height = len(heading) * HEADING_LINE_HEIGHT + 1 if heading else 0.0
        business = []
        for line in section.lines:
            business += self.wrap(line, column)
        logo_height = LOGO_BOX[1] + 3 if self.logo is not None else 0.0
        rule = 4.0 if self.tree.chrome.rule_under_header else 0.0

        left_height = logo_height + 10 + 6
        # The header never outgrows an empty page
        room = self.bottom - self.top - rule - heading_height - (left_height if centred else 0.0)
        business = truncate_lines(business, max(int(room // LINE_HEIGHT), 1))
        right_height = heading_height + len(business) * LINE_HEIGHT
        if centred:
            height = left_height + right_height
        else:
            height = max(left_height, right_height)

        def draw(pdf: FPDF, y: float):
            if centred:
                identity_x, business_x, align = self.left, self.left, "C"
                business_y = y + left_height
            elif section.align == "R":
                business_x, identity_x, align = self.left, self.left + column + COLUMN_GAP, "L"
                business_y = y
            else:
                identity_x, business_x, align = self.left, self.left + column + COLUMN_GAP, "R"
                business_y = y

            identity_align = "C" if centred else ("R" if section.align == "R" else "L")
            cursor = y
            if self.logo is not None:
                self.draw_logo(identity_x, cursor, column, identity_align)
                cursor += logo_height
            self.font("B", 22)
            pdf.set_text_color(*self.primary)
            self.write_line(identity_x, cursor, column, 10, self.text(section.title or ""), identity_align)
            self.font("", 10)
            pdf.set_text_color(*MUTED)
            self.write_line(identity_x, cursor + 10, column, 6, self.text(section.subtitle or ""), identity_align)

            cursor = business_y
            if heading:
                self.font("B", 12)
                pdf.set_text_color(*TEXT)
                for line in heading:
                    self.write_line(business_x, cursor, column, HEADING_LINE_HEIGHT, line, align)
                    cursor += HEADING_LINE_HEIGHT
                cursor += 1
            self.font("", 9)
            pdf.set_text_color(*MUTED)
            for line in business:
                self.write_line(business_x, cursor, column, LINE_HEIGHT, line, align)
                cursor += LINE_HEIGHT

            if rule:
                pdf.set_draw_color(*self.primary)
                pdf.set_line_width(0.6)
                pdf.line(self.left, y + height + 2, self.left + self.width, y + height + 2)

        return LayoutBlock("header", height + rule, draw)

    def draw_logo(self, x: float, y: float, column: float, align: str):
        box_w, box_h = LOGO_BOX
        ratio = min(box_w / self.logo.width, box_h / self.logo.height)
        w, h = self.logo.width * ratio, self.logo.height * ratio
        if align == "C":
            x += (column - w) / 2
        elif align == "R":
            x += column - w
        self.pdf.image(self.logo, x=x, y=y, w=w, h=h)

    def measure_section(self, section: Section, width: float) -> Tuple[float, Callable[[FPDF, float, float], None]]:
        label_width = width * 0.45
        align = section.align
        lines = []
        for line in section.lines:
            lines += self.wrap(line, width)
        # A section never outgrows an empty page
        page_lines = int((self.bottom - self.top) // LINE_HEIGHT) - 2 - len(section.fields)
        lines = truncate_lines(lines, max(page_lines, 1))
        fields = [
            (self.text(item.label), self.wrap(item.value, width - label_width))
            for item in section.fields
        ]
        height = (7 if section.heading else 0) + len(lines) * LINE_HEIGHT
        height += sum(max(len(value), 1) * LINE_HEIGHT for _, value in fields)

        def draw(pdf: FPDF, x: float, y: float):
            cursor = y
            if section.heading:
                self.font("B", 10)
                pdf.set_text_color(*self.primary)
                self.write_line(x, cursor, width, 7, self.text(section.heading), align)
                cursor += 7
            footer = section.kind == SectionKind.FOOTER
            self.font("I" if footer else "", 9)
            pdf.set_text_color(*(MUTED if footer else TEXT))
            for line in lines:
                self.write_line(x, cursor, width, LINE_HEIGHT, line, align)
                cursor += LINE_HEIGHT
            for label, value in fields:
                self.font("", 9)
                pdf.set_text_color(*MUTED)
                self.write_line(x, cursor, label_width, LINE_HEIGHT, label)
                pdf.set_text_color(*TEXT)
                for line in value:
                    self.write_line(x + label_width, cursor, width - label_width, LINE_HEIGHT, line, "R")
                    cursor += LINE_HEIGHT
                if not value:
                    cursor += LINE_HEIGHT

        return height, draw

    def section_block(self, section: Section) -> LayoutBlock:
        height, draw_at = self.measure_section(section, self.width)
        return LayoutBlock(section.kind.value, height, lambda pdf, y: draw_at(pdf, self.left, y))

    def section_row_block(self, row: SectionRow) -> LayoutBlock:
        count = max(len(row.sections), 1)
        column = (self.width - COLUMN_GAP * (count - 1)) / count
        measured = [self.measure_section(section, column) for section in row.sections]
        height = max((item[0] for item in measured), default=0.0)

        def draw(pdf: FPDF, y: float):
            for index, (_, draw_at) in enumerate(measured):
                draw_at(pdf, self.left + index * (column + COLUMN_GAP), y)

        return LayoutBlock("+".join(section.kind.value for section in row.sections), height, draw)

    def table_blocks(self, table: LineItemsTable) -> List[LayoutBlock]:
        chrome = self.tree.chrome
        widths = [column.width * self.width for column in table.columns]
        blocks: List[LayoutBlock] = []

        if table.heading:
            def draw_heading(pdf: FPDF, y: float):
                self.font("B", 12)
                pdf.set_text_color(*TEXT)
                self.write_line(self.left, y, self.width, 8, self.text(table.heading))

            blocks.append(LayoutBlock("table_heading", 9.0, draw_heading, keep_with_next=True))

        def draw_header(pdf: FPDF, y: float):
            x = self.left
            self.font("B", 9)
            if chrome.table_header_fill:
                pdf.set_fill_color(*self.primary)
                pdf.rect(self.left, y, self.width, TABLE_HEADER_HEIGHT, style="F")
                pdf.set_text_color(*WHITE)
            else:
                pdf.set_text_color(*self.secondary)
                pdf.set_draw_color(*self.secondary)
                pdf.set_line_width(0.3)
                pdf.line(self.left, y + TABLE_HEADER_HEIGHT, self.left + self.width, y + TABLE_HEADER_HEIGHT)
            for column, width in zip(table.columns, widths):
                self.write_line(x + CELL_PADDING, y, width - 2 * CELL_PADDING, TABLE_HEADER_HEIGHT,
                                self.text(column.label), column.align)
                x += width

        header = LayoutBlock("table_header", TABLE_HEADER_HEIGHT, draw_header, keep_with_next=bool(table.rows))
        blocks.append(header)

        # A row may never be taller than an empty page below a repeated header
        max_lines = max(int((self.bottom - self.top - TABLE_HEADER_HEIGHT - 2 * CELL_PADDING) // LINE_HEIGHT) - 1, 1)
        for index, row in enumerate(table.rows):
            cells = [
                truncate_lines(self.wrap(value, width - 2 * CELL_PADDING), max_lines)
                for value, width in zip(row, widths)
            ]
            height = max(len(cell) for cell in cells) * LINE_HEIGHT + 2 * CELL_PADDING
            blocks.append(
                LayoutBlock("row", height, self._row_drawer(table, widths, cells, height, index), continuation=header)
            )
        return blocks

    def _row_drawer(self, table: LineItemsTable, widths: List[float], cells: List[List[str]], height: float, index: int):
        chrome = self.tree.chrome

        def draw(pdf: FPDF, y: float):
            if chrome.striped_rows and index % 2 == 1:
                pdf.set_fill_color(*self.stripe)
                pdf.rect(self.left, y, self.width, height, style="F")
            if chrome.table_borders:
                pdf.set_draw_color(*MUTED)
                pdf.set_line_width(0.2)
                pdf.rect(self.left, y, self.width, height)
            else:
                pdf.set_draw_color(229, 231, 235)
                pdf.set_line_width(0.2)
                pdf.line(self.left, y + height, self.left + self.width, y + height)
            x = self.left
            pdf.set_text_color(*TEXT)
            for column_index, (column, width, cell) in enumerate(zip(table.columns, widths, cells)):
                self.font("B" if column_index == len(widths) - 1 else "", 9)
                cursor = y + CELL_PADDING
                for line in cell:
                    self.write_line(x + CELL_PADDING, cursor, width - 2 * CELL_PADDING, LINE_HEIGHT, line, column.align)
                    cursor += LINE_HEIGHT
                x += width

        return draw

    def totals_block(self, totals: TotalsBlock) -> LayoutBlock:
        x = self.left + self.width - TOTALS_WIDTH
        heights = [9.0 if row.emphasized else 6.0 for row in totals.rows]

        def draw(pdf: FPDF, y: float):
            cursor = y
            for row, row_height in zip(totals.rows, heights):
                if row.emphasized:
                    pdf.set_draw_color(*self.primary)
                    pdf.set_line_width(0.4)
                    pdf.line(x, cursor + 1, x + TOTALS_WIDTH, cursor + 1)
                    self.font("B", 12)
                    pdf.set_text_color(*self.primary)
                    cursor += 2
                else:
                    self.font("", 9)
                    pdf.set_text_color(*TEXT)
                self.write_line(x, cursor, TOTALS_WIDTH / 2, row_height - 1, self.text(row.label))
                self.write_line(x + TOTALS_WIDTH / 2, cursor, TOTALS_WIDTH / 2, row_height - 1,
                                self.text(row.value), "R")
                cursor += row_height - (2 if row.emphasized else 0)

        return LayoutBlock("totals", sum(heights), draw)


# === EXPORTERS ===

class DocumentExporter:
    """Synchronous PDF export for one render tree"""

    def __init__(self, margin: Optional[float] = None, font_path: Optional[str] = None, raster_dpi: Optional[int] = None):
        self.margin = margin if margin is not None else settings.PDF_MARGIN_MM
        self.font_path = font_path if font_path is not None else settings.PDF_FONT_PATH
        self.raster_dpi = raster_dpi or settings.RASTER_DPI

    def new_pdf(self, tree: RenderTree) -> InvoicePDF:
        family = CUSTOM_FONT if self.font_path else CORE_FONT
        pdf = InvoicePDF(tree.theme, tree.chrome, self.margin, family)
        if self.font_path:
            for style in ("", "B", "I"):
                pdf.add_font(CUSTOM_FONT, style, self.font_path)
        pdf.set_title(f"Invoice {tree.invoice_number}".strip())
        pdf.set_creator(settings.APP_NAME)
        return pdf

    def layout(self, tree: RenderTree, logo: Optional[bytes] = None) -> Tuple[InvoicePDF, StructuredLayout, List[Placement]]:
        pdf = self.new_pdf(tree)
        layout = StructuredLayout(tree, pdf, open_logo(logo))
        placements = paginate(layout.build(), layout.top, layout.bottom)
        return pdf, layout, placements

    def export_structured(self, tree: RenderTree, logo: Optional[bytes] = None, now_ms: Optional[int] = None) -> ExportResult:
        pdf, _, placements = self.layout(tree, logo)
        page = 0
        for placement in placements:
            while page < placement.page:
                pdf.add_page()
                page += 1
            placement.block.draw(pdf, placement.y)
        if page == 0:
            pdf.add_page()
            page = 1

        logger.info(f"Structured export of {tree.invoice_number or 'draft'}: {page} page(s)")
        return ExportResult(
            content=bytes(pdf.output()),
            filename=export_filename(tree.invoice_number, now_ms),
            mode=schemas.ExportMode.STRUCTURED,
            page_count=page,
        )

    def export_raster(self, tree: RenderTree, logo: Optional[bytes] = None, now_ms: Optional[int] = None) -> ExportResult:
        content_width = PAGE_WIDTH - 2 * self.margin
        content_height = PAGE_HEIGHT - 2 * self.margin
        image = rasterizer.rasterize(tree, content_width, self.raster_dpi, logo=open_logo(logo))

        image_width = image.width * 25.4 / self.raster_dpi
        image_height = image.height * 25.4 / self.raster_dpi
        scale = min(content_width / image_width, content_height / image_height, 1.0)
        scaled = image_height > content_height
        if scaled:
            logger.warning(
                f"Raster export of {tree.invoice_number or 'draft'} is {image_height:.0f}mm tall; "
                f"shrunk by {scale:.2f} to fit one page"
            )

        width, height = image_width * scale, image_height * scale
        pdf = self.new_pdf(tree)
        pdf.add_page()
        pdf.image(image, x=(PAGE_WIDTH - width) / 2, y=(PAGE_HEIGHT - height) / 2 if scaled else self.margin, w=width, h=height)

        return ExportResult(
            content=bytes(pdf.output()),
            filename=export_filename(tree.invoice_number, now_ms),
            mode=schemas.ExportMode.RASTER,
            page_count=1,
            scaled=scaled,
        )

    def export(self, tree: RenderTree, mode: schemas.ExportMode = schemas.ExportMode.STRUCTURED,
               logo: Optional[bytes] = None, now_ms: Optional[int] = None) -> ExportResult:
        if mode == schemas.ExportMode.RASTER:
            return self.export_raster(tree, logo, now_ms)
        return self.export_structured(tree, logo, now_ms)


def open_logo(data: Optional[bytes]) -> Optional[Image.Image]:
    if not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning(f"Ignoring unreadable logo: {exc}")
        return None
    if image.mode not in ("RGB", "RGBA", "L"):
        image = image.convert("RGBA")
    return image


async def fetch_logo(reference: Optional[str], timeout: float = 10.0) -> Optional[bytes]:
    """Load a logo from a data URI or a public URL. A missing logo is not an error."""
    if not reference:
        return None
    if reference.startswith("data:"):
        try:
            return base64.b64decode(reference.split(",", 1)[1])
        except (IndexError, ValueError):
            logger.warning("Ignoring malformed logo data URI")
            return None
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(reference)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as exc:
        logger.warning(f"Could not fetch logo {reference}: {exc}")
        return None


class ExportGuard:
    """Rejects a second export of the same invoice while one is running"""

    def __init__(self):
        self._in_flight: Set[str] = set()

    def is_running(self, key: str) -> bool:
        return key in self._in_flight

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        if key in self._in_flight:
            raise ExportError(
                "An export for this invoice is already in progress",
                code="EXPORT_IN_PROGRESS",
                status_code=409,
            )
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


class PDFGenerator:
    """Recomputes, renders and exports invoices for the API"""

    def __init__(self, exporter: Optional[DocumentExporter] = None, guard: Optional[ExportGuard] = None):
        self.exporter = exporter or DocumentExporter()
        self.guard = guard or ExportGuard()
        self.calculator = InvoiceCalculator()

    async def generate_invoice_pdf(
        self,
        invoice: schemas.InvoiceData,
        template: Optional[str] = None,
        mode: schemas.ExportMode = schemas.ExportMode.STRUCTURED,
        key: Optional[str] = None,
    ) -> ExportResult:
        key = key or invoice.invoice_number or "draft"
        with self.guard.hold(key):
            with operation_boundary("export_invoice", fallback=ExportError, invoice=key, mode=mode.value):
                tree = project(self.calculator.calculate_totals(invoice), template)
                logo = await fetch_logo(tree.logo)
                return await asyncio.to_thread(self.exporter.export, tree, mode, logo)

