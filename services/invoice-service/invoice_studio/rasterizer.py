"""Flatten a render tree into a single bitmap with Pillow, for quick previews."""

from typing import Callable, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from .core.config import settings
from .templates.render_tree import (
    LineItemsTable,
    RenderTree,
    Section,
    SectionRow,
    Theme,
    TotalsBlock,
)
from .text_layout import wrap_text

MM_PER_INCH = 25.4
TEXT = (17, 24, 39)
MUTED = (107, 114, 128)
WHITE = (255, 255, 255)

DrawOp = Callable[[ImageDraw.ImageDraw], None]


class _Canvas:
    """Records draw operations top to bottom so the image can be sized afterwards"""

    def __init__(self, width: int, dpi: int, font_path: Optional[str]):
        self.width = width
        self.dpi = dpi
        self.font_path = font_path
        self.ops: List[DrawOp] = []
        self.y = 0
        self._fonts = {}
        self._measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))

    def px(self, mm: float) -> int:
        return int(round(mm * self.dpi / MM_PER_INCH))

    def font(self, points: float):
        size = max(int(points * self.dpi / 72), 6)
        if size not in self._fonts:
            if self.font_path:
                self._fonts[size] = ImageFont.truetype(self.font_path, size)
            else:
                self._fonts[size] = ImageFont.load_default(size=size)
        return self._fonts[size]

    def line_height(self, points: float) -> int:
        return int(points * self.dpi / 72 * 1.4)

    def wrap(self, text: str, width: int, points: float) -> List[str]:
        font = self.font(points)
        return wrap_text(text, width, lambda value: self._measure.textlength(value, font=font))

    def text_lines(self, x: int, y: int, width: int, lines: List[str], points: float,
                   fill: Tuple[int, int, int], align: str = "L") -> int:
        font = self.font(points)
        step = self.line_height(points)
        for index, line in enumerate(lines):
            offset = 0
            if align != "L":
                free = width - self._measure.textlength(line, font=font)
                offset = int(free / 2) if align == "C" else int(free)
            position = (x + offset, y + index * step)
            self.ops.append(lambda draw, p=position, t=line: draw.text(p, t, font=font, fill=fill))
        return len(lines) * step

    def rect(self, box: Tuple[int, int, int, int], fill=None, outline=None):
        self.ops.append(lambda draw: draw.rectangle(box, fill=fill, outline=outline))


def _section(canvas: _Canvas, section: Section, x: int, y: int, width: int, primary) -> int:
    cursor = y
    if section.title:
        cursor += canvas.text_lines(x, cursor, width, [section.title], 22, primary, section.align)
    if section.subtitle:
        cursor += canvas.text_lines(x, cursor, width, [section.subtitle], 10, MUTED, section.align)
    if section.heading:
        cursor += canvas.text_lines(x, cursor, width, [section.heading], 11, primary, section.align)
    for line in section.lines:
        cursor += canvas.text_lines(x, cursor, width, canvas.wrap(line, width, 9), 9, TEXT, section.align)
    label_width = int(width * 0.45)
    for item in section.fields:
        canvas.text_lines(x, cursor, label_width, [item.label], 9, MUTED)
        cursor += canvas.text_lines(
            x + label_width, cursor, width - label_width,
            canvas.wrap(item.value, width - label_width, 9), 9, TEXT, "R",
        )
    return cursor - y


def _table(canvas: _Canvas, table: LineItemsTable, tree: RenderTree, primary) -> None:
    padding = canvas.px(2)
    widths = [int(column.width * canvas.width) for column in table.columns]
    if table.heading:
        canvas.y += canvas.text_lines(0, canvas.y, canvas.width, [table.heading], 12, TEXT)

    header_height = canvas.line_height(9) + 2 * padding
    if tree.chrome.table_header_fill:
        canvas.rect((0, canvas.y, canvas.width, canvas.y + header_height), fill=primary)
    x = 0
    for column, width in zip(table.columns, widths):
        colour = WHITE if tree.chrome.table_header_fill else MUTED
        canvas.text_lines(x + padding, canvas.y + padding, width - 2 * padding, [column.label], 9, colour, column.align)
        x += width
    canvas.y += header_height

    stripe = Theme.to_rgb(tree.theme.background)
    for index, row in enumerate(table.rows):
        cells = [canvas.wrap(value, width - 2 * padding, 9) for value, width in zip(row, widths)]
        height = max(len(cell) for cell in cells) * canvas.line_height(9) + 2 * padding
        if tree.chrome.striped_rows and index % 2 == 1:
            canvas.rect((0, canvas.y, canvas.width, canvas.y + height), fill=stripe)
        if tree.chrome.table_borders:
            canvas.rect((0, canvas.y, canvas.width - 1, canvas.y + height), outline=MUTED)
        x = 0
        for column, width, cell in zip(table.columns, widths, cells):
            canvas.text_lines(x + padding, canvas.y + padding, width - 2 * padding, cell, 9, TEXT, column.align)
            x += width
        canvas.y += height


def _totals(canvas: _Canvas, totals: TotalsBlock, primary) -> None:
    width = canvas.px(80)
    x = canvas.width - width
    for row in totals.rows:
        points = 12 if row.emphasized else 9
        colour = primary if row.emphasized else TEXT
        canvas.text_lines(x, canvas.y, width // 2, [row.label], points, colour)
        canvas.y += canvas.text_lines(x + width // 2, canvas.y, width // 2, [row.value], points, colour, "R")


def rasterize(tree: RenderTree, content_width_mm: float, dpi: int,
              logo: Optional[Image.Image] = None, font_path: Optional[str] = None) -> Image.Image:
    """Draw the whole tree onto one image as wide as the page content area"""
    canvas = _Canvas(int(content_width_mm * dpi / MM_PER_INCH), dpi, font_path or settings.PDF_FONT_PATH)
    primary = Theme.to_rgb(tree.theme.primary)
    gap = canvas.px(6)
    thumbnail = None

    if logo is not None:
        box_w, box_h = canvas.px(36), canvas.px(16)
        ratio = min(box_w / logo.width, box_h / logo.height)
        thumbnail = logo.convert("RGBA").resize((max(int(logo.width * ratio), 1), max(int(logo.height * ratio), 1)))
        logo_position = (0, canvas.y)
        canvas.y += box_h + canvas.px(3)

    for block in tree.blocks:
        if isinstance(block, Section):
            canvas.y += _section(canvas, block, 0, canvas.y, canvas.width, primary)
        elif isinstance(block, SectionRow):
            count = max(len(block.sections), 1)
            column = (canvas.width - gap * (count - 1)) // count
            heights = [
                _section(canvas, section, index * (column + gap), canvas.y, column, primary)
                for index, section in enumerate(block.sections)
            ]
            canvas.y += max(heights, default=0)
        elif isinstance(block, LineItemsTable):
            _table(canvas, block, tree, primary)
        elif isinstance(block, TotalsBlock):
            _totals(canvas, block, primary)
        canvas.y += gap

    background = Theme.to_rgb(tree.theme.background) if tree.chrome.tinted_background else WHITE
    image = Image.new("RGB", (canvas.width, max(canvas.y, 1)), background)
    if thumbnail is not None:
        image.paste(thumbnail, logo_position, thumbnail)
    draw = ImageDraw.Draw(image)
    for op in canvas.ops:
        op(draw)
    return image
