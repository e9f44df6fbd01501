from typing import List

from .. import schemas
from .base import TemplateRenderer
from .projection import InvoiceView
from .render_tree import Block, Chrome, SectionRow, Theme


class ModernTemplate(TemplateRenderer):
    """Logo and title on the left, client and dates side by side, striped item rows"""

    template_id = schemas.TemplateId.MODERN
    theme = Theme(primary="#2563eb", secondary="#1e40af", accent="#3b82f6", background="#f8fafc")
    chrome = Chrome(table_header_fill=True, striped_rows=True)
    thank_you = "Thank you for choosing us!"

    def compose(self, view: InvoiceView) -> List[Block]:
        return [
            self.header(view),
            SectionRow([self.bill_to(view), self.details(view)]),
            self.line_items(view, heading="Items"),
            self.totals(view),
            *self.notes(view),
            *self.banking(view),
            *self.footer(),
        ]
