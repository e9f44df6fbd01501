from typing import List

from .. import schemas
from .base import TemplateRenderer
from .projection import InvoiceView
from .render_tree import Block, Chrome, SectionRow, Theme


class CreativeTemplate(TemplateRenderer):
    """Tinted page with a colour band, dates shown before the client"""

    template_id = schemas.TemplateId.CREATIVE
    theme = Theme(primary="#7c3aed", secondary="#a855f7", accent="#c084fc", background="#faf5ff")
    chrome = Chrome(header_bar=True, table_header_fill=True, striped_rows=True, tinted_background=True)
    thank_you = "Thank you for your creativity!"

    def compose(self, view: InvoiceView) -> List[Block]:
        return [
            self.header(view),
            SectionRow([self.details(view, heading="Invoice Details"), self.bill_to(view, heading="Billed To")]),
            self.line_items(view, heading="Items & Services"),
            self.totals(view),
            *self.notes(view, heading="Notes & Terms"),
            *self.banking(view),
            *self.footer(),
        ]
