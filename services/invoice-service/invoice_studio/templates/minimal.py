from typing import List

from .. import schemas
from .base import TemplateRenderer
from .projection import InvoiceView
from .render_tree import Block, Chrome, SectionRow, Theme


class MinimalTemplate(TemplateRenderer):
    template_id = schemas.TemplateId.MINIMAL
    theme = Theme(primary="#374151", secondary="#6b7280", accent="#9ca3af", background="#ffffff")
    chrome = Chrome(table_header_fill=False)
    thank_you = "Thank you!"
    label_suffix = ""

    def compose(self, view: InvoiceView) -> List[Block]:
        return [
            self.header(view),
            SectionRow([self.bill_to(view), self.details(view)]),
            self.line_items(view),
            self.totals(view),
            *self.notes(view),
            *self.banking(view, heading="Payment"),
            *self.footer(),
        ]
