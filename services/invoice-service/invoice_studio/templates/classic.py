from typing import List

from .. import schemas
from .base import TemplateRenderer
from .projection import InvoiceView
from .render_tree import Block, Chrome, Theme


class ClassicTemplate(TemplateRenderer):
    """Centred letterhead over a ruled line, bordered table, black on white"""

    template_id = schemas.TemplateId.CLASSIC
    theme = Theme(primary="#000000", secondary="#666666", accent="#000000", background="#ffffff")
    chrome = Chrome(rule_under_header=True, table_header_fill=False, table_borders=True)
    thank_you = "Thank you for your business!"

    def compose(self, view: InvoiceView) -> List[Block]:
        return [
            self.header(view, title="Invoice", align="C"),
            self.details(view, issue_label="Date", due_label="Due"),
            self.bill_to(view),
            self.line_items(view),
            self.totals(view),
            *self.notes(view),
            *self.banking(view),
            *self.footer(),
        ]
