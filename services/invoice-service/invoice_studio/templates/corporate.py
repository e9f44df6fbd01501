from typing import List

from .. import schemas
from .base import TemplateRenderer
from .projection import InvoiceView
from .render_tree import Block, Chrome, SectionRow, Theme


class CorporateTemplate(TemplateRenderer):
    """Header and footer bars, bordered table, payment details ahead of notes"""

    template_id = schemas.TemplateId.CORPORATE
    theme = Theme(primary="#1f2937", secondary="#4b5563", accent="#6b7280", background="#f9fafb")
    chrome = Chrome(header_bar=True, footer_bar=True, table_header_fill=True, table_borders=True)
    thank_you = "Thank you for your continued partnership."

    def compose(self, view: InvoiceView) -> List[Block]:
        return [
            self.header(view, align="R"),
            SectionRow(
                [
                    self.bill_to(view),
                    self.details(view, issue_label="Invoice Date", heading="Invoice Details"),
                ]
            ),
            self.line_items(view),
            self.totals(view),
            *self.banking(view, heading="Remittance Information"),
            *self.notes(view, heading="Terms & Notes"),
            *self.footer(),
        ]
