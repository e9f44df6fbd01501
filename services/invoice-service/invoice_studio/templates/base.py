from abc import ABC, abstractmethod
from typing import List, Optional

from .. import schemas
from .projection import InvoiceView, project_invoice
from .render_tree import (
    Block,
    Chrome,
    Column,
    Field,
    LineItemsTable,
    RenderTree,
    Section,
    SectionKind,
    Theme,
    TotalsBlock,
    TotalsRow,
)

DEFAULT_COLUMNS = (
    Column("Description", 0.52),
    Column("Qty", 0.12, "R"),
    Column("Rate", 0.18, "R"),
    Column("Amount", 0.18, "R"),
)


class TemplateRenderer(ABC):
    """A fixed visual skin over the shared invoice sections.

    Subclasses choose ordering, headings and chrome in ``compose``. Which rows and
    sections exist at all is decided once by ``project_invoice``.
    """

    template_id: schemas.TemplateId
    theme: Theme
    chrome: Chrome = Chrome()
    thank_you: str = ""
    label_suffix: str = ":"

    def render(self, invoice: schemas.InvoiceData) -> RenderTree:
        view = project_invoice(invoice)
        return RenderTree(
            template_id=self.template_id.value,
            theme=self.theme,
            chrome=self.chrome,
            invoice_number=view.invoice_number,
            blocks=self.compose(view),
            logo=view.logo,
        )

    @abstractmethod
    def compose(self, view: InvoiceView) -> List[Block]:
        ...

    # === SECTION BUILDERS ===

    def label(self, text: str) -> str:
        return f"{text}{self.label_suffix}"

    def header(self, view: InvoiceView, title: str = "INVOICE", align: str = "L") -> Section:
        return Section(
            kind=SectionKind.HEADER,
            title=title,
            heading=view.business_name or None,
            subtitle=f"#{view.invoice_number}",
            lines=list(view.business_lines),
            align=align,
        )

    def bill_to(self, view: InvoiceView, heading: str = "Bill To") -> Section:
        return Section(
            kind=SectionKind.BILL_TO,
            heading=self.label(heading),
            lines=[line for line in [view.client_name, *view.client_lines] if line],
        )

    def details(
        self,
        view: InvoiceView,
        issue_label: str = "Issue Date",
        due_label: str = "Due Date",
        heading: Optional[str] = None,
    ) -> Section:
        return Section(
            kind=SectionKind.DETAILS,
            heading=heading,
            fields=[
                Field(self.label(issue_label), view.issue_date),
                Field(self.label(due_label), view.due_date),
                Field(self.label("Currency"), view.currency_code),
            ],
        )

    def line_items(self, view: InvoiceView, heading: Optional[str] = None) -> LineItemsTable:
        return LineItemsTable(
            columns=list(DEFAULT_COLUMNS),
            rows=[[item.description, item.quantity, item.rate, item.amount] for item in view.items],
            heading=heading,
        )

    def totals(self, view: InvoiceView) -> TotalsBlock:
        return TotalsBlock(
            rows=[TotalsRow(self.label(row.label), row.value, row.emphasized) for row in view.totals]
        )

    def notes(self, view: InvoiceView, heading: str = "Notes") -> List[Section]:
        if view.notes is None:
            return []
        return [Section(kind=SectionKind.NOTES, heading=self.label(heading), lines=view.notes.splitlines())]

    def banking(self, view: InvoiceView, heading: str = "Payment Details") -> List[Section]:
        if not view.banking:
            return []
        return [
            Section(
                kind=SectionKind.BANKING,
                heading=self.label(heading),
                fields=[Field(self.label(item.label), item.value) for item in view.banking],
            )
        ]

    def footer(self, text: Optional[str] = None) -> List[Section]:
        text = text if text is not None else self.thank_you
        if not text:
            return []
        return [Section(kind=SectionKind.FOOTER, lines=[text], align="C")]
