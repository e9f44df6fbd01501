"""
Template-agnostic description of a rendered invoice.

A ``RenderTree`` is an ordered list of blocks. Every text value in it is already
formatted for display, so the document exporters only deal with geometry.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class SectionKind(str, Enum):
    HEADER = "header"
    BILL_TO = "bill_to"
    DETAILS = "details"
    NOTES = "notes"
    BANKING = "banking"
    FOOTER = "footer"


@dataclass(frozen=True)
class Theme:
    primary: str
    secondary: str
    accent: str
    background: str

    @staticmethod
    def to_rgb(hex_color: str) -> Tuple[int, int, int]:
        value = hex_color.lstrip("#")
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


@dataclass(frozen=True)
class Chrome:
    """Decorative elements a template draws around the shared sections"""

    header_bar: bool = False
    footer_bar: bool = False
    rule_under_header: bool = False
    table_header_fill: bool = True
    striped_rows: bool = False
    table_borders: bool = False
    tinted_background: bool = False


@dataclass
class Field:
    label: str
    value: str


@dataclass
class Section:
    kind: SectionKind
    heading: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    lines: List[str] = field(default_factory=list)
    fields: List[Field] = field(default_factory=list)
    align: str = "L"


@dataclass
class SectionRow:
    """Sections drawn side by side in equal-width columns"""

    sections: List[Section]


@dataclass
class Column:
    label: str
    width: float
    align: str = "L"


@dataclass
class LineItemsTable:
    columns: List[Column]
    rows: List[List[str]]
    heading: Optional[str] = None


@dataclass
class TotalsRow:
    label: str
    value: str
    emphasized: bool = False


@dataclass
class TotalsBlock:
    rows: List[TotalsRow]


Block = Union[Section, SectionRow, LineItemsTable, TotalsBlock]


@dataclass
class RenderTree:
    template_id: str
    theme: Theme
    chrome: Chrome
    invoice_number: str
    blocks: List[Block]
    logo: Optional[str] = None

    def block_types(self) -> List[str]:
        names = []
        for block in self.blocks:
            if isinstance(block, Section):
                names.append(block.kind.value)
            elif isinstance(block, SectionRow):
                names.append("+".join(section.kind.value for section in block.sections))
            elif isinstance(block, LineItemsTable):
                names.append("line_items")
            else:
                names.append("totals")
        return names

    @property
    def totals(self) -> TotalsBlock:
        return next(block for block in self.blocks if isinstance(block, TotalsBlock))

    @property
    def table(self) -> LineItemsTable:
        return next(block for block in self.blocks if isinstance(block, LineItemsTable))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["layout"] = self.block_types()
        return data
