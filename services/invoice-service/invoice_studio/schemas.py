from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class TemplateId(str, Enum):
    MODERN = "modern"
    CLASSIC = "classic"
    MINIMAL = "minimal"
    CREATIVE = "creative"
    CORPORATE = "corporate"


class RecurringInterval(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class DownloadFormatType(str, Enum):
    PDF = "pdf"
    WORD = "word"
    EXCEL = "excel"


class ExportMode(str, Enum):
    STRUCTURED = "structured"
    RASTER = "raster"


def new_line_item_id() -> str:
    return uuid4().hex


# === INVOICE DRAFT SCHEMAS ===
class LineItem(BaseModel):
    id: str = Field(default_factory=new_line_item_id)
    description: str = Field(default="", max_length=500)
    quantity: int = Field(default=1, description="Whole units, must be positive to save")
    rate: Decimal = Field(default=Decimal("0"), description="Unit price")
    amount: Decimal = Field(default=Decimal("0"), description="Derived: quantity * rate")


class BusinessInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    address: str = ""
    logo: Optional[str] = Field(None, description="Public URL or data URI of the logo")


class ClientInfo(BaseModel):
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    address: str = ""


class BankingInfo(BaseModel):
    bank_name: str = ""
    account_number: str = ""
    swift_code: str = ""
    iban: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(
            value.strip()
            for value in (self.bank_name, self.account_number, self.swift_code, self.iban)
        )


class InvoiceData(BaseModel):
    """An invoice being edited.

    ``subtotal``, ``discount_amount``, ``tax_amount`` and ``total`` are a cached
    projection of the line items and rates. They are only ever written by
    ``InvoiceCalculator.calculate_totals``.
    """

    invoice_number: str = ""
    issue_date: date = Field(default_factory=date.today)
    due_date: date = Field(default_factory=date.today)
    currency: str = "USD"
    is_recurring: bool = False
    recurring_interval: RecurringInterval = RecurringInterval.MONTHLY
    business_info: BusinessInfo = Field(default_factory=BusinessInfo)
    client_info: ClientInfo = Field(default_factory=ClientInfo)
    banking_info: BankingInfo = Field(default_factory=BankingInfo)
    line_items: List[LineItem] = Field(default_factory=list)
    tax_rate: Decimal = Field(default=Decimal("0"), description="Percent, 0-100")
    discount_rate: Decimal = Field(default=Decimal("0"), description="Percent, 0-100")
    notes: str = ""

    subtotal: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class LineItemCreate(BaseModel):
    invoice: InvoiceData


class LineItemUpdate(BaseModel):
    invoice: InvoiceData
    description: Optional[str] = Field(None, max_length=500)
    quantity: Optional[int] = None
    rate: Optional[Decimal] = None


class DraftRequest(BaseModel):
    prefill_from_profile: bool = True


class InvoiceSaveRequest(BaseModel):
    invoice: InvoiceData
    template: TemplateId = TemplateId.MODERN


# === SAVED INVOICE SCHEMAS ===
class SavedInvoice(InvoiceData):
    id: str
    user_id: str
    template: str
    email_sent_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class InvoiceSummary(BaseModel):
    id: str
    invoice_number: str
    client_name: Optional[str]
    issue_date: date
    due_date: date
    currency: str
    total: Decimal
    template: str

    model_config = ConfigDict(from_attributes=True)


# === CLIENT SCHEMAS ===
class ClientBase(BaseModel):
    name: str = Field(..., description="Client name")
    email: str = Field(..., description="Client email")
    address: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class Client(ClientBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# === PROFILE SCHEMAS ===
class UserProfileBase(BaseModel):
    business_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    default_currency: Optional[str] = None
    default_tax_rate: Optional[Decimal] = None
    invoice_prefix: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    swift_code: Optional[str] = None
    iban: Optional[str] = None


class UserProfileUpdate(UserProfileBase):
    pass


class UserProfile(UserProfileBase):
    id: str
    user_id: str
    logo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LogoUploadResponse(BaseModel):
    logo_url: str


# === CATALOGUE SCHEMAS ===
class CurrencyOut(BaseModel):
    code: str
    name: str
    symbol: str

    model_config = ConfigDict(from_attributes=True)


class DownloadFormat(BaseModel):
    type: DownloadFormatType
    label: str
    description: str


class TemplateInfo(BaseModel):
    id: TemplateId
    name: str
    description: str
    category: str
    features: List[str]
    download_formats: List[DownloadFormat]
    is_popular: bool = False
    is_new: bool = False


class DashboardSummary(BaseModel):
    total_invoices: int
    total_clients: int
    totals_by_currency: Dict[str, Decimal]
    recent_invoices: List[InvoiceSummary]
