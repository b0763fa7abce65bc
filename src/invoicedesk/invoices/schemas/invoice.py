from typing import Optional, List, Dict
from datetime import datetime, date
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from invoicedesk.invoices.constants import InvoiceType, PaymentType, InvoiceStatus, ALL_FILTER


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes"""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class InvoiceItem(CamelModel):
    """A single line item"""
    description: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    rate: float = Field(..., ge=0)
    pending_payment: float = Field(default=0, ge=0)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Item description is required")
        return value

    @model_validator(mode="after")
    def pending_not_above_rate(self) -> "InvoiceItem":
        if self.pending_payment > self.rate:
            raise ValueError(
                "Item pending payment cannot exceed its rate")
        return self

    def to_document(self) -> Dict[str, object]:
        return self.model_dump(by_alias=True)


class InvoiceBase(CamelModel):
    """Fields authored by the client on create and full update"""
    invoice_type: InvoiceType
    client_name: str = Field(..., min_length=1)
    client_phone: str = Field(..., min_length=1)
    client_email: str = ""
    client_address: str = ""
    payment_type: PaymentType = PaymentType.FULL_PAYMENT
    total_amount: float = Field(..., ge=0)
    subtotal_amount: float = Field(default=0, ge=0)
    tax_percentage: float = Field(default=0, ge=0, le=100)
    items: List[InvoiceItem] = Field(..., min_length=1)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: str = ""

    @field_validator("client_name", "client_phone")
    @classmethod
    def required_text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Field is required")
        return value

    @field_validator("client_email", "client_address", "notes", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return "" if value is None else value


class InvoiceCreate(InvoiceBase):
    """Schema for creating a new invoice; the number is issued when omitted"""
    invoice_number: Optional[str] = None


class InvoiceUpdate(InvoiceBase):
    """
    Schema for a full replacement update.

    ``invoice_number`` may be sent back unchanged; any other value is
    rejected by the service.
    """
    invoice_number: Optional[str] = None


class InvoiceRead(CamelModel):
    """Schema for reading invoice data"""
    id: int
    invoice_number: str
    invoice_type: InvoiceType
    client_name: str
    client_phone: str
    client_email: str = ""
    client_address: str = ""
    payment_type: PaymentType
    total_amount: float
    subtotal_amount: float = 0
    tax_percentage: float = 0
    items: List[InvoiceItem]
    invoice_date: date
    due_date: Optional[date] = None
    collected_amount: float
    pending_amount: float
    status: InvoiceStatus
    notes: str = ""
    pdf_url: str = ""
    created_at: datetime
    updated_at: datetime

    @field_validator("items", mode="before")
    @classmethod
    def skip_item_rules_on_read(cls, value):
        # Stored items are trusted; rows written before validation tightened
        # must still be readable.
        return [InvoiceItem.model_construct(**_item_fields(item)) for item in value or []]

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


def _item_fields(item) -> dict:
    if isinstance(item, InvoiceItem):
        return item.model_dump()
    return {
        "description": item.get("description", ""),
        "quantity": item.get("quantity", 1),
        "rate": item.get("rate", 0),
        "pending_payment": item.get("pendingPayment", item.get("pending_payment", 0)),
    }


class InvoiceFilter(BaseModel):
    """Schema for filtering and paginating invoices"""
    status: Optional[str] = Field(default=None, description="Filter by status, 'all' for any")
    invoice_type: Optional[str] = Field(default=None, description="Filter by invoice type, 'all' for any")
    search: Optional[str] = Field(default=None, description="Case-insensitive match on client name, number or phone")
    start_date: Optional[date] = Field(default=None, description="Inclusive lower bound on invoice date")
    end_date: Optional[date] = Field(default=None, description="Inclusive upper bound on invoice date")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=500)

    @field_validator("status")
    @classmethod
    def known_status(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, "", ALL_FILTER):
            return None
        return InvoiceStatus(value).value

    @field_validator("invoice_type")
    @classmethod
    def known_invoice_type(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, "", ALL_FILTER):
            return None
        return InvoiceType(value).value

    @field_validator("search")
    @classmethod
    def strip_search(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode="after")
    def ordered_dates(self) -> "InvoiceFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class NextInvoiceNumber(CamelModel):
    invoice_type: InvoiceType
    invoice_number: str


class MonthlyBreakdown(BaseModel):
    revenue: float = 0
    collected: float = 0
    count: int = 0
    paid: int = 0
    pending: int = 0


class InvoiceAnalytics(CamelModel):
    """Schema for dashboard analytics over a period"""
    period: str
    start_date: date
    total_invoices: int
    total_revenue: float
    collected_amount: float
    pending_amount: float
    paid_count: int
    pending_count: int
    overdue_count: int
    service_types: Dict[str, int]
    monthly_data: Dict[str, MonthlyBreakdown]
