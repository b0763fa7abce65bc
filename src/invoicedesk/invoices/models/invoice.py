from typing import Optional, List, Dict, Any
from datetime import date
from sqlmodel import Field, Column, JSON
from sqlalchemy import Index, String
from invoicedesk.common.models.base import BaseModel, TimestampMixin
from invoicedesk.common.utils.datetime import get_current_date
from invoicedesk.invoices.constants import InvoiceType, PaymentType, InvoiceStatus


class Invoice(BaseModel, TimestampMixin, table=True):
    """
    Invoice record.

    Line items are stored as a JSON document with camelCase keys, the same
    shape the API accepts. ``collected_amount``, ``pending_amount`` and
    ``status`` are derived and only written by ``InvoiceService``.
    """
    __table_args__ = (
        Index("ix_invoice_type_created_at", "invoice_type", "created_at"),
        Index("ix_invoice_status_invoice_date", "status", "invoice_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # Immutable once assigned
    invoice_number: str = Field(index=True, unique=True)
    invoice_type: InvoiceType = Field(sa_type=String(8))

    # Client details
    client_name: str
    client_phone: str
    client_email: str = ""
    client_address: str = ""

    # Amounts
    payment_type: PaymentType = Field(
        default=PaymentType.FULL_PAYMENT, sa_type=String(32))
    total_amount: float
    subtotal_amount: float = 0.0
    tax_percentage: float = 0.0
    items: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    # Dates
    invoice_date: date = Field(default_factory=get_current_date)
    due_date: Optional[date] = None

    # Derived
    collected_amount: float = 0.0
    pending_amount: float = 0.0
    status: InvoiceStatus = Field(default=InvoiceStatus.PENDING, sa_type=String(16))

    notes: str = ""
    pdf_url: str = ""


class InvoiceSequence(BaseModel, table=True):
    """
    Last number issued per invoice type.

    Incremented with a single UPDATE inside the creating transaction so that
    concurrent creations for the same type never read the same value.
    """
    invoice_type: str = Field(primary_key=True, max_length=8)
    last_number: int = Field(default=0, ge=0)
