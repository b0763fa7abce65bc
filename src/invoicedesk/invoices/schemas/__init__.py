# Import schema classes directly
from invoicedesk.invoices.schemas.invoice import (
    InvoiceItem, InvoiceCreate, InvoiceUpdate, InvoiceRead, InvoiceFilter,
    InvoiceAnalytics, MonthlyBreakdown, NextInvoiceNumber
)

# Export all schema classes
__all__ = [
    "InvoiceItem", "InvoiceCreate", "InvoiceUpdate", "InvoiceRead", "InvoiceFilter",
    "InvoiceAnalytics", "MonthlyBreakdown", "NextInvoiceNumber",
]
