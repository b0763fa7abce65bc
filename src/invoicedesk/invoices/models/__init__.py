"""Invoices models package."""
from invoicedesk.invoices.models.invoice import Invoice, InvoiceSequence

__all__ = ["Invoice", "InvoiceSequence"]
