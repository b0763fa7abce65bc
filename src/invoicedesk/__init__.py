"""InvoiceDesk: invoice management API."""
