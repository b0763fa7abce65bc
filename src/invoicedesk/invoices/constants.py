from enum import Enum


class InvoiceType(str, Enum):
    SA = "SA"
    SHR = "SHR"
    STS = "STS"
    SDE = "SDE"


class PaymentType(str, Enum):
    FULL_PAYMENT = "Full Payment"
    INITIAL_PAYMENT = "Initial Payment"


class InvoiceStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


class AnalyticsPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# Value accepted by list filters to mean "no filter"
ALL_FILTER = "all"

INVOICE_NUMBER_PADDING = 3

PDF_URL_TEMPLATE = "/api/invoices/{invoice_number}/pdf"
