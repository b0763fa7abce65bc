from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List
from collections import defaultdict
import csv
from io import StringIO
from sqlmodel import Session, select

from invoicedesk.common.utils.datetime import get_current_datetime, get_month_key, get_quarter_start
from invoicedesk.invoices.constants import AnalyticsPeriod, InvoiceStatus, InvoiceType
from invoicedesk.invoices.models.invoice import Invoice
from invoicedesk.invoices.schemas.invoice import InvoiceAnalytics, InvoiceFilter, MonthlyBreakdown
from invoicedesk.invoices.services.invoice_service import InvoiceService

CSV_HEADERS = [
    "Invoice Number", "Invoice Type", "Client Name", "Client Phone", "Client Email",
    "Payment Type", "Invoice Date", "Due Date", "Total Amount", "Collected Amount",
    "Pending Amount", "Tax Percentage", "Status",
]


def get_period_start(period: AnalyticsPeriod, now: datetime) -> date:
    """
    Get the first day included in an analytics period.

    Weekly is a rolling seven days; the others start at the beginning of the
    current calendar month, quarter or year.
    """
    today = now.date()
    if period == AnalyticsPeriod.WEEKLY:
        return (now - timedelta(days=7)).date()
    if period == AnalyticsPeriod.QUARTERLY:
        return get_quarter_start(today)
    if period == AnalyticsPeriod.YEARLY:
        return date(today.year, 1, 1)
    return today.replace(day=1)


class InvoiceReportsService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = get_current_datetime):
        self.db = db
        self.clock = clock

    def get_dashboard_analytics(self, period: AnalyticsPeriod = AnalyticsPeriod.MONTHLY) -> InvoiceAnalytics:
        """
        Aggregate invoices dated within the period.

        Args:
            period: weekly, monthly, quarterly or yearly

        Returns:
            InvoiceAnalytics with totals, counts by status and type, and a
            per-month breakdown keyed ``YYYY-MM``
        """
        start_date = get_period_start(period, self.clock())
        invoices = self.db.exec(
            select(Invoice).where(Invoice.invoice_date >= start_date)
        ).all()

        status_counts = defaultdict(int)
        type_counts = {invoice_type.value: 0 for invoice_type in InvoiceType}
        for invoice in invoices:
            status_counts[invoice.status] += 1
            type_counts[invoice.invoice_type] = type_counts.get(invoice.invoice_type, 0) + 1

        return InvoiceAnalytics(
            period=period.value,
            start_date=start_date,
            total_invoices=len(invoices),
            total_revenue=round(sum(invoice.total_amount for invoice in invoices), 2),
            collected_amount=round(sum(invoice.collected_amount for invoice in invoices), 2),
            pending_amount=round(sum(invoice.pending_amount for invoice in invoices), 2),
            paid_count=status_counts[InvoiceStatus.PAID.value],
            pending_count=status_counts[InvoiceStatus.PENDING.value],
            overdue_count=status_counts[InvoiceStatus.OVERDUE.value],
            service_types=type_counts,
            monthly_data=self._get_monthly_data(invoices),
        )

    def get_invoices_export(self, filters: InvoiceFilter) -> Dict[str, Any]:
        """Rows for the CSV export of every invoice matching the filters"""
        invoices = InvoiceService(self.db, clock=self.clock).get_all_invoices(filters)
        rows = [
            {
                "Invoice Number": invoice.invoice_number,
                "Invoice Type": invoice.invoice_type,
                "Client Name": invoice.client_name,
                "Client Phone": invoice.client_phone,
                "Client Email": invoice.client_email,
                "Payment Type": invoice.payment_type,
                "Invoice Date": invoice.invoice_date.isoformat(),
                "Due Date": invoice.due_date.isoformat() if invoice.due_date else "",
                "Total Amount": f"{invoice.total_amount:.2f}",
                "Collected Amount": f"{invoice.collected_amount:.2f}",
                "Pending Amount": f"{invoice.pending_amount:.2f}",
                "Tax Percentage": f"{invoice.tax_percentage:g}",
                "Status": invoice.status,
            }
            for invoice in invoices
        ]
        return {"headers": CSV_HEADERS, "data": rows}

    def generate_invoices_csv(self, filters: InvoiceFilter) -> StringIO:
        """
        Generate a CSV file of the invoices matching the filters.

        Returns:
            StringIO: CSV data as a StringIO object
        """
        export = self.get_invoices_export(filters)

        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=export["headers"])
        writer.writeheader()
        for row in export["data"]:
            writer.writerow(row)

        output.seek(0)
        return output

    def _get_monthly_data(self, invoices: List[Invoice]) -> Dict[str, MonthlyBreakdown]:
        monthly_data: Dict[str, MonthlyBreakdown] = {}
        for invoice in sorted(invoices, key=lambda inv: inv.invoice_date):
            month_key = get_month_key(invoice.invoice_date)
            month = monthly_data.setdefault(month_key, MonthlyBreakdown())
            month.revenue = round(month.revenue + invoice.total_amount, 2)
            month.collected = round(month.collected + invoice.collected_amount, 2)
            month.count += 1
            # Overdue invoices are still outstanding, so they count as pending
            if invoice.status == InvoiceStatus.PAID:
                month.paid += 1
            else:
                month.pending += 1
        return monthly_data
