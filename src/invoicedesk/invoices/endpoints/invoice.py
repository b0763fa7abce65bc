from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.logger import logger
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session
from invoicedesk.common.exceptions import DependencyError, ValidationError
from invoicedesk.common.schemas import Pagination, success_response
from invoicedesk.common.utils.database import get_db
from invoicedesk.invoices.constants import AnalyticsPeriod, InvoiceType, PDF_URL_TEMPLATE
from invoicedesk.invoices.models.invoice import Invoice
from invoicedesk.invoices.pdf.renderer import InvoicePdfRenderer, render_invoice_pdf
from invoicedesk.invoices.schemas.invoice import (
    InvoiceCreate, InvoiceFilter, InvoiceRead, InvoiceUpdate, NextInvoiceNumber,
)
from invoicedesk.invoices.services.invoice_reports_service import InvoiceReportsService
from invoicedesk.invoices.services.invoice_service import InvoiceService
from invoicedesk.invoices.services.numbering_service import InvoiceNumberingService

router = APIRouter(prefix="/invoices", tags=["invoices"])


def get_invoice_service(request: Request, db: Session = Depends(get_db)):
    return InvoiceService(db, number_retry_attempts=request.app.state.settings.number_retry_attempts)


def get_reports_service(db: Session = Depends(get_db)):
    return InvoiceReportsService(db)


def get_pdf_renderer(request: Request) -> InvoicePdfRenderer:
    return request.app.state.pdf_renderer


def get_invoice_filter(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    status: Optional[str] = Query(None, description="Pending, Paid, Overdue or all"),
    invoice_type: Optional[str] = Query(None, alias="invoiceType", description="SA, SHR, STS, SDE or all"),
    search: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
) -> InvoiceFilter:
    try:
        return InvoiceFilter(
            status=status, invoice_type=invoice_type, search=search,
            start_date=start_date, end_date=end_date, page=page, limit=limit,
        )
    except PydanticValidationError as e:
        raise ValidationError("; ".join(error["msg"] for error in e.errors())) from e


def _read(invoice: Invoice) -> dict:
    return InvoiceRead.model_validate(invoice).to_response()


def _attach_pdf(invoice: Invoice, invoice_service: InvoiceService, renderer: InvoicePdfRenderer) -> Invoice:
    """Render the PDF once and cache its endpoint on the invoice; failures only log"""
    try:
        render_invoice_pdf(InvoiceRead.model_validate(invoice), renderer)
    except DependencyError as e:
        logger.warning(f"PDF generation failed for invoice {invoice.invoice_number}, "
                       f"continuing without it: {e.message}")
        return invoice
    return invoice_service.set_pdf_url(
        invoice, PDF_URL_TEMPLATE.format(invoice_number=invoice.invoice_number))


@router.get("")
def get_invoices(
    filters: InvoiceFilter = Depends(get_invoice_filter),
    invoice_service: InvoiceService = Depends(get_invoice_service)
):
    """Get a page of invoices, newest first"""
    result = invoice_service.list_invoices(filters)
    return success_response(
        data=[_read(invoice) for invoice in result.invoices],
        pagination=Pagination(page=result.page, pages=result.pages,
                              total=result.total, limit=result.limit),
    )


@router.get("/analytics/dashboard")
def get_dashboard_analytics(
    period: AnalyticsPeriod = Query(AnalyticsPeriod.MONTHLY),
    reports_service: InvoiceReportsService = Depends(get_reports_service)
):
    """Totals, status and type counts, and monthly trend for the period"""
    analytics = reports_service.get_dashboard_analytics(period)
    return success_response(data=analytics.model_dump(mode="json", by_alias=True))


@router.get("/export/csv", response_class=Response)
def export_invoices_as_csv(
    filters: InvoiceFilter = Depends(get_invoice_filter),
    reports_service: InvoiceReportsService = Depends(get_reports_service)
):
    """
    Export the invoices matching the list filters as a CSV file.

    Pagination parameters are ignored; every matching invoice is exported.
    """
    csv_data = reports_service.generate_invoices_csv(filters)
    filename = "invoices.csv"
    if filters.start_date or filters.end_date:
        start = filters.start_date.isoformat() if filters.start_date else "start"
        end = filters.end_date.isoformat() if filters.end_date else "today"
        filename = f"invoices_{start}_{end}.csv"

    return Response(
        content=csv_data.getvalue(),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}"
        }
    )


@router.get("/next-number/{invoice_type}")
def get_next_invoice_number(invoice_type: InvoiceType, db: Session = Depends(get_db)):
    """Preview the number the next invoice of this type will receive"""
    invoice_number = InvoiceNumberingService(db).peek_next_number(invoice_type)
    next_number = NextInvoiceNumber(invoice_type=invoice_type, invoice_number=invoice_number)
    return success_response(data=next_number.model_dump(mode="json", by_alias=True))


@router.get("/{invoice_number}")
def get_invoice(
    invoice_number: str,
    invoice_service: InvoiceService = Depends(get_invoice_service)
):
    """Get an invoice by its number"""
    return success_response(data=_read(invoice_service.get_invoice(invoice_number)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    invoice_service: InvoiceService = Depends(get_invoice_service),
    renderer: InvoicePdfRenderer = Depends(get_pdf_renderer)
):
    """Create a new invoice, issuing its number when none is given"""
    invoice = invoice_service.create_invoice(invoice_data)
    invoice = _attach_pdf(invoice, invoice_service, renderer)
    return success_response(data=_read(invoice), message="Invoice created successfully")


@router.put("/{invoice_number}")
def update_invoice(
    invoice_number: str,
    invoice_data: InvoiceUpdate,
    invoice_service: InvoiceService = Depends(get_invoice_service)
):
    """Replace an invoice; derived amounts and status are recomputed"""
    invoice = invoice_service.replace_invoice(invoice_number, invoice_data)
    return success_response(data=_read(invoice), message="Invoice updated successfully")


@router.patch("/{invoice_number}/mark-paid")
def mark_invoice_paid(
    invoice_number: str,
    invoice_service: InvoiceService = Depends(get_invoice_service)
):
    """Mark an invoice as paid"""
    invoice = invoice_service.mark_paid(invoice_number)
    return success_response(data=_read(invoice), message="Invoice marked as paid successfully")


@router.delete("/{invoice_number}")
def delete_invoice(
    invoice_number: str,
    invoice_service: InvoiceService = Depends(get_invoice_service)
):
    """Delete an invoice"""
    invoice_service.delete_invoice(invoice_number)
    return success_response(message="Invoice deleted successfully")


@router.get("/{invoice_number}/pdf", response_class=Response)
def download_invoice_pdf(
    invoice_number: str,
    invoice_service: InvoiceService = Depends(get_invoice_service),
    renderer: InvoicePdfRenderer = Depends(get_pdf_renderer)
):
    """Render the invoice PDF as an attachment"""
    invoice = invoice_service.get_invoice(invoice_number)
    pdf_bytes = render_invoice_pdf(InvoiceRead.model_validate(invoice), renderer)
    invoice_service.set_pdf_url(invoice, PDF_URL_TEMPLATE.format(invoice_number=invoice.invoice_number))
    logger.info(f"Rendered PDF for invoice {invoice_number}")

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'
        }
    )
