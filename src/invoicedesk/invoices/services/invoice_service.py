import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Union
from fastapi.logger import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, and_, or_, col
from sqlalchemy import func
from invoicedesk.common.exceptions import ConflictError, NotFoundError, ValidationError
from invoicedesk.common.utils.datetime import get_current_datetime
from invoicedesk.invoices.constants import InvoiceStatus
from invoicedesk.invoices.models.invoice import Invoice
from invoicedesk.invoices.schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceFilter
from invoicedesk.invoices.services.calculator import calculate_amounts
from invoicedesk.invoices.services.numbering_service import InvoiceNumberingService, parse_invoice_number


@dataclass
class InvoicePage:
    invoices: List[Invoice]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


class InvoiceService:
    """
    Reads and writes invoices.

    Every write goes through ``_apply_derived_fields`` (except ``mark_paid``,
    which is a deliberate override) and is committed as a whole or rolled
    back.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = get_current_datetime,
                 number_retry_attempts: int = 3):
        self.db = db
        self.clock = clock
        self.number_retry_attempts = number_retry_attempts
        self.numbering = InvoiceNumberingService(db)

    def create_invoice(self, invoice_data: InvoiceCreate) -> Invoice:
        """
        Create a new invoice.

        When no number is supplied one is issued for the invoice type; a
        collision with a concurrent creation rolls back and issues again, up
        to ``number_retry_attempts`` times. An explicit number that already
        exists is a conflict straight away. Any other integrity error while
        registering an explicit number, such as two first writes racing on
        the type's sequence row, is retried the same way.

        Raises:
            InvoiceNumberError: explicit number with a bad format or prefix
            ConflictError: number already in use
        """
        explicit_number = invoice_data.invoice_number.strip() if invoice_data.invoice_number else None
        if explicit_number:
            parse_invoice_number(explicit_number, invoice_data.invoice_type)

        attempts = self.number_retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                if explicit_number:
                    self.numbering.register_number(invoice_data.invoice_type, explicit_number)
                    invoice_number = explicit_number
                else:
                    invoice_number = self.numbering.issue_number(invoice_data.invoice_type)

                invoice = Invoice(invoice_number=invoice_number)
                self._apply_authored_fields(invoice, invoice_data)
                self._apply_derived_fields(invoice)

                self.db.add(invoice)
                self.db.commit()
                self.db.refresh(invoice)
                logger.info(f"Created invoice {invoice.invoice_number} ({invoice.status})")
                return invoice
            except IntegrityError as e:
                self.db.rollback()
                if explicit_number and self._number_exists(explicit_number):
                    raise ConflictError(f"Invoice number {explicit_number} already exists") from e
                logger.warning(
                    f"Invoice number collision for {invoice_data.invoice_type.value} "
                    f"(attempt {attempt}/{attempts}): {e.orig}")
            except Exception:
                self.db.rollback()
                raise

        if explicit_number:
            raise ConflictError(f"Could not register invoice number {explicit_number}, please retry")
        raise ConflictError(
            f"Could not assign a unique invoice number for {invoice_data.invoice_type.value}, please retry")

    def get_invoice(self, invoice_number: str) -> Invoice:
        """Get an invoice by its number"""
        invoice = self.db.exec(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        ).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    def list_invoices(self, filters: InvoiceFilter) -> InvoicePage:
        """
        Get invoices with filtering and pagination

        Args:
            filters: Filter criteria and pagination

        Returns:
            InvoicePage with the requested page, newest first, and the total count
        """
        conditions = self._build_conditions(filters)

        count_query = select(func.count(Invoice.id))
        data_query = select(Invoice)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            data_query = data_query.where(and_(*conditions))

        total = self.db.exec(count_query).first() or 0

        data_query = (
            data_query
            .order_by(col(Invoice.created_at).desc(), col(Invoice.id).desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        invoices = self.db.exec(data_query).all()

        return InvoicePage(invoices=list(invoices), total=total,
                           page=filters.page, limit=filters.limit)

    def get_all_invoices(self, filters: InvoiceFilter) -> List[Invoice]:
        """All invoices matching the filters, ignoring pagination"""
        query = select(Invoice)
        conditions = self._build_conditions(filters)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(col(Invoice.created_at).desc(), col(Invoice.id).desc())
        return list(self.db.exec(query).all())

    def replace_invoice(self, invoice_number: str, invoice_data: InvoiceUpdate) -> Invoice:
        """
        Replace the authored fields of an invoice and recompute derived ones.

        Raises:
            NotFoundError: unknown invoice number
            ValidationError: attempt to change the number or the type
        """
        invoice = self.get_invoice(invoice_number)

        if invoice_data.invoice_number and invoice_data.invoice_number.strip() != invoice.invoice_number:
            raise ValidationError("Invoice number cannot be changed")
        if invoice_data.invoice_type.value != invoice.invoice_type:
            raise ValidationError("Invoice type cannot be changed")

        try:
            self._apply_authored_fields(invoice, invoice_data)
            self._apply_derived_fields(invoice)
            invoice.touch(self.clock())
            self.db.add(invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(invoice)
        logger.info(f"Updated invoice {invoice.invoice_number} ({invoice.status})")
        return invoice

    def mark_paid(self, invoice_number: str) -> Invoice:
        """
        Force an invoice to Paid with everything collected.

        This bypasses the derivation rule on purpose: it records a manual
        reconciliation regardless of the payment type or the items.
        """
        invoice = self.get_invoice(invoice_number)
        if (invoice.status == InvoiceStatus.PAID
                and invoice.collected_amount == invoice.total_amount
                and invoice.pending_amount == 0):
            return invoice

        try:
            invoice.status = InvoiceStatus.PAID.value
            invoice.collected_amount = invoice.total_amount
            invoice.pending_amount = 0.0
            invoice.touch(self.clock())
            self.db.add(invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(invoice)
        logger.info(f"Marked invoice {invoice.invoice_number} as paid")
        return invoice

    def delete_invoice(self, invoice_number: str) -> None:
        """Delete an invoice"""
        invoice = self.get_invoice(invoice_number)
        try:
            self.db.delete(invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted invoice {invoice_number}")

    def set_pdf_url(self, invoice: Invoice, pdf_url: str) -> Invoice:
        """Cache the PDF endpoint reference on the invoice"""
        if invoice.pdf_url == pdf_url:
            return invoice
        try:
            invoice.pdf_url = pdf_url
            self.db.add(invoice)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(invoice)
        return invoice

    def _number_exists(self, invoice_number: str) -> bool:
        return self.db.exec(
            select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        ).first() is not None

    def _apply_authored_fields(self, invoice: Invoice, invoice_data: Union[InvoiceCreate, InvoiceUpdate]) -> None:
        invoice.invoice_type = invoice_data.invoice_type.value
        invoice.client_name = invoice_data.client_name
        invoice.client_phone = invoice_data.client_phone
        invoice.client_email = invoice_data.client_email
        invoice.client_address = invoice_data.client_address
        invoice.payment_type = invoice_data.payment_type.value
        invoice.total_amount = invoice_data.total_amount
        invoice.subtotal_amount = invoice_data.subtotal_amount
        invoice.tax_percentage = invoice_data.tax_percentage
        invoice.items = [item.to_document() for item in invoice_data.items]
        if invoice_data.invoice_date:
            invoice.invoice_date = invoice_data.invoice_date
        elif invoice.id is None:
            invoice.invoice_date = self.clock().date()
        invoice.due_date = invoice_data.due_date
        invoice.notes = invoice_data.notes

    def _apply_derived_fields(self, invoice: Invoice) -> None:
        amounts = calculate_amounts(
            payment_type=invoice.payment_type,
            total_amount=invoice.total_amount,
            items=invoice.items,
            due_date=invoice.due_date,
            now=self.clock(),
        )
        invoice.collected_amount = amounts.collected_amount
        invoice.pending_amount = amounts.pending_amount
        invoice.status = amounts.status.value

    def _build_conditions(self, filters: InvoiceFilter) -> list:
        conditions = []

        if filters.status:
            conditions.append(Invoice.status == filters.status)

        if filters.invoice_type:
            conditions.append(Invoice.invoice_type == filters.invoice_type)

        if filters.search:
            conditions.append(or_(
                col(Invoice.client_name).icontains(filters.search, autoescape=True),
                col(Invoice.invoice_number).icontains(filters.search, autoescape=True),
                col(Invoice.client_phone).icontains(filters.search, autoescape=True),
            ))

        if filters.start_date:
            conditions.append(Invoice.invoice_date >= filters.start_date)

        if filters.end_date:
            conditions.append(Invoice.invoice_date <= filters.end_date)

        return conditions
