import re
from typing import Optional
from fastapi.logger import logger
from sqlalchemy import case, update
from sqlmodel import Session, select
from invoicedesk.common.exceptions import InvoiceNumberError, NumberingError
from invoicedesk.invoices.constants import InvoiceType, INVOICE_NUMBER_PADDING
from invoicedesk.invoices.models.invoice import Invoice, InvoiceSequence

INVOICE_NUMBER_PATTERN = re.compile(r"^(?P<type>[A-Z]+)-(?P<seq>\d+)$")


def format_invoice_number(invoice_type: InvoiceType | str, sequence: int) -> str:
    """Format ``{TYPE}-{NNN}``; sequences wider than the padding are kept whole."""
    return f"{InvoiceType(invoice_type).value}-{sequence:0{INVOICE_NUMBER_PADDING}d}"


def parse_invoice_number(invoice_number: str, expected_type: InvoiceType | str | None = None) -> int:
    """
    Return the numeric suffix of an invoice number.

    Raises:
        InvoiceNumberError: if the number is not ``{TYPE}-{digits}`` or its
            prefix differs from ``expected_type``
    """
    match = INVOICE_NUMBER_PATTERN.match(invoice_number or "")
    if not match:
        raise InvoiceNumberError(
            f"Invalid invoice number '{invoice_number}': expected TYPE-NNN")
    if match.group("type") not in InvoiceType._value2member_map_:
        raise InvoiceNumberError(
            f"Invalid invoice number '{invoice_number}': unknown type prefix")
    if expected_type is not None and match.group("type") != InvoiceType(expected_type).value:
        raise InvoiceNumberError(
            f"Invoice number '{invoice_number}' does not match invoice type {InvoiceType(expected_type).value}")
    return int(match.group("seq"))


class InvoiceNumberingService:
    """
    Issues sequential invoice numbers per invoice type.

    All methods work inside the caller's session and never commit, so an
    issued number is only consumed when the invoice that uses it is committed.
    """

    def __init__(self, db: Session):
        self.db = db

    def issue_number(self, invoice_type: InvoiceType | str) -> str:
        """Reserve and return the next number for the type"""
        type_value = InvoiceType(invoice_type).value
        result = self.db.exec(
            update(InvoiceSequence)
            .where(InvoiceSequence.invoice_type == type_value)
            .values(last_number=InvoiceSequence.last_number + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # First number for this type since the counter table existed;
            # a concurrent seeder makes the insert fail on the primary key.
            next_number = self._latest_issued(type_value) + 1
            self.db.add(InvoiceSequence(invoice_type=type_value, last_number=next_number))
            self.db.flush()
        else:
            next_number = self._counter_value(type_value)

        invoice_number = format_invoice_number(type_value, next_number)
        logger.info(f"Issued invoice number {invoice_number}")
        return invoice_number

    def peek_next_number(self, invoice_type: InvoiceType | str) -> str:
        """Return the number the next ``issue_number`` call would produce, without reserving it"""
        type_value = InvoiceType(invoice_type).value
        last_number = self.db.exec(
            select(InvoiceSequence.last_number)
            .where(InvoiceSequence.invoice_type == type_value)
        ).first()
        if last_number is not None:
            return format_invoice_number(type_value, last_number + 1)
        return format_invoice_number(type_value, self._latest_issued(type_value) + 1)

    def register_number(self, invoice_type: InvoiceType | str, invoice_number: str) -> None:
        """Raise the counter to at least the suffix of an explicitly supplied number"""
        type_value = InvoiceType(invoice_type).value
        suffix = parse_invoice_number(invoice_number, type_value)
        result = self.db.exec(
            update(InvoiceSequence)
            .where(InvoiceSequence.invoice_type == type_value)
            .values(last_number=case(
                (InvoiceSequence.last_number < suffix, suffix),
                else_=InvoiceSequence.last_number,
            ))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            seed = max(self._latest_issued(type_value), suffix)
            self.db.add(InvoiceSequence(invoice_type=type_value, last_number=seed))
            self.db.flush()

    def _counter_value(self, type_value: str) -> int:
        return self.db.exec(
            select(InvoiceSequence.last_number)
            .where(InvoiceSequence.invoice_type == type_value)
        ).one()

    def _latest_issued(self, type_value: str) -> int:
        """Suffix of the most recently created invoice of the type, 0 when none"""
        latest: Optional[Invoice] = self.db.exec(
            select(Invoice)
            .where(Invoice.invoice_type == type_value)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .limit(1)
        ).first()
        if latest is None:
            return 0
        try:
            return parse_invoice_number(latest.invoice_number, type_value)
        except InvoiceNumberError as e:
            raise NumberingError(
                f"Cannot issue a number for {type_value}: latest invoice "
                f"'{latest.invoice_number}' has an unparseable number") from e
