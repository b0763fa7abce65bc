"""Typed exceptions for invoice operations.

Each class maps to one HTTP status in ``common.errors``; services raise these
and never build HTTP responses themselves.
"""


class InvoiceDeskError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(InvoiceDeskError):
    """Input rejected before anything was persisted."""

    status_code = 400


class NotFoundError(InvoiceDeskError):
    """No invoice with the requested number."""

    status_code = 404


class ConflictError(InvoiceDeskError):
    """
    Invoice number already taken.

    Raised after issued numbers kept colliding, or immediately when the
    caller supplied an explicit number that already exists.
    """

    status_code = 409


class DependencyError(InvoiceDeskError):
    """An external collaborator (PDF renderer, asset host) failed."""

    status_code = 503


class InvoiceNumberError(ValidationError):
    """Invoice number does not follow the ``{TYPE}-{digits}`` format."""


class NumberingError(InvoiceDeskError):
    """
    Stored data prevents issuing the next number for a type.

    Raised when the latest invoice of a type carries a number whose suffix
    cannot be parsed; issuing ``1`` instead would collide with existing data.
    """

    status_code = 500


class PdfRenderError(DependencyError):
    """The invoice PDF could not be produced in time."""
