"""
Derivation of collected/pending amounts and status for an invoice.

This is the only place the rule is implemented. ``InvoiceService`` calls it on
every create and replace; everything else reads the persisted result.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional, Union

from invoicedesk.common.utils.datetime import get_current_datetime
from invoicedesk.invoices.constants import InvoiceStatus, PaymentType


@dataclass(frozen=True)
class InvoiceAmounts:
    collected_amount: float
    pending_amount: float
    total_project_value: float
    status: InvoiceStatus


def to_amount(value: Any) -> float:
    """Coerce a numeric field, treating anything malformed as 0."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def _item_value(item: Any, *keys: str) -> Any:
    for key in keys:
        if isinstance(item, dict):
            if key in item:
                return item[key]
        elif hasattr(item, key):
            return getattr(item, key)
    return None


def calculate_amounts(
    payment_type: Union[PaymentType, str],
    total_amount: Any,
    items: Optional[Iterable[Any]],
    due_date: Optional[Union[date, datetime]],
    now: Optional[datetime] = None,
) -> InvoiceAmounts:
    """
    Compute the derived fields of an invoice.

    Full Payment invoices are always fully collected. Initial Payment invoices
    derive from their items: collected is the sum of rates minus the sum of
    pending payments. A pending total of exactly 0 is Paid; otherwise the
    invoice is Overdue when the due date is strictly before the evaluation
    day, else Pending.

    Args:
        payment_type: ``PaymentType`` or its string value
        total_amount: Contractual value of the invoice
        items: Line items as dicts (camelCase or snake_case keys) or objects
        due_date: Optional due date
        now: Evaluation instant, defaults to the current UTC time

    Returns:
        InvoiceAmounts with collected, pending, total project value and status
    """
    if payment_type == PaymentType.FULL_PAYMENT:
        total = to_amount(total_amount)
        return InvoiceAmounts(
            collected_amount=total,
            pending_amount=0.0,
            total_project_value=total,
            status=InvoiceStatus.PAID,
        )

    rates = 0.0
    pending = 0.0
    for item in items or []:
        rates += to_amount(_item_value(item, "rate"))
        pending += to_amount(_item_value(item, "pendingPayment", "pending_payment"))
    rates = round(rates, 2)
    pending = round(pending, 2)

    if pending <= 0:
        status = InvoiceStatus.PAID
    elif due_date is not None and _as_date(due_date) < _as_date(now or get_current_datetime()):
        status = InvoiceStatus.OVERDUE
    else:
        status = InvoiceStatus.PENDING

    return InvoiceAmounts(
        collected_amount=round(rates - pending, 2),
        pending_amount=pending,
        total_project_value=rates,
        status=status,
    )


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value
