import pytest
from datetime import date, timedelta
from invoicedesk.common.exceptions import ConflictError, InvoiceNumberError, NotFoundError, ValidationError
from invoicedesk.invoices.schemas.invoice import InvoiceFilter, InvoiceRead, InvoiceUpdate

TODAY = date(2024, 6, 15)


def _update_from(invoice, **kwargs) -> InvoiceUpdate:
    data = InvoiceRead.model_validate(invoice).model_dump(include=set(InvoiceUpdate.model_fields))
    data.update(kwargs)
    return InvoiceUpdate(**data)


class TestCreateInvoice:
    """Test invoice creation"""

    def test_create_full_payment_invoice(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create())

        assert invoice.id is not None
        assert invoice.invoice_number == "SA-001"
        assert invoice.collected_amount == 1000
        assert invoice.pending_amount == 0
        assert invoice.status == "Paid"

    def test_create_initial_payment_due_tomorrow(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create(due_in_days=1))

        assert invoice.invoice_number == "SHR-001"
        assert invoice.collected_amount == 600
        assert invoice.pending_amount == 400
        assert invoice.status == "Pending"

    def test_create_initial_payment_due_yesterday(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create(due_in_days=-1))

        assert invoice.status == "Overdue"

    def test_create_initial_payment_nothing_pending(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create(pending=0))

        assert invoice.collected_amount == 1000
        assert invoice.pending_amount == 0
        assert invoice.status == "Paid"

    def test_items_stored_with_camel_case_keys(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create())

        assert invoice.items == [
            {"description": "Website development", "quantity": 1, "rate": 1000.0, "pendingPayment": 400.0}
        ]

    def test_invoice_date_defaults_to_today(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create(invoice_date=None))

        assert invoice.invoice_date == TODAY

    def test_create_then_get_round_trip(self, invoice_service, test_data_factory):
        created = invoice_service.create_invoice(test_data_factory.initial_payment_create(
            client_email="client@example.com", notes="Thanks"))

        fetched = invoice_service.get_invoice(created.invoice_number)
        read = InvoiceRead.model_validate(fetched)

        assert read.client_email == "client@example.com"
        assert read.notes == "Thanks"
        assert read.items[0].pending_payment == 400
        assert read.due_date == TODAY + timedelta(days=1)

    def test_create_with_explicit_number(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create(invoice_number="SA-010"))
        following = invoice_service.create_invoice(test_data_factory.invoice_create())

        assert invoice.invoice_number == "SA-010"
        assert following.invoice_number == "SA-011"

    def test_create_with_duplicate_number(self, invoice_service, test_data_factory):
        invoice_service.create_invoice(test_data_factory.invoice_create(invoice_number="SA-005"))

        with pytest.raises(ConflictError):
            invoice_service.create_invoice(test_data_factory.invoice_create(invoice_number="SA-005"))

    def test_create_with_mismatched_number(self, invoice_service, test_data_factory):
        with pytest.raises(InvoiceNumberError):
            invoice_service.create_invoice(test_data_factory.invoice_create(invoice_number="SHR-001"))


class TestGetAndDeleteInvoice:
    """Test lookups and deletion"""

    def test_get_invoice_not_found(self, invoice_service):
        with pytest.raises(NotFoundError) as exc_info:
            invoice_service.get_invoice("SA-999")
        assert exc_info.value.message == "Invoice not found"

    def test_delete_invoice(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create())

        invoice_service.delete_invoice(invoice.invoice_number)

        with pytest.raises(NotFoundError):
            invoice_service.get_invoice("SA-001")

    def test_delete_invoice_not_found(self, invoice_service):
        with pytest.raises(NotFoundError):
            invoice_service.delete_invoice("SA-999")


class TestReplaceInvoice:
    """Test full replacement updates"""

    def test_replace_recomputes_derived_fields(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create())

        updated = invoice_service.replace_invoice(invoice.invoice_number, _update_from(
            invoice,
            items=[{"description": "Website development", "rate": 1000, "pending_payment": 0}],
        ))

        assert updated.invoice_number == "SHR-001"
        assert updated.collected_amount == 1000
        assert updated.pending_amount == 0
        assert updated.status == "Paid"

    def test_replace_to_overdue(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create())

        updated = invoice_service.replace_invoice(
            invoice.invoice_number, _update_from(invoice, due_date=TODAY - timedelta(days=3)))

        assert updated.status == "Overdue"

    def test_replace_keeps_invoice_date_when_omitted(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create())

        updated = invoice_service.replace_invoice(
            invoice.invoice_number, _update_from(invoice, invoice_date=None, client_name="Renamed"))

        assert updated.client_name == "Renamed"
        assert updated.invoice_date == date(2024, 6, 10)

    def test_replace_cannot_change_number(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create())

        with pytest.raises(ValidationError):
            invoice_service.replace_invoice(invoice.invoice_number, _update_from(invoice, invoice_number="SA-002"))

    def test_replace_cannot_change_type(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.invoice_create())

        with pytest.raises(ValidationError):
            invoice_service.replace_invoice(invoice.invoice_number, _update_from(invoice, invoice_type="STS"))

    def test_replace_not_found(self, invoice_service, test_data_factory):
        with pytest.raises(NotFoundError):
            invoice_service.replace_invoice("SA-404", InvoiceUpdate(
                **test_data_factory.invoice_create().model_dump()))


class TestMarkPaid:
    """Test the manual mark-paid override"""

    def test_mark_paid_overrides_items(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create())

        paid = invoice_service.mark_paid(invoice.invoice_number)

        assert paid.status == "Paid"
        assert paid.collected_amount == paid.total_amount == 1000
        assert paid.pending_amount == 0
        # Items are left as authored
        assert paid.items[0]["pendingPayment"] == 400

    def test_mark_paid_is_idempotent(self, invoice_service, test_data_factory):
        invoice = invoice_service.create_invoice(test_data_factory.initial_payment_create(due_in_days=-5))

        first = invoice_service.mark_paid(invoice.invoice_number)
        first_state = (first.status, first.collected_amount, first.pending_amount, first.updated_at)
        second = invoice_service.mark_paid(invoice.invoice_number)

        assert (second.status, second.collected_amount, second.pending_amount, second.updated_at) == first_state

    def test_mark_paid_not_found(self, invoice_service):
        with pytest.raises(NotFoundError):
            invoice_service.mark_paid("SA-404")


class TestListInvoices:
    """Test filtering and pagination"""

    @pytest.fixture
    def populated(self, invoice_service, test_data_factory):
        for _ in range(3):
            invoice_service.create_invoice(test_data_factory.initial_payment_create(due_in_days=-2))
        invoice_service.create_invoice(test_data_factory.initial_payment_create(due_in_days=2))
        invoice_service.create_invoice(test_data_factory.initial_payment_create(
            invoice_type="STS", due_in_days=-2, client_name="Acme Corp"))
        invoice_service.create_invoice(test_data_factory.invoice_create(
            client_name="Zed 100% Ltd", invoice_date=date(2024, 1, 5)))
        return invoice_service

    def test_list_all(self, populated):
        page = populated.list_invoices(InvoiceFilter(limit=100))

        assert page.total == 6
        assert len(page.invoices) == 6
        assert page.pages == 1

    def test_list_newest_first(self, populated):
        page = populated.list_invoices(InvoiceFilter(limit=100))

        assert page.invoices[0].invoice_number == "SA-001"
        assert page.invoices[-1].invoice_number == "SHR-001"

    def test_filter_by_status_and_type(self, populated):
        page = populated.list_invoices(InvoiceFilter(status="Overdue", invoice_type="SHR", limit=2))

        assert page.total == 3
        assert page.pages == 2
        assert len(page.invoices) == 2
        assert all(invoice.status == "Overdue" and invoice.invoice_type == "SHR" for invoice in page.invoices)

        second_page = populated.list_invoices(InvoiceFilter(status="Overdue", invoice_type="SHR", limit=2, page=2))
        assert len(second_page.invoices) == 1
        numbers = {invoice.invoice_number for invoice in page.invoices + second_page.invoices}
        assert numbers == {"SHR-001", "SHR-002", "SHR-003"}

    def test_all_means_no_filter(self, populated):
        page = populated.list_invoices(InvoiceFilter(status="all", invoice_type="all", limit=100))

        assert page.total == 6

    def test_search_matches_name_number_and_phone(self, populated):
        assert populated.list_invoices(InvoiceFilter(search="acme")).total == 1
        assert populated.list_invoices(InvoiceFilter(search="shr-00")).total == 4
        assert populated.list_invoices(InvoiceFilter(search="9000000000")).total == 6

    def test_search_escapes_wildcards(self, populated):
        page = populated.list_invoices(InvoiceFilter(search="100%"))

        assert [invoice.client_name for invoice in page.invoices] == ["Zed 100% Ltd"]

    def test_filter_by_date_range(self, populated):
        page = populated.list_invoices(InvoiceFilter(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31)))

        assert page.total == 1
        assert page.invoices[0].invoice_number == "SA-001"

    def test_page_beyond_range_is_empty(self, populated):
        page = populated.list_invoices(InvoiceFilter(page=5, limit=10))

        assert page.invoices == []
        assert page.total == 6

    def test_empty_result_has_zero_pages(self, invoice_service):
        page = invoice_service.list_invoices(InvoiceFilter())

        assert page.total == 0
        assert page.pages == 0

    def test_get_all_ignores_pagination(self, populated):
        invoices = populated.get_all_invoices(InvoiceFilter(limit=1, invoice_type="SHR"))

        assert len(invoices) == 4


class TestInvoiceFilter:
    """Test filter validation"""

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            InvoiceFilter(status="Cancelled")

    def test_reversed_dates_rejected(self):
        with pytest.raises(ValueError):
            InvoiceFilter(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))

    def test_blank_search_is_none(self):
        assert InvoiceFilter(search="   ").search is None
