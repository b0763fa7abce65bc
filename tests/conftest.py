import pytest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

# Import all models to ensure they're registered with SQLModel
from invoicedesk.invoices.models.invoice import Invoice, InvoiceSequence
from invoicedesk.common.config import Settings
from invoicedesk.invoices.pdf.assets import AssetFetcher
from invoicedesk.invoices.pdf.config import PdfConfig
from invoicedesk.invoices.pdf.renderer import InvoicePdfRenderer
from invoicedesk.invoices.schemas.invoice import InvoiceCreate
from invoicedesk.invoices.services.invoice_service import InvoiceService
from invoicedesk.main import create_app

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_engine():
    """Create an in-memory SQLite database for testing"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def test_session(test_engine):
    """Create a test database session"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2024-06-15 12:00 UTC"""
    return lambda: FIXED_NOW


@pytest.fixture
def invoice_service(test_session, fixed_clock):
    return InvoiceService(test_session, clock=fixed_clock)


@pytest.fixture
def test_settings():
    return Settings(
        env="test",
        database_url="sqlite:///:memory:",
        cors_origins=["http://localhost:5173"],
    )


@pytest.fixture
def pdf_config():
    """PDF config without logo or signature so rendering stays offline"""
    return PdfConfig(logo=None, signature=None, asset_timeout_seconds=1, render_timeout_seconds=10)


@pytest.fixture
def pdf_renderer(pdf_config):
    return InvoicePdfRenderer(pdf_config, AssetFetcher(pdf_config))


@pytest.fixture
def app(test_engine, test_settings, pdf_renderer):
    return create_app(settings=test_settings, engine=test_engine,
                      pdf_renderer=pdf_renderer, public_dir="does-not-exist")


@pytest.fixture
def client(app):
    """Create a test client for the API"""
    return TestClient(app)


@pytest.fixture
def sample_invoice_data():
    """Sample Initial Payment invoice payload in wire (camelCase) form"""
    return {
        "invoiceType": "SHR",
        "clientName": "Test Client",
        "clientPhone": "+91 9000000000",
        "clientEmail": "client@example.com",
        "clientAddress": "12 Test Street\nErode",
        "paymentType": "Initial Payment",
        "totalAmount": 1000.00,
        "taxPercentage": 0,
        "items": [
            {"description": "Website development", "quantity": 1, "rate": 1000.00, "pendingPayment": 400.00}
        ],
        "invoiceDate": "2024-06-10",
        "dueDate": "2024-06-16",
        "notes": "Balance due on delivery",
    }


# Test data factories
class TestDataFactory:
    @staticmethod
    def invoice_create(**kwargs) -> InvoiceCreate:
        """Build a Full Payment invoice draft"""
        data = {
            "invoice_type": "SA",
            "client_name": "Test Client",
            "client_phone": "9000000000",
            "payment_type": "Full Payment",
            "total_amount": 1000.00,
            "items": [{"description": "Consulting", "rate": 1000.00}],
            "invoice_date": date(2024, 6, 10),
        }
        data.update(kwargs)
        return InvoiceCreate(**data)

    @staticmethod
    def initial_payment_create(pending: float = 400.00, due_in_days: int = 1, **kwargs) -> InvoiceCreate:
        """Build an Initial Payment invoice draft with one item of rate 1000"""
        data = {
            "invoice_type": "SHR",
            "payment_type": "Initial Payment",
            "items": [{"description": "Website development", "rate": 1000.00, "pending_payment": pending}],
            "due_date": FIXED_NOW.date() + timedelta(days=due_in_days),
        }
        data.update(kwargs)
        return TestDataFactory.invoice_create(**data)

    @staticmethod
    def create_invoice(session: Session, **kwargs) -> Invoice:
        """Insert an invoice row directly, bypassing the service"""
        data = {
            "invoice_number": "SA-001",
            "invoice_type": "SA",
            "client_name": "Test Client",
            "client_phone": "9000000000",
            "payment_type": "Full Payment",
            "total_amount": 1000.00,
            "items": [{"description": "Consulting", "quantity": 1, "rate": 1000.00, "pendingPayment": 0}],
            "invoice_date": date(2024, 6, 10),
            "collected_amount": 1000.00,
            "pending_amount": 0.0,
            "status": "Paid",
        }
        data.update(kwargs)

        invoice = Invoice(**data)
        session.add(invoice)
        session.commit()
        session.refresh(invoice)
        return invoice


@pytest.fixture
def test_data_factory():
    """Provide test data factory"""
    return TestDataFactory


@pytest.fixture
def failing_renderer():
    """Renderer whose render always raises"""
    renderer = Mock(spec=InvoicePdfRenderer)
    renderer.config = PdfConfig(logo=None, signature=None, render_timeout_seconds=5)
    renderer.render.side_effect = RuntimeError("renderer crashed")
    return renderer
