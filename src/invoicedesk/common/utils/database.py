from typing import Iterator
from fastapi import Request
from fastapi.logger import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel
from invoicedesk.common.config import Settings


def create_db_engine(settings: Settings) -> Engine:
    """Build the engine for the configured database URL with bounded timeouts."""
    url = settings.database_url
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False,
                        "timeout": settings.db_connect_timeout}
        return create_engine(url, echo=settings.db_echo, connect_args=connect_args)

    # Server-side limits so a blocked counter row cannot hang a request
    timeout_ms = settings.db_statement_timeout_ms
    return create_engine(
        url,
        echo=settings.db_echo,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout,
        connect_args={
            "connect_timeout": settings.db_connect_timeout,
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
        },
    )


def init_db(engine: Engine) -> None:
    """Create all tables registered on the SQLModel metadata."""
    # Import models so they are registered before create_all
    from invoicedesk.invoices.models.invoice import Invoice, InvoiceSequence  # noqa: F401
    SQLModel.metadata.create_all(engine)


def check_database(engine: Engine) -> bool:
    """Return True when a trivial query succeeds against the engine."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False


def get_db(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session
