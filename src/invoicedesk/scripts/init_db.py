import logging
from invoicedesk.common.config import Settings
from invoicedesk.common.utils.database import create_db_engine, init_db as create_tables

logger = logging.getLogger(__name__)


def init_db(settings: Settings | None = None):
    """Initialize the database by creating all tables"""
    settings = settings or Settings()
    engine = create_db_engine(settings)
    logger.info("Creating database tables...")
    try:
        create_tables(engine)
    finally:
        engine.dispose()
    logger.info("Database tables created successfully.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
