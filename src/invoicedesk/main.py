import os
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
from sqlalchemy.engine import Engine
from invoicedesk.common.config import Settings
from invoicedesk.common.errors import register_error_handlers
from invoicedesk.common.middleware import register_middleware
from invoicedesk.common.utils.database import create_db_engine, init_db
from invoicedesk.invoices.pdf.renderer import InvoicePdfRenderer
from invoicedesk.routes import api_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    pdf_renderer: Optional[InvoicePdfRenderer] = None,
    public_dir: str = "public",
) -> FastAPI:
    """
    Build the application.

    The engine, settings and PDF renderer are held on ``app.state`` and reached
    by request handlers through dependencies, never through module globals.
    """
    settings = settings or Settings()
    engine = engine or create_db_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        logger.info("Database tables ensured")
        yield
        engine.dispose()

    app = FastAPI(
        title="InvoiceDesk",
        description="Invoice management: numbering, payment tracking, PDFs and analytics",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.pdf_renderer = pdf_renderer or InvoicePdfRenderer()

    register_middleware(app, settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app, settings)

    # Add all endpoints from the API with an "api" prefix
    app.include_router(api_router, prefix="/api")

    # Serve the built dashboard when present, with client-side routing fallback
    if os.path.isdir(public_dir):
        app.mount("/public", StaticFiles(directory=public_dir), name="public")

        @app.get("/{full_path:path}", include_in_schema=False)
        async def serve_spa(full_path: str):
            if full_path.startswith("api/"):
                raise HTTPException(status_code=404, detail="Not found")
            return FileResponse(os.path.join(public_dir, "index.html"))

    return app


# this only runs if `$ python -m invoicedesk.main` is executed
if __name__ == '__main__':
    import uvicorn
    logging.basicConfig(level=logging.INFO)
    PORT = int(os.environ.get('PORT', 5000))
    uvicorn.run("invoicedesk.main:create_app", factory=True, host='0.0.0.0', port=PORT, reload=True)
