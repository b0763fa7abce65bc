from fastapi import APIRouter, Request
from invoicedesk.common.utils.database import check_database
from invoicedesk.invoices.endpoints.invoice import router as invoice_router

api_router = APIRouter()

# Include all domain routers
api_router.include_router(invoice_router)


@api_router.get("/health")
def health_check(request: Request):
    """Liveness check that also reports whether the database answers"""
    connected = check_database(request.app.state.engine)
    return {
        "status": "OK",
        "message": "Server is running",
        "database": "Connected" if connected else "Disconnected",
    }
