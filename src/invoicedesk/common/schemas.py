"""Response envelope shared by every JSON endpoint.

Every body carries ``success``; ``data``, ``message`` and ``pagination`` are
omitted when not set, so clients can rely on ``success`` alone to branch.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field


class Pagination(BaseModel):
    page: int = Field(..., ge=1, description="Current 1-based page")
    pages: int = Field(..., ge=0, description="Total number of pages")
    total: int = Field(..., ge=0, description="Total number of matching records")
    limit: int = Field(..., ge=1, description="Page size")


def success_response(data: Any = None, message: Optional[str] = None,
                     pagination: Optional[Pagination] = None) -> dict:
    """Create a success response."""
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination.model_dump(mode="json")
    return body


def error_response(message: str) -> dict:
    """Create an error response."""
    return {"success": False, "message": message}
