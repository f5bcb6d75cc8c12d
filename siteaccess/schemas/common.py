# siteaccess/schemas/common.py
from pydantic import BaseModel
from typing import Any, Optional


class ApiResponse(BaseModel):
    """Envelope returned by every mutating endpoint."""
    success: bool
    message: str
    data: Optional[Any] = None
