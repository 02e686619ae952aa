"""Common schemas for the moderation API."""

from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response.

    ``code`` is stable and lets clients tell, for example, an already
    reviewed submission apart from a missing permission.
    """
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
