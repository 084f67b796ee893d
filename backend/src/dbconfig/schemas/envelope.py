"""
Envelope schemas for standardized API responses.

Successful responses wrap their payload in a ``data`` field; failures carry an
``error`` object with code, message and details.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """Standardized success response envelope."""
    data: T


class ErrorResponse(BaseModel):
    """Standardized error response envelope."""
    error: Dict[str, Any]
    meta: Optional[Dict[str, Any]] = None
