"""
Pydantic schemas for the settings service.

This package contains Pydantic models for request/response validation
and serialization.
"""

from .app_setting import (
    AppSettingCreate,
    AppSettingUpdate,
    AppSettingResponse,
    AppSettingList,
    KeyPolicyResponse,
)
from .envelope import (
    SuccessResponse,
    ErrorResponse,
)

__all__ = [
    "AppSettingCreate",
    "AppSettingUpdate",
    "AppSettingResponse",
    "AppSettingList",
    "KeyPolicyResponse",
    "SuccessResponse",
    "ErrorResponse",
]
