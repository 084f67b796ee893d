"""
Pydantic schemas for runtime application settings.

Request schemas validate the configuration key against the key policy so a
blocked key is reported as a field error before anything reaches the store.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.key_policy import is_key_allowed
from ..core.value_codec import is_encrypted_type

KEY_NOT_ALLOWED_MESSAGE = "This configuration key is not allowed to be modified via database settings."


class AppSettingCreate(BaseModel):
    """Schema for creating a new setting."""
    module: Optional[str] = Field(None, max_length=255, description="Grouping label shown in the UI")
    config_key: str = Field(..., min_length=1, max_length=255, description="Dotted configuration key")
    value: str = Field(..., min_length=1, description="Plaintext value; encrypted at rest for type 'encrypted'")
    type: str = Field("string", min_length=1, max_length=255, description="Value type tag")
    options: Optional[str] = Field(None, description="Free-form UI metadata")

    @field_validator('config_key')
    @classmethod
    def validate_config_key(cls, v):
        """Reject keys outside the key policy."""
        v = v.strip()
        if not is_key_allowed(v):
            raise ValueError(KEY_NOT_ALLOWED_MESSAGE)
        return v


class AppSettingUpdate(BaseModel):
    """Schema for updating an existing setting.

    For encrypted settings an empty or missing value means "keep the existing value".
    """
    module: Optional[str] = Field(None, max_length=255)
    value: Optional[str] = None
    type: Optional[str] = Field(None, min_length=1, max_length=255)
    options: Optional[str] = None


class AppSettingResponse(BaseModel):
    """Schema for setting responses. Encrypted values are never returned."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    module: Optional[str] = None
    config_key: str
    value: Optional[str] = None
    type: str
    options: Optional[str] = None
    is_encrypted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_setting(cls, setting: Any) -> "AppSettingResponse":
        encrypted = is_encrypted_type(setting.type)
        return cls(
            id=setting.id,
            module=setting.module,
            config_key=setting.config_key,
            value=None if encrypted else setting.value,
            type=setting.type,
            options=setting.options,
            is_encrypted=encrypted,
            created_at=setting.created_at,
            updated_at=setting.updated_at,
        )


class AppSettingList(BaseModel):
    """Settings listing with the caller's update permission."""
    items: List[AppSettingResponse]
    total: int
    can_update: bool


class KeyPolicyResponse(BaseModel):
    """Key prefixes that may and may not be stored in the settings table."""
    blocked_prefixes: List[str]
    allowed_prefixes: List[str]
