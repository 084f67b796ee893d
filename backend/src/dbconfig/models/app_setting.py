"""AppSetting model for runtime-editable application configuration.

Each row maps one dotted configuration key (e.g. ``App.defaultTimezone``) to a
stored string and a type tag. Rows of type ``encrypted`` hold ciphertext.
"""

from sqlalchemy import Column, String, Text

from .base import BaseModel


class AppSetting(BaseModel):
    """Key/value settings row loaded into the configuration registry."""

    __tablename__ = "app_settings"

    module = Column(String(255), nullable=True, index=True)  # grouping label for the UI only
    config_key = Column(String(255), nullable=False, unique=True, index=True)
    value = Column(Text, nullable=False)
    type = Column(String(255), nullable=False, default="string")
    options = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<AppSetting(config_key='{self.config_key}', type='{self.type}')>"
