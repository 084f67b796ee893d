"""
Database models for the settings service.
"""

from .base import Base, BaseModel
from .app_setting import AppSetting

__all__ = ["Base", "BaseModel", "AppSetting"]
