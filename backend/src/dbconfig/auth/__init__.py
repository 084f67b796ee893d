"""Authorization module for dbconfig"""

from .permissions import PermissionAction, PermissionResolver
from .policy import AppSettingPolicy

__all__ = ['PermissionAction', 'PermissionResolver', 'AppSettingPolicy']
