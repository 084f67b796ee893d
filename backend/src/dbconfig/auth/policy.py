"""Resource policy for app settings.

Hosts that already authorize through per-resource policies can enable this
with ``DBCONFIG_USE_POLICY=true``. Every check defers to the same
``PermissionResolver.authorize`` so both paths read one ``PermissionConfig``.
"""

from typing import Any

from ..models.app_setting import AppSetting
from .permissions import PermissionAction, PermissionResolver, get_permission_resolver


class AppSettingPolicy:
    """Policy methods for the settings endpoints."""

    def __init__(self, resolver: PermissionResolver | None = None) -> None:
        self.resolver = resolver or get_permission_resolver()

    @staticmethod
    def _unwrap(identity: Any) -> Any:
        # Identity wrappers keep the authenticated user object in original_data
        return getattr(identity, "original_data", identity)

    def _authorize(self, identity: Any, action: PermissionAction) -> bool:
        if identity is None:
            return False
        return self.resolver.authorize(self._unwrap(identity), action)

    def can_index(self, identity: Any) -> bool:
        return self._authorize(identity, PermissionAction.VIEW)

    def can_view(self, identity: Any, setting: AppSetting | None = None) -> bool:
        return self._authorize(identity, PermissionAction.VIEW)

    def can_edit(self, identity: Any, setting: AppSetting | None = None) -> bool:
        return self._authorize(identity, PermissionAction.UPDATE)

    def can_update(self, identity: Any, setting: AppSetting | None = None) -> bool:
        return self._authorize(identity, PermissionAction.UPDATE)
