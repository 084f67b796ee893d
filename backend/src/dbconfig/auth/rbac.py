"""
FastAPI dependencies guarding the settings endpoints.

``require_settings_view`` runs the per-request access check: an unauthenticated
request is redirected to login, denied or let through depending on
configuration; an authenticated one needs the view permission. Write endpoints
depend on ``require_settings_update``, which additionally needs the update
permission.
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request

from ..core.config import UnauthenticatedAction, get_settings_instance
from ..core.exceptions import AuthenticationError, AuthorizationError, LoginRedirect
from ..core.logging import get_logger
from .permissions import PermissionAction, PermissionResolver, get_permission_resolver
from .policy import AppSettingPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class SettingsAccess:
    """Outcome of the access check for the current request."""

    identity: Any
    can_update: bool


def _check(resolver: PermissionResolver, identity: Any, action: PermissionAction) -> bool:
    if get_settings_instance().use_policy:
        policy = AppSettingPolicy(resolver)
        if action == PermissionAction.UPDATE:
            return policy.can_update(identity)
        return policy.can_index(identity)
    return resolver.authorize(identity, action)


async def require_settings_view(
    request: Request,
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> SettingsAccess:
    """Require view access to settings - standalone dependency function"""
    identity = resolver.resolve_identity(request)

    if identity is None:
        behavior = resolver.unauthenticated_behavior()
        if behavior == UnauthenticatedAction.ALLOW:
            # Reading only; a write still needs an identity with the update role
            logger.debug("Unauthenticated settings access allowed by configuration")
            return SettingsAccess(identity=None, can_update=False)
        if behavior == UnauthenticatedAction.DENY:
            raise AuthenticationError()
        raise LoginRedirect(resolver.login_url(request))

    if not _check(resolver, identity, PermissionAction.VIEW):
        logger.warning("Settings access denied", extra={"path": request.url.path})
        raise AuthorizationError("You do not have permission to access settings.")

    return SettingsAccess(
        identity=identity,
        can_update=_check(resolver, identity, PermissionAction.UPDATE),
    )


async def require_settings_update(
    access: SettingsAccess = Depends(require_settings_view),
) -> SettingsAccess:
    """Require update access to settings - standalone dependency function"""
    if not access.can_update:
        raise AuthorizationError("You do not have permission to update settings.")
    return access
