"""Role based permission checks for the settings API.

The resolver does not depend on any particular authentication system: it reads
an opaque identity from the request (request state, session or a custom
callable), extracts a role from it using the configured attribute path, and
checks that role against the configured bypass/view/update role lists.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from ..core.config import (
    IdentityResolverMode,
    PermissionConfig,
    UnauthenticatedAction,
    get_settings_instance,
)
from ..utils.path_access import DotPath

SESSION_IDENTITY_KEY = "Auth"
WILDCARD_ROLE = "*"

RoleValue = str | list[str]


class PermissionAction(str, Enum):
    """Actions that can be authorized on settings."""

    VIEW = "view"
    UPDATE = "update"


class PermissionResolver:
    """Resolves identities and roles and authorizes settings actions."""

    def __init__(self, config: PermissionConfig | None = None) -> None:
        self.config = config or get_settings_instance().permissions

    def resolve_identity(self, request: Any) -> Any | None:
        """Return the identity attached to ``request``, or None when unauthenticated.

        - attribute: ``request.state.identity``, set by the host's auth middleware
        - session: ``Auth`` entry of the session, if a session middleware is installed
        - callable: whatever the configured function returns for the request
        """
        resolver = self.config.identity_resolver

        if callable(resolver):
            return resolver(request)

        if resolver == IdentityResolverMode.SESSION:
            session = request.scope.get("session")
            if not session:
                return None
            return session.get(SESSION_IDENTITY_KEY)

        return getattr(request.state, "identity", None)

    def extract_role(self, identity: Any) -> RoleValue | None:
        """Read the role from ``identity`` using the configured role attribute.

        Lookup order: the identity's own ``get()`` accessor, attribute access with
        one level of dotted nesting, then a dotted lookup into a mapping.
        """
        if identity is None:
            return None

        path = self.config.role_attribute

        getter = getattr(identity, "get", None)
        if callable(getter):
            try:
                role = getter(path)
            except (KeyError, TypeError):
                role = None
            if role is not None:
                return self._normalize_role(role)

        head, _, rest = path.partition(".")
        if not isinstance(identity, Mapping) and hasattr(identity, head):
            value = getattr(identity, head)
            if rest:
                value = DotPath.get(value, rest) if isinstance(value, Mapping) else getattr(value, rest, None)
            return self._normalize_role(value)

        if isinstance(identity, Mapping):
            return self._normalize_role(DotPath.get(identity, path))

        return None

    @staticmethod
    def _normalize_role(role: Any) -> RoleValue | None:
        if role is None:
            return None
        if isinstance(role, Enum):
            role = role.value
        if isinstance(role, str):
            return role
        if isinstance(role, (list, tuple, set, frozenset)):
            roles = [r.value if isinstance(r, Enum) else str(r) for r in role if r is not None]
            return roles or None
        return str(role)

    @staticmethod
    def _role_matches(role: RoleValue, allowed_roles: list[str]) -> bool:
        if isinstance(role, str):
            return role in allowed_roles
        return any(r in allowed_roles for r in role)

    def _allowed_roles(self, action: PermissionAction | str) -> list[str]:
        if action == PermissionAction.VIEW:
            return self.config.view_roles
        if action == PermissionAction.UPDATE:
            return self.config.update_roles
        return []

    def authorize(self, identity: Any, action: PermissionAction | str) -> bool:
        """Check whether ``identity`` may perform ``action`` on settings.

        Bypass roles are checked first and always win. A ``*`` entry in the
        action's role list admits every identity that has a role.
        """
        role = self.extract_role(identity)
        if role is None:
            return False

        if self._role_matches(role, self.config.bypass_roles):
            return True

        allowed_roles = self._allowed_roles(action)
        if WILDCARD_ROLE in allowed_roles:
            return True

        return self._role_matches(role, allowed_roles)

    def is_authenticated(self, request: Any) -> bool:
        return self.resolve_identity(request) is not None

    def has_permission(self, request: Any, action: PermissionAction | str) -> bool:
        identity = self.resolve_identity(request)
        if identity is None:
            return False
        return self.authorize(identity, action)

    def can_view(self, request: Any) -> bool:
        return self.has_permission(request, PermissionAction.VIEW)

    def can_update(self, request: Any) -> bool:
        return self.has_permission(request, PermissionAction.UPDATE)

    def unauthenticated_behavior(self) -> UnauthenticatedAction:
        """What to do with unauthenticated requests.

        ``deny`` is the recommended setting. ``allow`` skips authorization
        altogether and should only be used behind another access control layer.
        """
        return self.config.unauthenticated_action

    def login_url(self, request: Any | None = None) -> str:
        """Resolve the configured login URL; route mappings need the request."""
        login_url = self.config.login_url
        if isinstance(login_url, str):
            return login_url
        params = {k: v for k, v in login_url.items() if k != "name"}
        if request is None:
            raise ValueError("A request is required to resolve a named login route")
        return str(request.url_for(login_url["name"], **params))


def get_permission_resolver() -> PermissionResolver:
    """FastAPI dependency returning a resolver bound to the configured permissions."""
    return PermissionResolver(get_settings_instance().permissions)
