"""Allow/block rules for configuration keys stored in the database.

Security-sensitive configuration (salts, datasource and SMTP credentials, the
debug flag, error and session handling) must only come from the environment,
so those prefixes can never be written to or reloaded from the settings table.
Every other key is denied unless it falls under an allowed prefix.
"""

from collections.abc import Iterable

BLOCKED_KEY_PREFIXES: tuple[str, ...] = (
    "Security.",  # Security salt, encryption keys
    "Datasources.",  # Database credentials
    "EmailTransport.default.password",  # SMTP password
    "EmailTransport.default.username",  # SMTP username (can contain secrets)
    "debug",  # Debug mode
    "Error.",  # Error handling config
    "Session.",  # Session configuration
)

ALLOWED_KEY_PREFIXES: tuple[str, ...] = (
    "App.",
    "Mail.",
    "EmailTransport.default.host",
    "EmailTransport.default.port",
    "EmailTransport.default.tls",
    "EmailTransport.default.timeout",
    "Cache.",
    "Log.",
    "Asset.",
    "Custom.",
)


class KeyPolicy:
    """Immutable blocklist/allowlist evaluator for dotted configuration keys."""

    def __init__(
        self,
        blocked_prefixes: Iterable[str] = BLOCKED_KEY_PREFIXES,
        allowed_prefixes: Iterable[str] = ALLOWED_KEY_PREFIXES,
    ) -> None:
        self._blocked = tuple(blocked_prefixes)
        self._allowed = tuple(allowed_prefixes)

    @property
    def blocked_prefixes(self) -> tuple[str, ...]:
        return self._blocked

    @property
    def allowed_prefixes(self) -> tuple[str, ...]:
        return self._allowed

    def is_allowed(self, key: str) -> bool:
        """Return True if ``key`` may be stored in or loaded from the settings table.

        The blocklist always wins: an allowed prefix can never re-admit a blocked key.
        """
        if not key:
            return False

        # Explicit deny first
        for blocked in self._blocked:
            if key == blocked or key.startswith(blocked):
                return False

        for allowed in self._allowed:
            if key.startswith(allowed):
                return True

        # Default deny for unlisted keys
        return False

    def __repr__(self) -> str:
        return f"<KeyPolicy(blocked={len(self._blocked)}, allowed={len(self._allowed)})>"


_default_policy = KeyPolicy()


def get_key_policy() -> KeyPolicy:
    """Return the process default key policy."""
    return _default_policy


def is_key_allowed(key: str) -> bool:
    """Check ``key`` against the default policy."""
    return _default_policy.is_allowed(key)
