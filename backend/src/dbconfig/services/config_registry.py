"""
Process-wide configuration registry rebuilt from the settings table.

Every reload re-derives the whole configuration from the stored rows: each row
is re-checked against the key policy, decrypted when needed, cast to its type
and written under its dotted key on top of the registry defaults. The result is
published as a new immutable snapshot, so readers never see a half-built
configuration.
"""

import copy
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import get_settings_instance
from ..core.exceptions import ValueDecodeError
from ..core.key_policy import KeyPolicy, get_key_policy
from ..core.logging import get_logger
from ..core.value_codec import ValueCodec, get_value_codec, is_encrypted_type
from ..models.app_setting import AppSetting
from ..utils.path_access import DotPath
from .environment import ReloadHook, default_hooks

logger = get_logger(__name__)


class ConfigSnapshot:
    """Immutable, versioned view of the configuration."""

    __slots__ = ("_data", "_version")

    def __init__(self, data: dict[str, Any], version: int = 0) -> None:
        self._data = data
        self._version = version

    @property
    def version(self) -> int:
        return self._version

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value by dotted key. Containers are returned as copies."""
        value = DotPath.get(self._data, key, default)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and DotPath.has(self._data, key)

    def __repr__(self) -> str:
        return f"<ConfigSnapshot(version={self._version})>"


class ConfigRegistry:
    """Owns the live configuration snapshot and knows how to rebuild it."""

    def __init__(
        self,
        key_policy: KeyPolicy | None = None,
        codec: ValueCodec | None = None,
        defaults: Mapping[str, Any] | None = None,
        hooks: Iterable[ReloadHook] | None = None,
    ) -> None:
        self.key_policy = key_policy or get_key_policy()
        self.codec = codec or get_value_codec()
        self._defaults = dict(defaults or {})
        self._hooks = list(hooks or [])
        self._lock = threading.Lock()
        self._snapshot = ConfigSnapshot(self._build_base(), version=0)

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def get(self, key: str, default: Any = None) -> Any:
        return self._snapshot.get(key, default)

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Replace the dotted-key defaults. Takes effect on the next reload."""
        self._defaults = dict(defaults)

    def add_hook(self, hook: ReloadHook) -> None:
        """Append a post-reload hook; hooks run in registration order."""
        self._hooks.append(hook)

    def _build_base(self) -> dict[str, Any]:
        base: dict[str, Any] = {}
        for key, value in self._defaults.items():
            DotPath.set(base, key, copy.deepcopy(value))
        return base

    async def reload(self, db: AsyncSession) -> ConfigSnapshot:
        """Rebuild the configuration from every stored setting and publish it.

        A missing encryption key aborts the reload and keeps the current snapshot.
        """
        return self.publish(await self.build(db))

    async def build(self, db: AsyncSession) -> dict[str, Any]:
        """Read every stored setting into a draft configuration without publishing it.

        Rows with a blocked key, undecryptable ciphertext or a value that does not
        parse as its type are skipped with a warning; the remaining rows still load.
        Raises EncryptionKeyError when an encrypted row exists and no key is configured.
        """
        result = await db.execute(
            select(AppSetting.config_key, AppSetting.value, AppSetting.type).order_by(AppSetting.config_key)
        )
        rows = result.all()

        draft = self._build_base()
        loaded = 0
        skipped = 0

        for config_key, value, value_type in rows:
            # Rows may have been inserted behind the store's back
            if not self.key_policy.is_allowed(config_key):
                logger.warning(
                    "Skipping blocked config key found in settings table",
                    extra={"config_key": config_key},
                )
                skipped += 1
                continue

            if is_encrypted_type(value_type):
                decrypted = self.codec.decrypt(value)
                if decrypted is None:
                    logger.warning(
                        f"Failed to decrypt setting '{config_key}'. Skipping. Check encryption key configuration."
                    )
                    skipped += 1
                    continue
                value = decrypted

            try:
                typed_value = self.codec.cast_value(value, value_type)
            except ValueDecodeError as e:
                logger.warning(f"Skipping setting '{config_key}': {e.message}")
                skipped += 1
                continue

            DotPath.set(draft, config_key, typed_value)
            loaded += 1

        logger.debug("Built configuration draft", extra={"loaded": loaded, "skipped": skipped})
        return draft

    def publish(self, draft: dict[str, Any]) -> ConfigSnapshot:
        """Run the post-reload hooks on a built draft and swap it in as the new snapshot."""
        for hook in self._hooks:
            hook(draft)

        with self._lock:
            snapshot = ConfigSnapshot(draft, version=self._snapshot.version + 1)
            self._snapshot = snapshot

        logger.info(
            "Configuration registry reloaded",
            extra={"version": snapshot.version},
        )
        return snapshot


# Global registry instance
_config_registry: ConfigRegistry | None = None


def get_config_registry() -> ConfigRegistry:
    """Get the process-wide registry, seeded with defaults from settings."""
    global _config_registry  # noqa: PLW0603
    if _config_registry is None:
        settings = get_settings_instance()
        _config_registry = ConfigRegistry(
            defaults=settings.registry_defaults(),
            hooks=default_hooks(settings),
        )
    return _config_registry


def reset_config_registry() -> None:
    """Forget the process-wide registry (tests, settings changes)."""
    global _config_registry  # noqa: PLW0603
    _config_registry = None


async def load_registry_at_startup(
    session_factory: async_sessionmaker | None = None,
    registry: ConfigRegistry | None = None,
) -> bool:
    """Best-effort initial load; the process keeps its defaults if this fails."""
    registry = registry or get_config_registry()
    try:
        if session_factory is None:
            from ..core.database import get_async_session_local

            session_factory = get_async_session_local()

        async with session_factory() as session:
            await registry.reload(session)
        return True
    except Exception as e:
        logger.warning(f"Failed to load configuration from database: {e}")
        return False
