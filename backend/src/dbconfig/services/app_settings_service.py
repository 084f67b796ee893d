"""
Service for creating, updating and deleting runtime application settings.

Every write passes through ``save()``, the persistence boundary: it re-checks
the key policy (even if request validation was skipped), encrypts values of
type ``encrypted``, rebuilds the configuration inside the same transaction and
publishes it once committed, so the change is live before the caller returns.
A write whose configuration cannot be rebuilt is rolled back.
"""

from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    ConflictError,
    EncryptionKeyError,
    NotFoundError,
    SettingSaveError,
    ValidationError,
)
from ..core.key_policy import KeyPolicy
from ..core.logging import get_logger
from ..core.value_codec import ValueCodec, is_encrypted_type
from ..models.app_setting import AppSetting
from .config_registry import ConfigRegistry, get_config_registry

logger = get_logger(__name__)

# Safe installation defaults; credentials belong in the environment or the admin API
DEFAULT_SETTINGS: List[Dict[str, str]] = [
    {"module": "App", "config_key": "App.defaultTimezone", "value": "UTC", "type": "string"},
    {"module": "App", "config_key": "Mail.default.from", "value": "no-reply@example.com", "type": "string"},
    {"module": "App", "config_key": "EmailTransport.default.host", "value": "localhost", "type": "string"},
    {"module": "App", "config_key": "EmailTransport.default.port", "value": "25", "type": "integer"},
    {"module": "App", "config_key": "EmailTransport.default.tls", "value": "1", "type": "boolean"},
]


class AppSettingsService:
    """CRUD over AppSetting rows with key policy, encryption and registry reload."""

    def __init__(
        self,
        db: AsyncSession,
        registry: Optional[ConfigRegistry] = None,
        key_policy: Optional[KeyPolicy] = None,
        codec: Optional[ValueCodec] = None,
    ):
        self.db = db
        self.registry = registry or get_config_registry()
        self.key_policy = key_policy or self.registry.key_policy
        self.codec = codec or self.registry.codec

    async def list_settings(self, module: Optional[str] = None) -> List[AppSetting]:
        stmt = select(AppSetting).order_by(AppSetting.config_key)
        if module:
            stmt = stmt.where(AppSetting.module == module)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_setting(self, setting_id: str) -> AppSetting:
        setting = await self.db.get(AppSetting, setting_id)
        if setting is None:
            raise NotFoundError(f"App setting '{setting_id}' not found", details={"setting_id": setting_id})
        return setting

    async def get_by_key(self, config_key: str) -> Optional[AppSetting]:
        result = await self.db.execute(select(AppSetting).where(AppSetting.config_key == config_key))
        return result.scalar_one_or_none()

    async def create(self, data: Mapping[str, Any]) -> AppSetting:
        """Create a setting from a mapping with config_key, value, type and optional module/options.

        Raises:
            ValidationError: If required fields are missing or empty
            ConflictError: If the key already exists
            SettingSaveError: If the persistence boundary refuses the key

        """
        config_key = str(data.get("config_key") or "").strip()
        value = data.get("value")
        value_type = data.get("type") or "string"

        if not config_key:
            raise ValidationError("config_key is required", details={"field": "config_key"})
        if value is None or value == "":
            raise ValidationError("value is required", details={"field": "value"})

        if await self.get_by_key(config_key) is not None:
            raise ConflictError(f"App setting '{config_key}' already exists", details={"config_key": config_key})

        setting = AppSetting(
            module=data.get("module"),
            config_key=config_key,
            value=str(value),
            type=value_type,
            options=data.get("options"),
        )
        if not await self.save(setting):
            raise SettingSaveError(config_key)
        return setting

    async def update(self, setting_id: str, data: Mapping[str, Any]) -> AppSetting:
        """Replace value/type/module/options of an existing setting.

        An empty or missing value on an encrypted setting keeps the stored
        ciphertext untouched. If nothing changes, nothing is written.
        """
        setting = await self.get_setting(setting_id)

        if data.get("config_key") not in (None, setting.config_key):
            raise ValidationError("config_key cannot be changed", details={"field": "config_key"})

        new_type = data.get("type") or setting.type
        value = data.get("value")
        changes: Dict[str, Any] = {}

        if value is None or value == "":
            if value == "" and not is_encrypted_type(new_type) and not is_encrypted_type(setting.type):
                raise ValidationError("value cannot be empty", details={"field": "value"})
            if is_encrypted_type(setting.type) and not is_encrypted_type(new_type):
                # Leaving the encrypted type without a new value: keep the secret, in plaintext
                plaintext = self.codec.decrypt(setting.value)
                if plaintext is None:
                    raise ValidationError(
                        "the stored value cannot be decrypted; submit a new value",
                        details={"field": "value"},
                    )
                changes["value"] = plaintext
        else:
            changes["value"] = str(value)

        changes["type"] = new_type
        for field in ("module", "options"):
            if field in data:
                changes[field] = data[field]

        changed_fields = [field for field, new in changes.items() if getattr(setting, field) != new]
        if not changed_fields:
            logger.info("No changes made to app setting", extra={"config_key": setting.config_key})
            return setting

        for field in changed_fields:
            setattr(setting, field, changes[field])

        if not await self.save(setting):
            raise SettingSaveError(setting.config_key)
        return setting

    async def delete(self, setting_id: str) -> None:
        setting = await self.get_setting(setting_id)
        config_key = setting.config_key
        await self.db.delete(setting)
        await self._commit_and_publish()
        logger.info("Deleted app setting", extra={"config_key": config_key})

    async def save(self, setting: AppSetting) -> bool:
        """Persist a new or modified setting and reload the registry.

        Returns False, without persisting anything, when the key is blocked by the
        key policy. Encryption key errors propagate after discarding the change.
        """
        if not self.key_policy.is_allowed(setting.config_key or ""):
            logger.warning(
                f"Attempted to save blocked config key: {setting.config_key}",
                extra={"security_event": "blocked_config_key"},
            )
            await self._discard(setting)
            return False

        state = inspect(setting)
        if is_encrypted_type(setting.type):
            value_changed = not state.persistent or state.attrs.value.history.has_changes()
            previous_type = state.attrs.type.history.deleted
            became_encrypted = bool(previous_type) and not is_encrypted_type(previous_type[0])
            if value_changed or became_encrypted:
                try:
                    setting.value = self.codec.encrypt(setting.value or "")
                except EncryptionKeyError:
                    await self._discard(setting)
                    raise

        config_key = setting.config_key
        self.db.add(setting)
        try:
            await self._commit_and_publish()
        except IntegrityError as e:
            raise ConflictError(
                f"App setting '{config_key}' could not be stored: {e.orig}",
                details={"config_key": config_key},
            ) from e
        await self.db.refresh(setting)

        logger.info("Saved app setting", extra={"config_key": setting.config_key, "type": setting.type})
        return True

    async def _commit_and_publish(self) -> None:
        """Commit the pending change and publish the reloaded configuration.

        The registry draft is built from the flushed rows inside the open
        transaction; if building it fails (e.g. no encryption key) the change is
        rolled back and the current snapshot stays live.
        """
        try:
            await self.db.flush()
            draft = await self.registry.build(self.db)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        self.registry.publish(draft)

    async def _discard(self, setting: AppSetting) -> None:
        """Drop unsaved changes so nothing of a refused write reaches the database."""
        state = inspect(setting)
        if state.persistent:
            await self.db.refresh(setting)
        elif state.pending:
            self.db.expunge(setting)

    async def seed_defaults(self) -> int:
        """Insert the installation defaults into an empty settings table."""
        count = await self.db.scalar(select(func.count()).select_from(AppSetting))
        if count:
            return 0

        rows = [row for row in DEFAULT_SETTINGS if self.key_policy.is_allowed(row["config_key"])]
        for row in rows:
            self.db.add(AppSetting(**row))
        await self._commit_and_publish()
        logger.info(f"Seeded {len(rows)} default app settings")
        return len(rows)
