"""Unit tests for AppSettingsService (create/update/delete with registry reload)."""

import logging

import pytest
from sqlalchemy import func, select

from dbconfig.core.exceptions import (
    ConflictError,
    EncryptionKeyError,
    NotFoundError,
    SettingSaveError,
    ValidationError,
)
from dbconfig.core.key_policy import KeyPolicy
from dbconfig.core.value_codec import ValueCodec
from dbconfig.models.app_setting import AppSetting
from dbconfig.services.app_settings_service import DEFAULT_SETTINGS, AppSettingsService
from dbconfig.services.config_registry import ConfigRegistry


async def _count(db_session) -> int:
    return await db_session.scalar(select(func.count()).select_from(AppSetting))


class TestCreate:
    """Tests for AppSettingsService.create."""

    async def test_create_reloads_registry(self, service: AppSettingsService, registry: ConfigRegistry) -> None:
        setting = await service.create(
            {"module": "App", "config_key": "EmailTransport.default.port", "value": "587", "type": "integer"}
        )

        assert setting.id is not None
        assert setting.value == "587"
        assert registry.version == 1
        assert registry.get("EmailTransport.default.port") == 587

    async def test_blocked_key_is_save_failure(self, service: AppSettingsService, db_session, registry, caplog) -> None:
        """Bypassing request validation still hits the persistence boundary."""
        with caplog.at_level(logging.WARNING):
            with pytest.raises(SettingSaveError) as exc_info:
                await service.create({"config_key": "Security.salt", "value": "pwned"})

        assert exc_info.value.status_code == 422
        assert exc_info.value.error_code == "SETTING_SAVE_FAILED"
        assert "Attempted to save blocked config key: Security.salt" in caplog.text
        assert await _count(db_session) == 0
        assert registry.version == 0

    async def test_unlisted_key_is_save_failure(self, service: AppSettingsService, db_session) -> None:
        with pytest.raises(SettingSaveError):
            await service.create({"config_key": "Whatever.key", "value": "x"})
        assert await _count(db_session) == 0

    async def test_missing_key_or_value(self, service: AppSettingsService) -> None:
        with pytest.raises(ValidationError):
            await service.create({"config_key": " ", "value": "x"})
        with pytest.raises(ValidationError):
            await service.create({"config_key": "App.name", "value": ""})

    async def test_duplicate_key_conflicts(self, service: AppSettingsService) -> None:
        await service.create({"config_key": "App.name", "value": "Acme"})
        with pytest.raises(ConflictError):
            await service.create({"config_key": "App.name", "value": "Other"})

    async def test_encrypted_value_stored_as_ciphertext(
        self, service: AppSettingsService, codec: ValueCodec, registry: ConfigRegistry
    ) -> None:
        setting = await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})

        assert setting.value != "s3cret"
        assert codec.decrypt(setting.value) == "s3cret"
        assert registry.get("Mail.default.apiKey") == "s3cret"

    async def test_encrypted_create_without_key_persists_nothing(self, db_session, registry: ConfigRegistry) -> None:
        service = AppSettingsService(db_session, registry=registry, codec=ValueCodec(key_provider=lambda: ""))

        with pytest.raises(EncryptionKeyError):
            await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})

        assert await _count(db_session) == 0


class TestUpdate:
    """Tests for AppSettingsService.update."""

    async def test_update_value_reloads(self, service: AppSettingsService, registry: ConfigRegistry) -> None:
        setting = await service.create({"config_key": "App.name", "value": "Acme"})
        await service.update(setting.id, {"value": "Globex"})
        assert registry.get("App.name") == "Globex"
        assert registry.version == 2

    async def test_missing_setting(self, service: AppSettingsService) -> None:
        with pytest.raises(NotFoundError):
            await service.update("does-not-exist", {"value": "x"})

    async def test_config_key_cannot_change(self, service: AppSettingsService) -> None:
        setting = await service.create({"config_key": "App.name", "value": "Acme"})
        with pytest.raises(ValidationError):
            await service.update(setting.id, {"config_key": "App.other", "value": "x"})

    async def test_empty_value_on_plain_setting_rejected(self, service: AppSettingsService) -> None:
        setting = await service.create({"config_key": "App.name", "value": "Acme"})
        with pytest.raises(ValidationError):
            await service.update(setting.id, {"value": ""})

    @pytest.mark.parametrize("payload", [{"value": ""}, {}, {"value": None, "type": "encrypted"}])
    async def test_empty_value_on_encrypted_setting_is_noop(
        self, service: AppSettingsService, registry: ConfigRegistry, payload: dict
    ) -> None:
        setting = await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})
        stored = setting.value
        version = registry.version

        result = await service.update(setting.id, payload)

        assert result.value == stored
        assert registry.version == version

    async def test_new_value_on_encrypted_setting_is_reencrypted(
        self, service: AppSettingsService, codec: ValueCodec, registry: ConfigRegistry
    ) -> None:
        setting = await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})
        old_ciphertext = setting.value

        await service.update(setting.id, {"value": "rotated"})

        assert setting.value != old_ciphertext
        assert codec.decrypt(setting.value) == "rotated"
        assert registry.get("Mail.default.apiKey") == "rotated"

    async def test_module_change_keeps_ciphertext(self, service: AppSettingsService) -> None:
        setting = await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})
        stored = setting.value

        await service.update(setting.id, {"module": "Mail", "value": ""})

        assert setting.module == "Mail"
        assert setting.value == stored

    async def test_switching_to_encrypted_encrypts_existing_value(
        self, service: AppSettingsService, codec: ValueCodec
    ) -> None:
        setting = await service.create({"config_key": "Mail.default.apiKey", "value": "plain"})

        await service.update(setting.id, {"type": "encrypted"})

        assert setting.value != "plain"
        assert codec.decrypt(setting.value) == "plain"

    async def test_switching_from_encrypted_decrypts_existing_value(self, service: AppSettingsService) -> None:
        setting = await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})

        await service.update(setting.id, {"type": "string"})

        assert setting.value == "s3cret"

    async def test_row_with_blocked_key_cannot_be_updated(self, db_session, service: AppSettingsService) -> None:
        setting = AppSetting(config_key="Session.timeout", value="30", type="integer")
        db_session.add(setting)
        await db_session.commit()

        with pytest.raises(SettingSaveError):
            await service.update(setting.id, {"value": "9999"})

        await db_session.refresh(setting)
        assert setting.value == "30"


class TestSave:
    async def test_save_returns_false_for_blocked_key(self, service: AppSettingsService, db_session) -> None:
        assert await service.save(AppSetting(config_key="Datasources.default.password", value="x")) is False
        assert await _count(db_session) == 0

    async def test_save_returns_true(self, service: AppSettingsService, registry: ConfigRegistry) -> None:
        assert await service.save(AppSetting(config_key="Custom.flag", value="1", type="boolean")) is True
        assert registry.get("Custom.flag") is True


class TestFailedReload:
    """A write whose configuration cannot be rebuilt must not stay in the database."""

    @pytest.fixture
    async def keyless_service(self, db_session, service: AppSettingsService) -> AppSettingsService:
        await service.create({"config_key": "Mail.default.apiKey", "value": "s3cret", "type": "encrypted"})
        registry = ConfigRegistry(KeyPolicy(), ValueCodec(key_provider=lambda: None), defaults={}, hooks=[])
        return AppSettingsService(db_session, registry=registry)

    async def test_update_rolled_back(self, db_session, service: AppSettingsService, keyless_service, registry) -> None:
        setting = await service.create({"config_key": "App.name", "value": "Acme"})

        with pytest.raises(EncryptionKeyError):
            await keyless_service.update(setting.id, {"value": "Globex"})

        stored = await db_session.scalar(select(AppSetting.value).where(AppSetting.config_key == "App.name"))
        assert stored == "Acme"
        assert keyless_service.registry.version == 0
        assert registry.get("App.name") == "Acme"

    async def test_create_rolled_back(self, db_session, keyless_service) -> None:
        with pytest.raises(EncryptionKeyError):
            await keyless_service.create({"config_key": "App.name", "value": "Acme"})

        assert await keyless_service.get_by_key("App.name") is None
        assert await _count(db_session) == 1

    async def test_delete_rolled_back(self, db_session, service: AppSettingsService, keyless_service) -> None:
        setting = await service.create({"config_key": "App.name", "value": "Acme"})

        with pytest.raises(EncryptionKeyError):
            await keyless_service.delete(setting.id)

        assert await _count(db_session) == 2


class TestDeleteAndList:
    async def test_delete_removes_key_from_registry(self, service: AppSettingsService, registry: ConfigRegistry) -> None:
        setting = await service.create({"config_key": "App.name", "value": "Acme"})
        await service.delete(setting.id)

        assert "App.name" not in registry.snapshot
        with pytest.raises(NotFoundError):
            await service.get_setting(setting.id)

    async def test_list_filters_by_module(self, service: AppSettingsService) -> None:
        await service.create({"module": "App", "config_key": "App.name", "value": "Acme"})
        await service.create({"module": "Mail", "config_key": "Mail.default.from", "value": "a@example.com"})

        assert [s.config_key for s in await service.list_settings()] == ["App.name", "Mail.default.from"]
        assert [s.config_key for s in await service.list_settings("Mail")] == ["Mail.default.from"]

    async def test_get_by_key(self, service: AppSettingsService) -> None:
        await service.create({"config_key": "App.name", "value": "Acme"})
        assert (await service.get_by_key("App.name")).value == "Acme"
        assert await service.get_by_key("App.other") is None


class TestSeedDefaults:
    async def test_seeds_empty_table(self, service: AppSettingsService, registry: ConfigRegistry) -> None:
        assert await service.seed_defaults() == len(DEFAULT_SETTINGS)
        assert registry.get("EmailTransport.default.port") == 25
        assert registry.get("EmailTransport.default.tls") is True
        assert registry.get("Mail.default.from") == "no-reply@example.com"

    async def test_does_not_touch_existing_rows(self, service: AppSettingsService, db_session) -> None:
        await service.create({"config_key": "App.name", "value": "Acme"})
        assert await service.seed_defaults() == 0
        assert await _count(db_session) == 1
