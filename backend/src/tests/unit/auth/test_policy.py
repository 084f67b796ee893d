"""Unit tests for AppSettingPolicy."""

from types import SimpleNamespace

from dbconfig.auth.permissions import PermissionResolver
from dbconfig.auth.policy import AppSettingPolicy
from dbconfig.core.config import PermissionConfig
from dbconfig.models.app_setting import AppSetting


def _policy(**config) -> AppSettingPolicy:
    return AppSettingPolicy(PermissionResolver(PermissionConfig(**config)))


class TestAppSettingPolicy:
    def test_admin_has_full_access(self) -> None:
        policy = _policy()
        identity = {"role": "admin"}
        setting = AppSetting(config_key="App.name", value="Acme")

        assert policy.can_index(identity) is True
        assert policy.can_view(identity, setting) is True
        assert policy.can_edit(identity, setting) is True
        assert policy.can_update(identity, setting) is True

    def test_view_only_role(self) -> None:
        policy = _policy(view_roles=["viewer"], update_roles=["admin"])
        identity = {"role": "viewer"}

        assert policy.can_index(identity) is True
        assert policy.can_view(identity) is True
        assert policy.can_edit(identity) is False
        assert policy.can_update(identity) is False

    def test_unwraps_identity_wrapper(self) -> None:
        policy = _policy()
        wrapper = SimpleNamespace(original_data=SimpleNamespace(role="super_admin"))
        assert policy.can_update(wrapper) is True

    def test_no_identity(self) -> None:
        assert _policy(view_roles=["*"]).can_index(None) is False

    def test_same_config_as_resolver(self) -> None:
        """Policy and resolver must never disagree."""
        resolver = PermissionResolver(PermissionConfig(view_roles=["*"], update_roles=["editor"]))
        policy = AppSettingPolicy(resolver)
        for role in ["editor", "viewer", "super_admin"]:
            identity = {"role": role}
            assert policy.can_index(identity) == resolver.authorize(identity, "view")
            assert policy.can_update(identity) == resolver.authorize(identity, "update")
