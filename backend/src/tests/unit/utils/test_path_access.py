"""Unit tests for dotted path access on nested dicts."""

import pytest

from dbconfig.utils.path_access import DotPath


class TestDotPath:
    def test_tokenize_skips_empty_segments(self) -> None:
        assert DotPath.tokenize("App.default..locale") == ["App", "default", "locale"]

    def test_get_nested(self) -> None:
        data = {"EmailTransport": {"default": {"port": 25}}}
        assert DotPath.get(data, "EmailTransport.default.port") == 25

    def test_get_missing_returns_default(self) -> None:
        assert DotPath.get({"App": "x"}, "App.name", "fallback") == "fallback"

    def test_get_empty_path_returns_object(self) -> None:
        data = {"a": 1}
        assert DotPath.get(data, "") is data

    def test_has(self) -> None:
        data = {"App": {"name": None}}
        assert DotPath.has(data, "App.name") is True
        assert DotPath.has(data, "App.other") is False

    def test_set_creates_intermediate_dicts(self) -> None:
        data: dict = {}
        DotPath.set(data, "Mail.default.from", "no-reply@example.com")
        assert data == {"Mail": {"default": {"from": "no-reply@example.com"}}}

    def test_set_replaces_scalar_intermediate(self) -> None:
        data = {"App": "x"}
        DotPath.set(data, "App.name", "y")
        assert data == {"App": {"name": "y"}}

    def test_set_empty_path_raises(self) -> None:
        with pytest.raises(ValueError):
            DotPath.set({}, "", 1)
