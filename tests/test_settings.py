"""Tests for core.settings: defaults, YAML overlay and dotted lookup."""

from pathlib import Path

import pytest

from core.settings import get_default_settings, get_setting, load_settings, reload_settings


@pytest.fixture(autouse=True)
def _fresh_cache():
    reload_settings()
    yield
    reload_settings()


class TestLoadSettings:
    """settings.yaml merged over defaults."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_settings(tmp_path) == get_default_settings()

    def test_yaml_overlay_is_deep_merged(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text(
            "verification:\n  resend_cooldown_sec: 60\nlogging:\n  level: null\n",
            encoding="utf-8",
        )
        settings = load_settings(tmp_path)
        assert settings["verification"]["resend_cooldown_sec"] == 60
        assert settings["verification"]["otp_length"] == 6
        assert settings["logging"]["level"] == "INFO"

    def test_malformed_yaml_falls_back(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text("wizard: [unclosed\n", encoding="utf-8")
        assert load_settings(tmp_path) == get_default_settings()

    def test_result_is_cached_until_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("pricing:\n  max_branch_count: 10\n", encoding="utf-8")
        assert load_settings(tmp_path)["pricing"]["max_branch_count"] == 10
        path.write_text("pricing:\n  max_branch_count: 20\n", encoding="utf-8")
        assert load_settings(tmp_path)["pricing"]["max_branch_count"] == 10
        reload_settings()
        assert load_settings(tmp_path)["pricing"]["max_branch_count"] == 20

    def test_defaults_are_copies(self) -> None:
        settings = get_default_settings()
        settings["wizard"]["autosave_debounce_ms"] = 1
        assert get_default_settings()["wizard"]["autosave_debounce_ms"] == 1000


class TestGetSetting:
    def test_dotted_path(self) -> None:
        settings = get_default_settings()
        assert get_setting(settings, "verification.otp_state_ttl_sec") == 3600

    def test_missing_path_returns_default(self) -> None:
        settings = get_default_settings()
        assert get_setting(settings, "verification.nope", 5) == 5
        assert get_setting(settings, "wizard.autosave_debounce_ms.deeper", "x") == "x"
