"""Unit tests for configuration defaults and validation."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from ghsnippets.config import _DEFAULT_CONFIG_DIR, CacheSettings, Settings


class TestDefaults:
    def test_config_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_config_dir("ghsnippets") == _DEFAULT_CONFIG_DIR

    def test_cache_defaults(self) -> None:
        settings = CacheSettings()
        assert settings.ttl_seconds == 3600
        assert settings.db_path == ":memory:"

    def test_sweep_interval_defaults_to_tenth_of_ttl(self) -> None:
        assert CacheSettings(ttl_seconds=600).effective_sweep_interval == 60

    def test_sweep_interval_never_below_one_second(self) -> None:
        assert CacheSettings(ttl_seconds=5).effective_sweep_interval == 1

    def test_explicit_sweep_interval_wins(self) -> None:
        settings = CacheSettings(ttl_seconds=600, sweep_interval_seconds=7)
        assert settings.effective_sweep_interval == 7

    def test_fetcher_has_explicit_timeout(self) -> None:
        assert Settings().fetcher.timeout_seconds == 5.0


class TestEnvironmentOverrides:
    def test_nested_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GHSNIPPETS__CACHE__TTL_SECONDS", "120")
        monkeypatch.setenv("GHSNIPPETS__RENDER__DEFAULT_THEME", "monokai")
        settings = Settings()
        assert settings.cache.ttl_seconds == 120
        assert settings.render.default_theme == "monokai"

    def test_constructor_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GHSNIPPETS__SERVER__PORT", "9000")
        assert Settings(server={"port": 9100}).server.port == 9100


class TestConfigValidation:
    def test_wrong_type_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(server={"port": "not-a-number"})  # type: ignore[arg-type]

    def test_unknown_top_level_field_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(completely_unknown_field="oops")  # type: ignore[call-arg]

    def test_unknown_nested_field_raises_validation_error(self) -> None:
        """A typo like 'ttl_secnds' fails instead of silently using the default."""
        with pytest.raises(ValidationError):
            CacheSettings(ttl_secnds=60)  # type: ignore[call-arg]

    def test_negative_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheSettings(ttl_seconds=-1)
