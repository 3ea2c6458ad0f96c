"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from salon_booking.config import (
    AppConfig,
    LifecycleConfig,
    SalonConfig,
    _safe_bool,
    _safe_int,
    _validate_config,
)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.lifecycle.slot_conflict_fail_closed is True
        assert config.lifecycle.auto_cancel_without_alternative is True
        assert config.salon.booking_code_prefix == "BK"

    def test_duration_limit_too_high(self):
        config = replace(AppConfig(), lifecycle=LifecycleConfig(max_booking_duration_minutes=1441))
        with pytest.raises(ValueError, match="MAX_BOOKING_DURATION_MINUTES"):
            _validate_config(config)

    def test_duration_limit_zero(self):
        config = replace(AppConfig(), lifecycle=LifecycleConfig(max_booking_duration_minutes=0))
        with pytest.raises(ValueError, match="MAX_BOOKING_DURATION_MINUTES"):
            _validate_config(config)

    def test_bad_code_prefix(self):
        config = replace(AppConfig(), salon=SalonConfig(booking_code_prefix="B-K"))
        with pytest.raises(ValueError, match="BOOKING_CODE_PREFIX"):
            _validate_config(config)

    def test_unknown_log_level(self):
        config = replace(AppConfig(), log_level="CHATTY")
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            _validate_config(config)

    def test_lowercase_log_level_accepted(self):
        _validate_config(replace(AppConfig(), log_level="debug"))


class TestEnvParsing:
    def test_safe_int_parsing(self):
        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("SALON_TEST_INT", "lots")
        with pytest.raises(ValueError, match="SALON_TEST_INT"):
            _safe_int("SALON_TEST_INT", "1")

    @pytest.mark.parametrize("raw, expected", [
        ("true", True), ("YES", True), ("1", True), ("on", True),
        ("false", False), ("No", False), ("0", False), ("off", False),
    ])
    def test_safe_bool_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("SALON_TEST_FLAG", raw)
        assert _safe_bool("SALON_TEST_FLAG", "false") is expected

    def test_safe_bool_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("SALON_TEST_FLAG", "maybe")
        with pytest.raises(ValueError, match="SALON_TEST_FLAG"):
            _safe_bool("SALON_TEST_FLAG", "false")
