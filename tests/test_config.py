"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from masdeporte.config import ApiConfig, AppConfig, BookingConfig, _validate_config


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_default_timeout_and_window(self):
        config = AppConfig()
        assert config.api.timeout_sec > 0
        assert config.booking.default_max_advance_days >= config.booking.default_min_advance_days

    def test_non_http_base_url(self):
        config = replace(AppConfig(), api=replace(ApiConfig(), base_url="ftp://example.com"))
        with pytest.raises(ValueError, match="API_BASE_URL"):
            _validate_config(config)

    def test_zero_timeout(self):
        config = replace(AppConfig(), api=replace(ApiConfig(), timeout_sec=0))
        with pytest.raises(ValueError, match="REQUEST_TIMEOUT"):
            _validate_config(config)

    def test_negative_min_advance(self):
        booking = replace(BookingConfig(), default_min_advance_days=-1)
        with pytest.raises(ValueError, match="DEFAULT_MIN_ADVANCE_DAYS"):
            _validate_config(replace(AppConfig(), booking=booking))

    def test_max_below_min_advance(self):
        booking = replace(BookingConfig(), default_min_advance_days=5, default_max_advance_days=2)
        with pytest.raises(ValueError, match="DEFAULT_MAX_ADVANCE_DAYS"):
            _validate_config(replace(AppConfig(), booking=booking))

    def test_invalid_installments(self):
        booking = replace(BookingConfig(), max_installments=0)
        with pytest.raises(ValueError, match="MAX_INSTALLMENTS"):
            _validate_config(replace(AppConfig(), booking=booking))

    def test_empty_deep_link_scheme(self):
        booking = replace(BookingConfig(), deep_link_scheme="")
        with pytest.raises(ValueError, match="DEEP_LINK_SCHEME"):
            _validate_config(replace(AppConfig(), booking=booking))

    def test_safe_int_parsing(self):
        from masdeporte.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_int_rejects_garbage(self, monkeypatch):
        from masdeporte.config import _safe_int

        monkeypatch.setenv("MASDEPORTE_TEST_INT", "ten")
        with pytest.raises(ValueError, match="MASDEPORTE_TEST_INT"):
            _safe_int("MASDEPORTE_TEST_INT", "0")

    def test_safe_float_parsing(self):
        from masdeporte.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)
