from decimal import Decimal

import pytest

from recon.config import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_DAYS,
    DEFAULT_THRESHOLD,
    ParameterError,
    check_params,
    load_settings,
    parse_days,
    parse_threshold,
)


class TestParseDays:
    def test_int_and_str(self):
        assert parse_days(7) == 7
        assert parse_days(" 60 ") == 60
        assert parse_days(0) == 0

    @pytest.mark.parametrize("raw", [-1, "-3", "seven", "7.5", "", True])
    def test_rejects(self, raw):
        with pytest.raises(ParameterError):
            parse_days(raw)


class TestParseThreshold:
    def test_values(self):
        assert parse_threshold("1000.00") == Decimal("1000.00")
        assert parse_threshold(0) == Decimal("0")
        assert parse_threshold(12.5) == Decimal("12.5")

    @pytest.mark.parametrize("raw", ["-0.01", "abc", "NaN", "Infinity", "", False])
    def test_rejects(self, raw):
        with pytest.raises(ParameterError):
            parse_threshold(raw)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            check_params(1, "bad")


class TestLoadSettings:
    def test_defaults(self, tmp_path):
        settings = load_settings(root=tmp_path, environ={})
        assert settings.days == DEFAULT_DAYS
        assert settings.threshold == DEFAULT_THRESHOLD
        assert settings.date_format == DEFAULT_DATE_FORMAT

    def test_pyproject_tool_table(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "x"\n\n'
            '[tool.recon]\ndays = 60\nthreshold = "250.50"\n'
            'date_format = "%Y-%m-%d"\n'
        )
        settings = load_settings(root=tmp_path, environ={})
        assert settings.days == 60
        assert settings.threshold == Decimal("250.50")
        assert settings.date_format == "%Y-%m-%d"

    def test_environment_overrides_pyproject(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[tool.recon]\ndays = 60\n")
        settings = load_settings(
            root=tmp_path, environ={"RECON_DAYS": "3", "RECON_THRESHOLD": "5"}
        )
        assert settings.days == 3
        assert settings.threshold == Decimal("5")

    def test_invalid_toml(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[tool.recon\n")
        with pytest.raises(ParameterError, match="Invalid TOML"):
            load_settings(root=tmp_path, environ={})

    def test_invalid_configured_value(self, tmp_path):
        with pytest.raises(ParameterError):
            load_settings(root=tmp_path, environ={"RECON_DAYS": "-7"})
