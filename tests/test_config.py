import pytest

from mailtext.config import Settings
from mailtext.services.options import DEFAULT_OPTIONS


def test_service_conversion_defaults_match_converter_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CONVERT_WORDWRAP", raising=False)

    options = Settings(_env_file=None).conversion_options()

    assert options.wordwrap == DEFAULT_OPTIONS.wordwrap == 80
    assert options == DEFAULT_OPTIONS


def test_conversion_settings_come_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONVERT_WORDWRAP", "60")
    monkeypatch.setenv("CONVERT_HEADING_STYLE", "hashify")
    monkeypatch.setenv("CONVERT_TABLES", "false")

    options = Settings(_env_file=None).conversion_options()

    assert options.wordwrap == 60
    assert options.heading_style == "hashify"
    assert options.tables is False
