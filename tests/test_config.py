import json
import logging

import pytest
from pydantic import ValidationError

from relay import JSONFormatter, setup_logging
from relay.config import RelaySettings, load_settings


def test_load_settings_from_environment(monkeypatch):
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
    monkeypatch.setenv("AZURE_OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o-realtime-preview")
    monkeypatch.setenv("SOURCE_SAMPLE_RATE", "8000")
    monkeypatch.setenv("FORWARD_WORKERS", "2")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_JSON", "true")

    settings = load_settings()

    assert settings.azure_openai_endpoint == "https://example.openai.azure.com"
    assert settings.source_sample_rate == 8000
    assert settings.target_sample_rate == 24000
    assert settings.forward_workers == 2
    assert settings.log_level == "DEBUG"
    assert settings.log_json is True
    assert settings.missing_azure_settings() == []


def test_missing_azure_settings_listed():
    settings = RelaySettings(azure_openai_endpoint="https://example.openai.azure.com")

    assert settings.missing_azure_settings() == ["AZURE_OPENAI_API_KEY", "AZURE_OPENAI_DEPLOYMENT"]


@pytest.mark.parametrize("field", ["source_sample_rate", "target_sample_rate", "forward_workers", "forward_queue_size"])
def test_non_positive_values_rejected(field):
    with pytest.raises(ValidationError):
        RelaySettings(**{field: 0})


def test_json_formatter_emits_one_object():
    record = logging.LogRecord("relay.session", logging.ERROR, __file__, 1, "Session %s failed", ("sess_1",), None)

    entry = json.loads(JSONFormatter().format(record))

    assert entry["level"] == "ERROR"
    assert entry["logger"] == "relay.session"
    assert entry["msg"] == "Session sess_1 failed"


def test_setup_logging_replaces_its_own_handlers(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    settings = RelaySettings(log_file=str(tmp_path / "relay.log"))
    try:
        setup_logging(settings)
        setup_logging(settings)
        setup_logging(RelaySettings(log_json=True))

        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert isinstance(added[0].formatter, JSONFormatter)
        assert all(h in root.handlers for h in before)
    finally:
        for handler in [h for h in root.handlers if h not in before]:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(level)
