from __future__ import annotations

from citeflow.infrastructure.settings import Settings


def test_defaults(monkeypatch):
    for name in (
        "CITEFLOW_MAILTO",
        "CITEFLOW_SEMANTIC_SCHOLAR_API_KEY",
        "CITEFLOW_HTTP_TIMEOUT",
        "CITEFLOW_MAX_RETRIES",
        "CITEFLOW_LOOKUP_BATCH_SIZE",
        "CITEFLOW_AUTO_LINK",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.mailto is None
    assert settings.semantic_scholar_api_key is None
    assert settings.http_timeout == 30.0
    assert settings.max_retries == 3
    assert settings.lookup_batch_size == 50
    assert settings.auto_link is True


def test_from_env(monkeypatch):
    monkeypatch.setenv("CITEFLOW_MAILTO", " me@example.org ")
    monkeypatch.setenv("CITEFLOW_SEMANTIC_SCHOLAR_API_KEY", "secret")
    monkeypatch.setenv("CITEFLOW_HTTP_TIMEOUT", "12.5")
    monkeypatch.setenv("CITEFLOW_MAX_RETRIES", "1")
    monkeypatch.setenv("CITEFLOW_LOOKUP_BATCH_SIZE", "20")
    monkeypatch.setenv("CITEFLOW_AUTO_LINK", "off")

    settings = Settings.from_env()

    assert settings.mailto == "me@example.org"
    assert settings.semantic_scholar_api_key == "secret"
    assert settings.http_timeout == 12.5
    assert settings.max_retries == 1
    assert settings.lookup_batch_size == 20
    assert settings.auto_link is False


def test_blank_values_fall_back(monkeypatch):
    monkeypatch.setenv("CITEFLOW_MAILTO", "   ")
    monkeypatch.setenv("CITEFLOW_MAX_RETRIES", "")

    settings = Settings.from_env()

    assert settings.mailto is None
    assert settings.max_retries == 3
