import pytest

from leadcollector.core import config


def setup_function(function):
    config.get_settings.cache_clear()


def teardown_function(function):
    config.get_settings.cache_clear()


def test_get_settings_reads_env(monkeypatch):
    monkeypatch.setenv("WORKER_PORT", "9100")
    monkeypatch.setenv("BATCH_AMPLIFICATION", "8")
    monkeypatch.setenv("MAX_IDLE_SCROLLS", "3")
    monkeypatch.setenv("DOMESTIC_COUNTRY", " New Zealand ")
    monkeypatch.setenv("BROWSER_HEADLESS", "false")
    monkeypatch.setenv("COLLECT_CALLBACK_URL", "https://api.example.test")

    settings = config.get_settings()

    assert settings.worker_port == 9100
    assert settings.batch_amplification == 8
    assert settings.max_idle_scrolls == 3
    assert settings.domestic_country == "new zealand"
    assert settings.browser_headless is False
    assert settings.collect_callback_url == "https://api.example.test"


def test_get_settings_defaults_and_warns_when_callback_missing(monkeypatch, caplog):
    for name in ("WORKER_PORT", "BATCH_FLOOR", "MAX_COLLECTION_ATTEMPTS", "COLLECT_CALLBACK_URL", "DOMESTIC_COUNTRY"):
        monkeypatch.delenv(name, raising=False)

    with caplog.at_level("WARNING"):
        settings = config.get_settings()

    assert "COLLECT_CALLBACK_URL is not configured" in " ".join(caplog.messages)
    assert settings.worker_port == 8080
    assert settings.batch_floor == 20
    assert settings.max_collection_attempts == 5
    assert settings.domestic_country == "australia"


@pytest.mark.parametrize("value", ["abc", "0", "-4"])
def test_get_settings_rejects_bad_integers(monkeypatch, value):
    monkeypatch.setenv("MAX_SCROLL_ATTEMPTS", value)

    with pytest.raises(config.ConfigError):
        config.get_settings()
