"""Settings 테스트"""

import pytest

from authlink.config import (
    ClientCredentials,
    FlowSettings,
    is_truthy,
    load_client_credentials,
)
from authlink.exceptions import ConfigurationError

ENV_KEYS = [
    "AUTHLINK_MIN_POLL_INTERVAL",
    "AUTHLINK_SLOW_DOWN_STEP",
    "AUTHLINK_CALLBACK_WINDOW",
    "AUTHLINK_REQUEST_TIMEOUT",
    "AUTHLINK_HOST",
    "AUTHLINK_PORT",
    "AUTHLINK_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestFlowSettings:
    """FlowSettings 테스트"""

    def test_defaults(self):
        settings = FlowSettings.from_env()

        assert settings == FlowSettings()
        assert settings.min_poll_interval == 5.0
        assert settings.slow_down_step == 5.0
        assert settings.callback_window == 600.0
        assert settings.port == 8765
        assert settings.debug is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("AUTHLINK_MIN_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("AUTHLINK_CALLBACK_WINDOW", "120")
        monkeypatch.setenv("AUTHLINK_PORT", "9000")
        monkeypatch.setenv("AUTHLINK_DEBUG", "yes")

        settings = FlowSettings.from_env()

        assert settings.min_poll_interval == 2.5
        assert settings.callback_window == 120.0
        assert settings.port == 9000
        assert settings.debug is True

    @pytest.mark.parametrize("value", ["abc", "0", "-1"])
    def test_invalid_float(self, monkeypatch, value):
        monkeypatch.setenv("AUTHLINK_REQUEST_TIMEOUT", value)
        with pytest.raises(ConfigurationError):
            FlowSettings.from_env()

    def test_invalid_port(self, monkeypatch):
        monkeypatch.setenv("AUTHLINK_PORT", "http")
        with pytest.raises(ConfigurationError):
            FlowSettings.from_env()

    def test_redirect_uri(self):
        settings = FlowSettings(port=9999)
        assert settings.redirect_uri("linear") == "http://localhost:9999/api/linear/oauth/callback"


class TestClientCredentials:
    def test_load(self, monkeypatch):
        monkeypatch.setenv("SLACK_CLIENT_ID", " 123.456 ")
        monkeypatch.setenv("SLACK_CLIENT_SECRET", "shh")

        assert load_client_credentials("slack") == ClientCredentials("123.456", "shh")

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("GITHUB_CLIENT_ID", raising=False)
        monkeypatch.delenv("GITHUB_CLIENT_SECRET", raising=False)

        assert load_client_credentials("github") == ClientCredentials("", None)


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("TRUE", True), (" on ", True), ("0", False), ("", False), (None, False)],
)
def test_is_truthy(value, expected):
    assert is_truthy(value) is expected
