import os

import pytest

from dav_mcp.settings import ConfigError, Credentials, load_env_file, load_settings

BASE_ENV = {
    "DAV_PROVIDER": "Fastmail",
    "DAV_USERNAME": "jane@fastmail.com",
    "DAV_PASSWORD": "s3cret",
}


def test_defaults():
    settings = load_settings(BASE_ENV)
    assert settings.provider == "fastmail"
    assert settings.credentials == Credentials("jane@fastmail.com", "s3cret")
    assert settings.transport == "stdio"
    assert settings.host == "127.0.0.1"
    assert settings.port == 8000
    assert settings.timeout is None


def test_optional_values():
    env = dict(BASE_ENV, MCP_TRANSPORT="HTTP", HOST="0.0.0.0", PORT="9001", DAV_TIMEOUT="12.5")
    settings = load_settings(env)
    assert settings.transport == "http"
    assert settings.host == "0.0.0.0"
    assert settings.port == 9001
    assert settings.timeout == 12.5


@pytest.mark.parametrize("missing", ["DAV_USERNAME", "DAV_PASSWORD"])
def test_missing_credentials(missing):
    env = dict(BASE_ENV)
    env[missing] = ""
    with pytest.raises(ConfigError, match="DAV_USERNAME and DAV_PASSWORD"):
        load_settings(env)


def test_missing_provider():
    env = dict(BASE_ENV)
    del env["DAV_PROVIDER"]
    with pytest.raises(ConfigError, match="DAV_PROVIDER"):
        load_settings(env)


def test_bad_port():
    with pytest.raises(ConfigError, match="PORT"):
        load_settings(dict(BASE_ENV, PORT="eighty"))


def test_bad_transport():
    with pytest.raises(ConfigError, match="MCP_TRANSPORT"):
        load_settings(dict(BASE_ENV, MCP_TRANSPORT="carrier-pigeon"))


def test_password_masked_in_repr():
    text = repr(Credentials("jane", "s3cret"))
    assert "s3cret" not in text
    assert "jane" in text


def test_env_file_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("DAV_PROVIDER=icloud\nDAV_TEST_ONLY=from-file\n")
    monkeypatch.setenv("DAV_PROVIDER", "fastmail")
    monkeypatch.delenv("DAV_TEST_ONLY", raising=False)
    load_env_file(env_file)
    assert os.environ["DAV_PROVIDER"] == "fastmail"
    assert os.environ["DAV_TEST_ONLY"] == "from-file"
    monkeypatch.delenv("DAV_TEST_ONLY")
