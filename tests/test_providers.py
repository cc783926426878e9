import pytest

from dav_mcp.providers import Protocol, UnsupportedProvider, resolve
from dav_mcp.settings import ConfigError


def test_fastmail_urls_embed_account():
    config = resolve("fastmail", "jane@fastmail.com")
    assert config.calendar_url == "https://caldav.fastmail.com/dav/principals/user/jane@fastmail.com/"
    assert config.contact_url == "https://carddav.fastmail.com/dav/principals/user/jane@fastmail.com/"
    assert config.file_url == "https://webdav.fastmail.com/dav/principals/user/jane@fastmail.com/"
    assert config.supports_file_protocol
    assert config.protocols == frozenset(Protocol)


def test_icloud_has_no_webdav():
    config = resolve("icloud", "jane@icloud.com")
    assert config.calendar_url == "https://caldav.icloud.com"
    assert config.contact_url == "https://contacts.icloud.com"
    assert config.file_url is None
    assert not config.supports_file_protocol
    assert Protocol.FILE not in config.protocols


def test_icloud_urls_do_not_depend_on_account():
    assert resolve("icloud", "a@icloud.com").calendar_url == resolve("icloud", "b@icloud.com").calendar_url


@pytest.mark.parametrize("name", ["ICLOUD", "iCloud", " icloud "])
def test_resolve_is_case_insensitive(name):
    assert resolve(name, "acct") == resolve("icloud", "acct")


def test_fastmail_case_insensitive():
    assert resolve("FastMail", "acct") == resolve("fastmail", "acct")


@pytest.mark.parametrize("name", ["yahoo", "", "google"])
def test_unsupported_provider(name):
    with pytest.raises(UnsupportedProvider) as excinfo:
        resolve(name, "acct")
    assert isinstance(excinfo.value, ConfigError)
    assert "fastmail" in str(excinfo.value)


def test_file_url_invariant():
    for name in ("fastmail", "icloud"):
        config = resolve(name, "acct")
        assert config.supports_file_protocol == (config.file_url is not None)
        assert config.base_url(Protocol.FILE) == config.file_url
