# providers.py
# DAV provider table: base URLs and supported protocol families

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import FrozenSet, Optional

from .settings import ConfigError


class Protocol(str, enum.Enum):
    CALENDAR = "caldav"
    CONTACT = "carddav"
    FILE = "webdav"


class UnsupportedProvider(ConfigError):
    def __init__(self, identifier: str):
        super().__init__(
            f'Unsupported DAV_PROVIDER "{identifier}". Use "fastmail" or "icloud".'
        )
        self.identifier = identifier


@dataclass(frozen=True)
class ProviderConfig:
    identifier: str
    calendar_url: Optional[str] = None
    contact_url: Optional[str] = None
    file_url: Optional[str] = None

    @property
    def supports_file_protocol(self) -> bool:
        return self.file_url is not None

    def base_url(self, protocol: Protocol) -> Optional[str]:
        return {
            Protocol.CALENDAR: self.calendar_url,
            Protocol.CONTACT: self.contact_url,
            Protocol.FILE: self.file_url,
        }[protocol]

    @property
    def protocols(self) -> FrozenSet[Protocol]:
        """Protocol families with a base URL for this provider."""
        return frozenset(p for p in Protocol if self.base_url(p) is not None)


FASTMAIL_TEMPLATE = "https://{service}.fastmail.com/dav/principals/user/{account}/"

# iCloud does its own principal discovery from the bare domains.
# iCloud Drive has no plain WebDAV endpoint.
ICLOUD_CALDAV_URL = "https://caldav.icloud.com"
ICLOUD_CARDDAV_URL = "https://contacts.icloud.com"


def _fastmail(account: str) -> ProviderConfig:
    return ProviderConfig(
        identifier="fastmail",
        calendar_url=FASTMAIL_TEMPLATE.format(service="caldav", account=account),
        contact_url=FASTMAIL_TEMPLATE.format(service="carddav", account=account),
        file_url=FASTMAIL_TEMPLATE.format(service="webdav", account=account),
    )


def _icloud(account: str) -> ProviderConfig:
    return ProviderConfig(
        identifier="icloud",
        calendar_url=ICLOUD_CALDAV_URL,
        contact_url=ICLOUD_CARDDAV_URL,
    )


PROVIDERS = {
    "fastmail": _fastmail,
    "icloud": _icloud,
}


def resolve(identifier: str, account: str) -> ProviderConfig:
    """
    Map a provider name (case-insensitive) to its ProviderConfig.
    Raises UnsupportedProvider for anything outside PROVIDERS.
    """
    key = (identifier or "").strip().lower()
    try:
        factory = PROVIDERS[key]
    except KeyError:
        raise UnsupportedProvider(identifier) from None
    return factory(account)
