import pytest

from dav_mcp.providers import Protocol, resolve
from dav_mcp.settings import Credentials


class FakeHandle:
    """In-memory stand-in for a ClientHandle; records every call."""

    def __init__(self, protocol, base_url="https://dav.example.com/root/", **data):
        self.protocol = protocol
        self.base_url = base_url
        self.provider = "fastmail"
        self.authenticated = False
        self.calls = []
        self.fail = {}
        self.calendars = data.get("calendars", [])
        self.events = data.get("events", [])
        self.address_books = data.get("address_books", [])
        self.vcards = data.get("vcards", [])
        self.objects = data.get("objects", [])

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise self.fail[name]

    def authenticate(self):
        self._record("authenticate")
        self.authenticated = True

    def list_calendars(self):
        self._record("list_calendars")
        return self.calendars

    def list_calendar_objects(self, calendar, time_range=None):
        self._record("list_calendar_objects", calendar, time_range)
        return self.events

    def list_address_books(self):
        self._record("list_address_books")
        return self.address_books

    def list_vcards(self, address_book):
        self._record("list_vcards", address_book)
        return self.vcards

    def list_objects(self, collection_url):
        self._record("list_objects", collection_url)
        return self.objects

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def credentials():
    return Credentials(username="jane@fastmail.com", password="s3cret")


@pytest.fixture
def fastmail():
    return resolve("fastmail", "jane@fastmail.com")


@pytest.fixture
def icloud():
    return resolve("icloud", "jane@icloud.com")


@pytest.fixture
def fake_handles():
    return {p: FakeHandle(p) for p in Protocol}
