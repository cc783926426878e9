# client.py
# Per-protocol DAV client handles on top of python-caldav

from __future__ import annotations

import logging
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, urljoin

from caldav.davclient import DAVClient
from caldav.elements import dav
from caldav.elements.base import BaseElement, ValuedBaseElement
from caldav.lib import error as dav_error

from .providers import Protocol, ProviderConfig
from .settings import Credentials

log = logging.getLogger(__name__)

Record = Dict[str, Any]
TimeRange = Tuple[Any, Any]


def _ns(namespace: str, tag: str) -> str:
    return "{%s}%s" % (namespace, tag)


CARDDAV_NS = "urn:ietf:params:xml:ns:carddav"
CS_NS = "http://calendarserver.org/ns/"


# Elements caldav does not ship (CardDAV, plain WebDAV getters, CalendarServer ctag)

class AddressbookHomeSet(BaseElement):
    tag: ClassVar[str] = _ns(CARDDAV_NS, "addressbook-home-set")


class AddressbookQuery(BaseElement):
    tag: ClassVar[str] = _ns(CARDDAV_NS, "addressbook-query")


class Addressbook(BaseElement):
    tag: ClassVar[str] = _ns(CARDDAV_NS, "addressbook")


class AddressData(ValuedBaseElement):
    tag: ClassVar[str] = _ns(CARDDAV_NS, "address-data")


class GetCTag(ValuedBaseElement):
    tag: ClassVar[str] = _ns(CS_NS, "getctag")


class GetContentType(ValuedBaseElement):
    tag: ClassVar[str] = _ns("DAV:", "getcontenttype")


class GetContentLength(ValuedBaseElement):
    tag: ClassVar[str] = _ns("DAV:", "getcontentlength")


class GetLastModified(ValuedBaseElement):
    tag: ClassVar[str] = _ns("DAV:", "getlastmodified")


def propfind_body(*props: BaseElement) -> str:
    return str(dav.Propfind() + [dav.Prop() + list(props)])


ADDRESS_BOOK_PROPS = (dav.DisplayName(), GetCTag(), dav.SyncToken())
VCARD_PROPS = (dav.GetEtag(), AddressData())
OBJECT_PROPS = (
    dav.DisplayName(),
    GetContentType(),
    GetContentLength(),
    GetLastModified(),
    dav.GetEtag(),
)
RESOURCE_TYPE = (dav.ResourceType(),)

ADDRESSBOOK_QUERY = str(AddressbookQuery() + [dav.Prop() + list(VCARD_PROPS)])


def objects(response, url: str, props=(), multi_value_props=()) -> Dict[str, Dict[str, Any]]:
    """
    {absolute_url: {proptag: value}} from a multistatus response, with the
    requested props expanded to text by caldav (404 propstats dropped).
    """
    if response.tree is None:
        return {}
    found = response.expand_simple_props(
        props=list(props), multi_value_props=list(multi_value_props)
    )
    # caldav hands back unquoted paths
    return {urljoin(url, quote(href, safe="/:@!$&'()*+,;=~")): values
            for href, values in found.items()}


class ClientHandle:
    """
    One long-lived DAV connection bound to a base URL and basic credentials.
    Nothing touches the network until authenticate() is called.
    """

    protocol: Protocol
    _principal = None

    def __init__(
        self,
        base_url: str,
        credentials: Credentials,
        provider: str = "",
        timeout: Optional[float] = None,
        client: Optional[DAVClient] = None,
    ):
        self.base_url = base_url
        self.credentials = credentials
        self.provider = provider
        self.authenticated = False
        if client is None:
            client = DAVClient(
                url=base_url,
                username=credentials.username,
                password=credentials.password,
                auth_type="basic",
                timeout=timeout,
            )
        self.client = client

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_url!r})"

    def authenticate(self) -> None:
        """Idempotent; safe to repeat before every call."""
        self._authenticate()
        self.authenticated = True

    def _authenticate(self) -> None:
        raise NotImplementedError

    def _propfind(self, url: str, body: str, depth: int = 0):
        response = self.client.propfind(url, body, depth)
        if response.status >= 400:
            raise dav_error.PropfindError(url, f"{response.status} {response.reason}")
        return response

    def _report(self, url: str, body: str, depth: int = 1):
        response = self.client.report(url, body, depth)
        if response.status >= 400:
            raise dav_error.ReportError(url, f"{response.status} {response.reason}")
        return response

    def _href_prop(self, url: str, prop: BaseElement) -> Optional[str]:
        """Absolute URL held in an href-valued property of `url`, if any."""
        response = self._propfind(url, propfind_body(prop))
        for href, values in objects(response, url, props=[prop]).items():
            if values.get(prop.tag):
                return urljoin(href, values[prop.tag])
        return None

    def _current_user_principal(self) -> str:
        principal = self._href_prop(self.base_url, dav.CurrentUserPrincipal())
        if principal is None:
            log.warning("current-user-principal not found at %s", self.base_url)
            return self.base_url
        return principal


class CalendarHandle(ClientHandle):
    protocol = Protocol.CALENDAR

    def _authenticate(self) -> None:
        # raises AuthorizationError on bad credentials
        self._principal = self.client.principal()

    def list_calendars(self) -> List[Record]:
        if self._principal is None:
            self.authenticate()
        out: List[Record] = []
        for cal in self._principal.calendars():
            out.append({
                "url": str(cal.url),
                "displayName": getattr(cal, "name", None),
                "id": getattr(cal, "id", None),
            })
        return out

    def list_calendar_objects(
        self, calendar: Mapping[str, Any], time_range: Optional[TimeRange] = None
    ) -> List[Record]:
        cal = self.client.calendar(url=calendar["url"])
        if time_range is None:
            events = cal.events()
        else:
            start, end = time_range
            events = cal.search(event=True, start=start, end=end, expand=False)
        out: List[Record] = []
        for ev in events:
            out.append({
                "url": str(ev.url),
                "data": ev.data,
            })
        return out


class ContactHandle(ClientHandle):
    protocol = Protocol.CONTACT

    def _authenticate(self) -> None:
        self._principal = self._current_user_principal()

    def _home_set(self) -> str:
        if self._principal is None:
            self.authenticate()
        return self._href_prop(self._principal, AddressbookHomeSet()) or self._principal

    def list_address_books(self) -> List[Record]:
        home = self._home_set()
        body = propfind_body(*(RESOURCE_TYPE + ADDRESS_BOOK_PROPS))
        response = self._propfind(home, body, depth=1)
        out: List[Record] = []
        found = objects(response, home, props=ADDRESS_BOOK_PROPS, multi_value_props=RESOURCE_TYPE)
        for href, values in found.items():
            types = values.get(dav.ResourceType.tag) or []
            if Addressbook.tag not in types:
                continue
            out.append({
                "url": href,
                "displayName": values.get(dav.DisplayName.tag),
                "ctag": values.get(GetCTag.tag),
                "syncToken": values.get(dav.SyncToken.tag),
                "resourcetype": types,
            })
        return out

    def list_vcards(self, address_book: Mapping[str, Any]) -> List[Record]:
        url = address_book["url"]
        response = self._report(url, ADDRESSBOOK_QUERY, depth=1)
        out: List[Record] = []
        for href, values in objects(response, url, props=VCARD_PROPS).items():
            data = values.get(AddressData.tag)
            if data is None:
                continue
            out.append({
                "url": href,
                "etag": values.get(dav.GetEtag.tag),
                "data": data,
            })
        return out


class FileHandle(ClientHandle):
    protocol = Protocol.FILE

    def _authenticate(self) -> None:
        self._propfind(self.base_url, propfind_body(*RESOURCE_TYPE))

    def list_objects(self, collection_url: str) -> List[Record]:
        body = propfind_body(*(RESOURCE_TYPE + OBJECT_PROPS))
        response = self._propfind(collection_url, body, depth=1)
        out: List[Record] = []
        found = objects(response, collection_url, props=OBJECT_PROPS, multi_value_props=RESOURCE_TYPE)
        for href, values in found.items():
            length = values.get(GetContentLength.tag)
            out.append({
                "url": href,
                "displayName": values.get(dav.DisplayName.tag),
                "isCollection": dav.Collection.tag in (values.get(dav.ResourceType.tag) or []),
                "contentType": values.get(GetContentType.tag),
                "contentLength": int(length) if length and length.strip().isdigit() else None,
                "lastModified": values.get(GetLastModified.tag),
                "etag": values.get(dav.GetEtag.tag),
            })
        return out


HANDLE_TYPES = {
    Protocol.CALENDAR: CalendarHandle,
    Protocol.CONTACT: ContactHandle,
    Protocol.FILE: FileHandle,
}


def make_handles(
    config: ProviderConfig,
    credentials: Credentials,
    timeout: Optional[float] = None,
) -> Dict[Protocol, ClientHandle]:
    """One handle per protocol the provider has a base URL for."""
    handles: Dict[Protocol, ClientHandle] = {}
    for protocol in sorted(config.protocols, key=list(Protocol).index):
        handles[protocol] = HANDLE_TYPES[protocol](
            config.base_url(protocol),
            credentials,
            provider=config.identifier,
            timeout=timeout,
        )
    return handles
