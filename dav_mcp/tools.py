# tools.py
# Tool catalog, argument contracts and the dispatcher that runs them

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Type

from mcp.types import CallToolResult, TextContent
from pydantic import AwareDatetime, BaseModel, Field, ValidationError

from .client import ClientHandle
from .providers import Protocol, ProviderConfig

log = logging.getLogger(__name__)

DEFAULT_DETAIL = "unknown error"

NOT_INITIALIZED = {
    Protocol.CALENDAR: "CalDAV client not initialized for this provider.",
    Protocol.CONTACT: "CardDAV client not initialized for this provider.",
    Protocol.FILE: "WebDAV client not initialized for this provider.",
}


def _one_line(text: str) -> str:
    return " ".join(text.split())


class ToolFailure(Exception):
    """A failed tool call: fixed summary plus the upstream message, if any."""

    def __init__(self, summary: str, detail: Optional[str] = None):
        super().__init__(summary)
        self.summary = summary
        self.detail = _one_line(detail) if detail else None

    def __str__(self) -> str:
        return f"{self.summary}: {self.detail or DEFAULT_DETAIL}"


class ContainerNotFound(ToolFailure):
    def __init__(self, kind: str, url: str):
        super().__init__(f"Error: {kind} with URL {url} not found.")
        self.kind = kind
        self.url = url

    def __str__(self) -> str:
        return self.summary


# Result envelopes

def success(payload: Any) -> CallToolResult:
    text = json.dumps(payload, indent=2, default=str)
    return CallToolResult(content=[TextContent(type="text", text=text)])


def failure(message: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=message)], isError=True)


# Argument contracts

class NoArguments(BaseModel):
    pass


class CalendarEventsArguments(BaseModel):
    calendarUrl: str = Field(
        description="The unique identifier (URL) of the calendar from which to fetch events. "
        "You can get this from 'get_my_calendars'."
    )
    timeRangeStart: Optional[AwareDatetime] = Field(
        default=None, description="ISO 8601 datetime with UTC offset for start of range"
    )
    timeRangeEnd: Optional[AwareDatetime] = Field(
        default=None, description="ISO 8601 datetime with UTC offset for end of range"
    )


class ContactsArguments(BaseModel):
    addressBookUrl: str = Field(
        description="The unique identifier (URL) of the contact list from which to fetch contacts. "
        "You can get this from 'get_my_contact_lists'."
    )


class ListFilesArguments(BaseModel):
    path: Optional[str] = Field(
        default=None,
        description="The specific folder path to list. For example, 'Documents/Work'. "
        "If empty, lists files and folders in the main (root) directory.",
    )


class FileDetailsArguments(BaseModel):
    fileUrl: str = Field(
        description="The unique identifier (URL) of the file or folder to get details for. "
        "You can get this from 'list_my_files_and_folders'."
    )


# Handlers. Each gets its own handle; the handle is already authenticated.

def _find(containers: Sequence[Mapping[str, Any]], url: str) -> Optional[Mapping[str, Any]]:
    # exact match only, no trailing-slash or case folding
    for container in containers:
        if container.get("url") == url:
            return container
    return None


def collection_url(base_url: str, path: Optional[str] = None) -> str:
    """Join a relative folder path onto the WebDAV base URL with exactly one '/'."""
    if not path or path == "/":
        return base_url
    base = base_url[:-1] if base_url.endswith("/") else base_url
    relative = path[1:] if path.startswith("/") else path
    return f"{base}/{relative}"


async def get_my_calendars(handle: ClientHandle, args: NoArguments):
    return await asyncio.to_thread(handle.list_calendars)


async def get_calendar_events(handle: ClientHandle, args: CalendarEventsArguments):
    calendars = await asyncio.to_thread(handle.list_calendars)
    calendar = _find(calendars, args.calendarUrl)
    if calendar is None:
        raise ContainerNotFound("Calendar", args.calendarUrl)

    # Only a complete range narrows the fetch; a lone bound is ignored.
    time_range = None
    if args.timeRangeStart and args.timeRangeEnd:
        time_range = (args.timeRangeStart, args.timeRangeEnd)

    return await asyncio.to_thread(handle.list_calendar_objects, calendar, time_range)


async def get_my_contact_lists(handle: ClientHandle, args: NoArguments):
    return await asyncio.to_thread(handle.list_address_books)


async def get_contacts_from_list(handle: ClientHandle, args: ContactsArguments):
    address_books = await asyncio.to_thread(handle.list_address_books)
    address_book = _find(address_books, args.addressBookUrl)
    if address_book is None:
        raise ContainerNotFound("Address book", args.addressBookUrl)
    return await asyncio.to_thread(handle.list_vcards, address_book)


async def list_my_files_and_folders(handle: ClientHandle, args: ListFilesArguments):
    url = collection_url(handle.base_url, args.path)
    return await asyncio.to_thread(handle.list_objects, url)


async def get_file_or_folder_details(handle: ClientHandle, args: FileDetailsArguments):
    return await asyncio.to_thread(handle.list_objects, args.fileUrl)


# Catalog

Handler = Callable[[ClientHandle, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    protocol: Protocol
    arguments: Type[BaseModel]
    handler: Handler
    error_summary: str


TOOLS: Sequence[ToolDescriptor] = (
    ToolDescriptor(
        name="get_my_calendars",
        description="List all calendars of the account, with their URLs and display names.",
        protocol=Protocol.CALENDAR,
        arguments=NoArguments,
        handler=get_my_calendars,
        error_summary="Error listing calendars",
    ),
    ToolDescriptor(
        name="get_calendar_events",
        description="List events of one calendar, optionally limited to a time range "
        "(both timeRangeStart and timeRangeEnd must be given for the range to apply).",
        protocol=Protocol.CALENDAR,
        arguments=CalendarEventsArguments,
        handler=get_calendar_events,
        error_summary="Error fetching calendar objects",
    ),
    ToolDescriptor(
        name="get_my_contact_lists",
        description="List all address books (contact lists) of the account.",
        protocol=Protocol.CONTACT,
        arguments=NoArguments,
        handler=get_my_contact_lists,
        error_summary="Error listing address books",
    ),
    ToolDescriptor(
        name="get_contacts_from_list",
        description="Fetch every contact (vCard) in one address book.",
        protocol=Protocol.CONTACT,
        arguments=ContactsArguments,
        handler=get_contacts_from_list,
        error_summary="Error fetching vCards",
    ),
    ToolDescriptor(
        name="list_my_files_and_folders",
        description="List files and folders in a WebDAV folder, the root folder by default.",
        protocol=Protocol.FILE,
        arguments=ListFilesArguments,
        handler=list_my_files_and_folders,
        error_summary="Error listing WebDAV collection",
    ),
    ToolDescriptor(
        name="get_file_or_folder_details",
        description="Get the WebDAV properties of a single file or folder by its URL.",
        protocol=Protocol.FILE,
        arguments=FileDetailsArguments,
        handler=get_file_or_folder_details,
        error_summary="Error getting WebDAV file metadata",
    ),
)


@dataclass(frozen=True)
class BoundTool:
    descriptor: ToolDescriptor
    handle: Optional[ClientHandle]
    provider: str

    async def run(self, args: BaseModel) -> CallToolResult:
        """
        authenticate, call the handler, wrap the result.
        Every outcome is an envelope; nothing is raised to the caller.
        """
        d = self.descriptor
        if self.handle is None:
            return failure(NOT_INITIALIZED[d.protocol])
        try:
            await asyncio.to_thread(self.handle.authenticate)
            payload = await d.handler(self.handle, args)
            return success(payload)
        except ContainerNotFound as exc:
            log.warning("[%s] %s: %s", self.provider, d.name, exc)
            return failure(str(exc))
        except Exception as exc:
            log.error("[%s] Error in %s: %s", self.provider, d.name, exc, exc_info=True)
            return failure(str(ToolFailure(d.error_summary, str(exc))))


class ToolRegistry:
    def __init__(self, provider: str, tools: Mapping[str, BoundTool]):
        self.provider = provider
        self._tools = dict(tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        return list(self._tools)

    def catalog(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": name,
                "description": tool.descriptor.description,
                "inputSchema": tool.descriptor.arguments.model_json_schema(),
            }
            for name, tool in self._tools.items()
        ]

    async def invoke(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> CallToolResult:
        tool = self._tools.get(name)
        if tool is None:
            return failure(f"Unknown tool: {name}")
        try:
            args = tool.descriptor.arguments.model_validate(dict(arguments or {}))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            )
            return failure(f"Invalid arguments for {name}: {problems}")
        return await tool.run(args)


def build_registry(
    config: ProviderConfig,
    handles: Mapping[Protocol, ClientHandle],
    tools: Sequence[ToolDescriptor] = TOOLS,
) -> ToolRegistry:
    """Register the tools whose protocol the provider supports, in catalog order."""
    available = config.protocols
    bound = {
        d.name: BoundTool(d, handles.get(d.protocol), config.identifier)
        for d in tools
        if d.protocol in available
    }
    return ToolRegistry(config.identifier, bound)
