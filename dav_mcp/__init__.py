"""MCP tools for CalDAV / CardDAV / WebDAV accounts (Fastmail, iCloud)."""

__version__ = "0.1.0"
