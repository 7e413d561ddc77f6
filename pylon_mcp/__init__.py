"""Pylon customer-support API exposed as MCP tools."""

__version__ = "1.1.0"
