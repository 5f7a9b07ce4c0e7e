"""Command-line and MCP client for the Help Scout Mailbox API."""

__version__ = "1.0.0"
