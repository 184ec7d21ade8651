"""MCP server exposing macOS productivity apps through a hardened automation layer."""

__version__ = "0.3.0"
