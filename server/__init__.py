"""Transports: MCP stdio server and HTTP API."""
