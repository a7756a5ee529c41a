"""MCP stdio server exposing the mirror engine as tools."""
