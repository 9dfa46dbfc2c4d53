"""Sift - MCP server and skill manager for LLM coding clients."""

__version__ = "0.1.0"
