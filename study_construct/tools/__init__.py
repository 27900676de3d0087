"""Tools the research agent may call."""

from .search import NO_MATCHES, SEARCH_TOOL_NAME, create_search_tool, search_document

__all__ = ["NO_MATCHES", "SEARCH_TOOL_NAME", "create_search_tool", "search_document"]
