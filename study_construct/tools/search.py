"""Document Search Tool - bounded keyword retrieval over the source document."""

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

SEARCH_TOOL_NAME = "search_document"
SEARCH_TOOL_DESCRIPTION = (
    "Search the document for a keyword or phrase to find relevant facts. "
    "Input: the keyword to search for."
)
NO_MATCHES = "No matches found."
MAX_MATCHES = 5


class SearchInput(BaseModel):
    """Arguments for the document search tool."""

    query: str = Field(..., description="The keyword to search for")


def search_document(document_text: str, query: str) -> str:
    """
    Case-insensitive substring search over the document's lines.

    Args:
        document_text: Full document text
        query: Keyword or phrase to look for

    Returns:
        Up to MAX_MATCHES matching lines joined by newlines, or NO_MATCHES
    """
    needle = query.lower()
    matches = [line for line in document_text.split("\n") if needle in line.lower()]
    if not matches:
        return NO_MATCHES
    return "\n".join(matches[:MAX_MATCHES])


def create_search_tool(document_text: str) -> StructuredTool:
    """Bind the search to one document and wrap it as a LangChain tool."""

    def _search(query: str) -> str:
        return search_document(document_text, query)

    return StructuredTool.from_function(
        func=_search,
        name=SEARCH_TOOL_NAME,
        description=SEARCH_TOOL_DESCRIPTION,
        args_schema=SearchInput,
    )
