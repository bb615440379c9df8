import json
import logging
import re
from typing import Any

from langchain_mcp_adapters.client import MultiServerMCPClient

from roundtable.config import settings
from roundtable.workflow.citations import merge_citations
from roundtable.workflow.state import Citation

logger = logging.getLogger(__name__)

UNTITLED = "無標題"

# Module-level tools cache: fetched once per process and reused across requests.
_exa_tools_cache: list | None = None

_TITLE_LINE = re.compile(r"^\s*Title:\s*(.*)$", re.MULTILINE)
_URL_LINE = re.compile(r"^\s*URL:\s*(\S+)", re.MULTILINE)


async def _get_exa_tools() -> list:
    """Fetch Exa MCP tools and cache them for the lifetime of the process."""
    global _exa_tools_cache
    if _exa_tools_cache is not None:
        return _exa_tools_cache
    client = MultiServerMCPClient(
        {"exa": {"url": settings.exa_mcp_url, "transport": "streamable_http"}}
    )
    _exa_tools_cache = await client.get_tools()
    return _exa_tools_cache


def _flatten_tool_result(result: Any) -> str:
    """MCP tools return a string or a list of content blocks depending on adapter version."""
    if isinstance(result, str):
        return result
    if isinstance(result, list):
        parts = []
        for part in result:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
            elif isinstance(part, str):
                parts.append(part)
        return "\n".join(parts)
    return str(result)


def parse_search_results(raw: str) -> list[Citation]:
    """
    Extract (title, url) pairs from Exa output.

    Accepts the JSON payload ({"results": [{"title", "url"}, ...]}) as well as
    the plain-text layout with "Title:" / "URL:" lines. Duplicate URLs collapse
    to the first occurrence.
    """
    citations: list[Citation] = []
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        data = None

    if isinstance(data, dict) and isinstance(data.get("results"), list):
        for item in data["results"]:
            if isinstance(item, dict) and item.get("url"):
                citations.append(Citation(title=item.get("title") or UNTITLED, uri=item["url"]))
        return merge_citations([], citations)

    # Plain text: pair every URL line with the closest preceding Title line.
    titles = [(m.start(), m.group(1).strip()) for m in _TITLE_LINE.finditer(raw)]
    for url_match in _URL_LINE.finditer(raw):
        preceding = [t for pos, t in titles if pos < url_match.start()]
        title = preceding[-1] if preceding and preceding[-1] else UNTITLED
        citations.append(Citation(title=title, uri=url_match.group(1)))
    return merge_citations([], citations)


def format_sources(citations: list[Citation], raw: str) -> str:
    """Grounding block appended to the research prompt."""
    listing = "\n".join(f"{i}. {c.title} ({c.uri})" for i, c in enumerate(citations, start=1))
    return f"## 網路搜尋結果\n{listing}\n\n## 原始搜尋內容\n{raw}"


async def search_web(query: str, num_results: int | None = None) -> tuple[list[Citation], str]:
    """
    Call Exa web_search_exa via MCP HTTP.

    Returns the parsed citations and the raw result text (used as grounding context).
    """
    tools = await _get_exa_tools()
    web_search = next((t for t in tools if t.name == "web_search_exa"), None)
    if web_search is None:
        available = [t.name for t in tools]
        raise RuntimeError(f"web_search_exa not found in Exa MCP. Available: {available}")

    result = await web_search.ainvoke({
        "query": query,
        "numResults": num_results or settings.search_num_results,
    })
    raw = _flatten_tool_result(result)
    citations = parse_search_results(raw)
    logger.info("Web search %r returned %d sources", query, len(citations))
    return citations, raw
