"""Web search capabilities and the tool interface exposed to agent loops."""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import requests
import trafilatura
from ddgs import DDGS
from pydantic import BaseModel

from .config import ResearchConfig
from .errors import UpstreamModelError
from .llm import StructuredModelClient
from .logging import get_logger, log_duration, preview
from .prompts import WEB_SEARCH_PROMPT
from .schemas import SearchResultList
from .state import SearchResult

logger = get_logger("tools")

# DuckDuckGo backend configuration
WEB_SEARCH_TIMEOUT = 10  # seconds per URL fetch
WEB_SEARCH_MAX_CONTENT_LENGTH = 8000  # characters per article
WEB_SEARCH_FETCH_TOP_N = 3  # fetch full content for top N results
WEB_SEARCH_MAX_RETRIES = 3  # max retry attempts for DuckDuckGo
WEB_SEARCH_RETRY_DELAY = 2  # seconds between retries


class WebSearchCapability(Protocol):
    async def search(self, query: str) -> list[SearchResult]: ...


class ModelWebSearch:
    """Search by asking the model for a bounded list of results.

    Urls come from the model and are not verified.
    """

    def __init__(self, client: StructuredModelClient, max_results: int = 3):
        self.client = client
        self.max_results = max_results

    async def search(self, query: str) -> list[SearchResult]:
        logger.debug("web_search", status="started", query_preview=preview(query))
        prompt = WEB_SEARCH_PROMPT.format(query=query, max_results=self.max_results)
        response = await self.client.generate_object(SearchResultList, prompt)
        results = response.results[: self.max_results]
        logger.debug("web_search", status="completed", result_count=len(results))
        return results


def fetch_url_content(url: str, timeout: int = WEB_SEARCH_TIMEOUT) -> tuple[str, bool]:
    """Fetch and extract main content from a URL.

    Args:
        url: The URL to fetch.
        timeout: Request timeout in seconds.

    Returns:
        Tuple of (content_text, success_bool).
    """
    try:
        response = requests.get(
            url,
            timeout=timeout,
            headers={"User-Agent": "Mozilla/5.0 (compatible; ResearchBot/1.0)"},
            allow_redirects=True,
        )
        response.raise_for_status()
    except requests.Timeout:
        logger.warning("fetch_url_timeout", url=url, timeout=timeout)
        return "", False
    except requests.RequestException as e:
        logger.warning(
            "fetch_url_error", url=url, error=str(e), error_type=type(e).__name__
        )
        return "", False

    content = trafilatura.extract(
        response.content,
        include_comments=False,
        include_tables=True,
        no_fallback=False,
    )
    if not content:
        logger.warning("fetch_url_no_content", url=url)
        return "", False

    if len(content) > WEB_SEARCH_MAX_CONTENT_LENGTH:
        content = content[:WEB_SEARCH_MAX_CONTENT_LENGTH] + "...[truncated]"
    logger.debug("fetch_url_success", url=url, content_length=len(content))
    return content, True


class DuckDuckGoWebSearch:
    """Search DuckDuckGo and pull page text for the top hits.

    The blocking client runs in a worker thread so branches keep interleaving.
    """

    def __init__(self, max_results: int = 3, fetch_top_n: int = WEB_SEARCH_FETCH_TOP_N):
        self.max_results = max_results
        self.fetch_top_n = fetch_top_n

    async def search(self, query: str) -> list[SearchResult]:
        return await asyncio.to_thread(self._search, query)

    def _search(self, query: str) -> list[SearchResult]:
        hits: list[dict] = []
        for attempt in range(WEB_SEARCH_MAX_RETRIES):
            with log_duration(logger, "web_search_call", backend="duckduckgo") as ctx:
                try:
                    hits = list(DDGS().text(query, max_results=self.max_results))
                except Exception as e:
                    raise UpstreamModelError(
                        f"Web search failed: {e}", operation="web_search"
                    ) from e
                ctx["result_count"] = len(hits)
                ctx["attempt"] = attempt + 1
            if hits:
                break
            if attempt < WEB_SEARCH_MAX_RETRIES - 1:
                # Empty pages are how DuckDuckGo signals rate limiting
                logger.warning(
                    "web_search_rate_limited",
                    query=query,
                    attempt=attempt + 1,
                    retry_after=WEB_SEARCH_RETRY_DELAY,
                )
                time.sleep(WEB_SEARCH_RETRY_DELAY)

        if not hits:
            logger.warning("web_search_no_results", query=query)
            return []

        results = []
        for i, hit in enumerate(hits[: self.max_results]):
            url = hit.get("href", "")
            if not url:
                continue
            content = hit.get("body", "")
            if i < self.fetch_top_n:
                page_text, ok = fetch_url_content(url)
                if ok:
                    content = page_text
            results.append(
                SearchResult(
                    title=hit.get("title", "Unknown"),
                    content=content,
                    url=url,
                    published_date=hit.get("date"),
                )
            )
        return results


def create_web_search(
    config: ResearchConfig, client: StructuredModelClient
) -> WebSearchCapability:
    """Build the search backend selected by ``config.search_backend``."""
    if config.search_backend == "duckduckgo":
        return DuckDuckGoWebSearch(max_results=config.max_search_results)
    return ModelWebSearch(client, max_results=config.max_search_results)


@dataclass
class ToolSpec:
    """A tool offered to the model.

    A tool without ``execute`` cannot run inside the model loop; its call is
    left pending until an external (human) decision supplies the result.
    """

    name: str
    description: str
    parameters: type[BaseModel]
    execute: Callable[..., Awaitable[Any]] | None = None

    @property
    def requires_confirmation(self) -> bool:
        return self.execute is None

    def to_openai_tool(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.model_json_schema(),
            },
        }

    def validate_args(self, args: Mapping[str, Any]) -> BaseModel:
        return self.parameters.model_validate(dict(args))

    async def run(self, args: Mapping[str, Any]) -> Any:
        if self.execute is None:
            raise RuntimeError(f"Tool {self.name} has no execute function")
        params = self.validate_args(args)
        return await self.execute(**params.model_dump())


def merge_tool_sets(*tool_sets: Mapping[str, ToolSpec]) -> dict[str, ToolSpec]:
    """Union tool sets by name. On collision the last registered tool wins."""
    merged: dict[str, ToolSpec] = {}
    for tool_set in tool_sets:
        for name, spec in tool_set.items():
            if name in merged:
                logger.info("tool_overridden", tool=name)
            merged[name] = spec
    return merged


def serialize_tool_result(result: Any) -> str:
    """Render a tool result as the text content of a tool message."""
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True)
    if isinstance(result, list):
        return json.dumps(
            [
                item.model_dump(by_alias=True, mode="json")
                if isinstance(item, BaseModel)
                else item
                for item in result
            ],
            default=str,
        )
    return json.dumps(result, default=str)
