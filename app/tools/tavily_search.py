from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Sequence

from loguru import logger
from tavily import AsyncTavilyClient

from app.config import settings


@dataclass
class SearchResult:
    title: str
    url: str
    content: str
    score: float


def _pick_api_key(raw: str) -> str:
    """TAVILY_API_KEY may hold several comma-separated keys; one is picked per call."""
    keys = [k.strip() for k in raw.split(",") if k.strip()]
    if not keys:
        raise ValueError("TAVILY_API_KEY is not configured")
    return random.choice(keys)


async def search(
    query: str,
    *,
    search_depth: str = "advanced",
    max_results: int = 10,
    include_domains: Sequence[str] | None = None,
    exclude_domains: Sequence[str] | None = None,
    include_answer: bool = True,
) -> list[SearchResult]:
    """Run one Tavily query for expert candidates. Hits without a URL are dropped."""
    client = AsyncTavilyClient(api_key=_pick_api_key(settings.tavily_api_key))

    options: dict[str, Any] = {
        "search_depth": search_depth,
        "max_results": max_results,
        "include_answer": include_answer,
    }
    if include_domains:
        options["include_domains"] = list(include_domains)
    if exclude_domains:
        options["exclude_domains"] = list(exclude_domains)

    response = await client.search(query, **options)
    hits = response.get("results") or []
    logger.debug(f"Tavily returned {len(hits)} hits for {query!r}")

    return [
        SearchResult(
            title=hit.get("title") or "",
            url=hit["url"],
            content=hit.get("content") or "",
            score=float(hit.get("score") or 0.0),
        )
        for hit in hits
        if hit.get("url")
    ]
