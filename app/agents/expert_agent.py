from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Sequence

from loguru import logger

from app.config import OrchestratorConfig, settings
from app.llm_client import ModelGateway
from app.models.review import (
    AgentRole,
    AgentRunRecord,
    AgentRunResult,
    AgentRunStatus,
    KeywordAnalysis,
    ReviewDocument,
)
from app.services import logger as log_service
from app.services.keyword_extractor import fallback_analysis, parse_keyword_reply
from app.services.prompt_store import prompt_text, render_prompt
from app.services.result_store import ResultStore, try_persist
from app.tools import tavily_search
from app.tools.tavily_search import SearchResult

SearchFn = Callable[..., Awaitable[list[SearchResult]]]

KEYWORD_CONTEXT_CHARS = 4000
MATERIAL_EXCERPT_CHARS = 2500
KEYWORD_MAX_TOKENS = 1000
RECOMMENDATION_TEMPERATURE = 0.2


def _default_search() -> SearchFn | None:
    if not settings.tavily_api_key.strip():
        return None
    return tavily_search.search


def materials_excerpt(materials: Sequence[ReviewDocument]) -> str:
    return "\n".join(doc.text_content[:MATERIAL_EXCERPT_CHARS] for doc in materials)


class ExpertRecommendationAgent:
    """Keyword analysis -> web search -> one recommendation call.

    Keyword extraction and search degrade quietly; only the final
    recommendation call can fail the run.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        gateway: ModelGateway,
        search: SearchFn | None = None,
        store: ResultStore | None = None,
    ):
        self.config = config
        self.gateway = gateway
        self.search = search if search is not None else _default_search()
        self.store = store

    async def extract_keywords(self, content: str) -> KeywordAnalysis:
        """Ask the lightweight model for keyword JSON; fall back to the term dictionary."""
        prompt = render_prompt("expert.keyword_prompt", content=content[:KEYWORD_CONTEXT_CHARS])
        try:
            reply = await self.gateway.complete(
                self.config.keyword_model,
                [{"role": "user", "content": prompt}],
                0.2,
                role=AgentRole.EXPERT_HUNTER,
                caller="keyword_extraction",
                max_tokens=KEYWORD_MAX_TOKENS,
            )
            analysis = parse_keyword_reply(reply)
        except Exception as e:
            logger.warning(f"[Expert Selection] keyword extraction failed, using term dictionary: {e}")
            return fallback_analysis(content)

        if not analysis.keywords:
            logger.warning("[Expert Selection] keyword reply had no keywords, using term dictionary")
            fallback = fallback_analysis(content)
            fallback.domains = analysis.domains
            return fallback

        logger.info(f"[Expert Selection] keywords: {analysis.keywords} domains: {analysis.domains}")
        return analysis

    def build_search_queries(self, keywords: Sequence[str]) -> list[str]:
        cfg = self.config.expert_search
        queries = [f"{kw} expert professor {cfg.local_institutions}".strip() for kw in keywords[:2]]
        queries += [
            f"{kw} CTO OR technical director OR chief scientist {cfg.local_region} company"
            for kw in keywords[:2]
        ]
        if keywords:
            queries.append(f"{keywords[0]} expert professor {cfg.regional_institutions}".strip())
        return queries[: cfg.max_queries]

    async def _search_one(self, query: str) -> list[SearchResult]:
        cfg = self.config.expert_search
        try:
            return await self.search(
                query,
                max_results=cfg.max_results,
                include_domains=list(cfg.include_domains),
            )
        except Exception as e:
            logger.warning(f"[Expert Selection] search failed for {query!r}: {e}")
            return []

    async def search_candidates(self, keywords: Sequence[str]) -> list[SearchResult]:
        """Run the candidate queries in parallel, de-duplicated by URL in query order."""
        if self.search is None:
            logger.info("[Expert Selection] no search provider configured, skipping web search")
            return []
        queries = self.build_search_queries(keywords)
        if not queries:
            return []

        batches = await asyncio.gather(*(self._search_one(q) for q in queries))
        unique: list[SearchResult] = []
        seen_urls: set[str] = set()
        for batch in batches:
            for result in batch:
                if result.url in seen_urls:
                    continue
                seen_urls.add(result.url)
                unique.append(result)
        logger.info(f"[Expert Selection] {len(unique)} unique search results from {len(queries)} queries")
        return unique

    def _search_context(self, results: Sequence[SearchResult]) -> str:
        top = results[: self.config.expert_search.snippet_limit]
        if not top:
            return ""
        lines = [f"{idx}. {r.title} ({r.url})" for idx, r in enumerate(top, 1)]
        return "\n\n" + prompt_text("expert.search_context_header") + "\n" + "\n".join(lines)

    async def recommend(self, materials_text: str) -> str:
        """Return the raw markdown tables produced by the recommendation model."""
        t0 = time.monotonic()
        analysis = await self.extract_keywords(materials_text)
        results = await self.search_candidates(analysis.keywords)

        cfg = self.config.expert_search
        system_prompt = render_prompt(
            "expert.system_prompt",
            local_region=cfg.local_region,
            regional_area=cfg.regional_area,
            keywords=", ".join(analysis.keywords),
            domains=", ".join(analysis.domains),
            search_context=self._search_context(results),
        )
        user_content = (
            f"{prompt_text('expert.materials_header')}\n{materials_text}\n\n"
            f"{prompt_text('expert.user_suffix')}"
        )
        logger.info(f"[Expert Selection] using model {self.config.expert_model}")
        content = await self.gateway.complete(
            self.config.expert_model,
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            RECOMMENDATION_TEMPERATURE,
            role=AgentRole.EXPERT_HUNTER,
        )
        log_service.log_event(
            event_type="expert_recommendation",
            message="Expert recommendation generated",
            keyword_source=analysis.source,
            keywords=analysis.keywords,
            search_results=len(results),
            runtime_ms=int((time.monotonic() - t0) * 1000),
        )
        return content

    async def run_for_project(
        self,
        project_id: str,
        materials: Sequence[ReviewDocument],
    ) -> AgentRunResult:
        role = AgentRole.EXPERT_HUNTER
        await self._transition(project_id, AgentRunRecord(status=AgentRunStatus.THINKING))
        try:
            content = await self.recommend(materials_excerpt(materials))
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"[Expert Selection] failed for project {project_id}: {message}")
            await self._transition(project_id, AgentRunRecord(status=AgentRunStatus.ERROR, error=message))
            return AgentRunResult.failed(role, message, name="Expert Selection")

        await self._transition(project_id, AgentRunRecord(status=AgentRunStatus.COMPLETED, content=content))
        return AgentRunResult.completed(role, content, name="Expert Selection")

    async def _transition(self, project_id: str, record: AgentRunRecord) -> None:
        role = AgentRole.EXPERT_HUNTER
        log_service.log_agent_transition(project_id, role.value, record.status.value, record.error)
        if self.store is None:
            return
        store = self.store
        await try_persist(
            lambda: store.upsert(project_id, role, record),
            operation=f"upsert_{record.status.value.lower()}",
            project_id=project_id,
            role=role.value,
        )
