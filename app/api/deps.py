from __future__ import annotations

from functools import lru_cache

from loguru import logger

from app.agents.chat_agent import ChatAgent
from app.agents.expert_agent import ExpertRecommendationAgent
from app.agents.orchestrator import ReviewOrchestrator
from app.agents.registry import AgentRegistry
from app.config import OrchestratorConfig, settings
from app.llm_client import ModelGateway
from app.services.result_store import InMemoryResultStore, ResultStore, SupabaseResultStore


@lru_cache
def get_config() -> OrchestratorConfig:
    return OrchestratorConfig.from_settings(settings)


@lru_cache
def get_gateway() -> ModelGateway:
    gateway = ModelGateway(get_config())
    logger.info(f"Model gateway ready ({gateway.mode.value} transport)")
    return gateway


@lru_cache
def get_store() -> ResultStore:
    if settings.supabase_configured:
        return SupabaseResultStore()
    logger.warning("Supabase is not configured, review results are kept in memory")
    return InMemoryResultStore()


@lru_cache
def get_registry() -> AgentRegistry:
    return AgentRegistry.from_config(get_config())


@lru_cache
def get_orchestrator() -> ReviewOrchestrator:
    return ReviewOrchestrator(get_config(), get_gateway(), store=get_store(), registry=get_registry())


@lru_cache
def get_expert_agent() -> ExpertRecommendationAgent:
    return ExpertRecommendationAgent(get_config(), get_gateway(), store=get_store())


@lru_cache
def get_chat_agent() -> ChatAgent:
    return ChatAgent(get_config(), get_gateway())
