from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    app_url: str = "http://localhost:3000"
    app_name: str = "ReviewPanel"
    llm_transport: str = "live"  # live | mock
    llm_mock_fallback: bool = False  # degrade to mock when the key is missing
    llm_mock_latency_seconds: float = 2.0
    llm_timeout_seconds: float = 90.0
    llm_max_tokens: int = 8192

    # Models per agent
    model_reviewer_a: str = "anthropic/claude-sonnet-4"
    model_reviewer_b: str = "google/gemini-2.5-flash-preview"
    model_reviewer_c: str = "openai/gpt-4o"
    model_synthesizer: str = "anthropic/claude-sonnet-4"
    model_expert_search: str = "anthropic/claude-sonnet-4"
    model_chat: str = "anthropic/claude-haiku-4"
    model_keyword_extraction: str = "anthropic/claude-haiku-4.5"
    model_metadata: str = "anthropic/claude-haiku-4"

    # Reviewer focus areas
    focus_reviewer_a: str = "risk control, compliance and logical rigour"
    focus_reviewer_b: str = "technical innovation, frontier relevance and R&D strength"
    focus_reviewer_c: str = "commercial viability, team qualifications and resource support"

    review_temperature: float = 0.2
    chat_temperature: float = 0.5
    single_cycle_per_project: bool = True

    # Tavily (comma-separated keys are rotated)
    tavily_api_key: str = ""
    expert_search_max_results: int = 5
    expert_search_max_queries: int = 4
    expert_search_snippet_limit: int = 8
    expert_search_domains: str = (
        "edu.cn,cas.cn,baike.baidu.com,scholar.google.com,researchgate.net,linkedin.cn"
    )
    expert_local_region: str = "Shenzhen"
    expert_local_institutions: str = (
        "Shenzhen University OR Southern University of Science and Technology "
        "OR HIT Shenzhen OR Tsinghua Shenzhen International Graduate School"
    )
    expert_regional_area: str = "Guangdong"
    expert_regional_institutions: str = (
        "Sun Yat-sen University OR South China University of Technology OR Jinan University"
    )

    # Supabase
    supabase_url: str = ""
    supabase_service_key: str = ""

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)


settings = Settings()


class TransportMode(str, Enum):
    LIVE = "live"
    MOCK = "mock"


@dataclass(frozen=True)
class ExpertSearchConfig:
    max_results: int = 5
    max_queries: int = 4
    snippet_limit: int = 8
    include_domains: tuple[str, ...] = ()
    local_region: str = "Shenzhen"
    local_institutions: str = ""
    regional_area: str = "Guangdong"
    regional_institutions: str = ""


@dataclass(frozen=True)
class OrchestratorConfig:
    """Immutable runtime configuration, built once at startup and injected."""

    transport_mode: TransportMode = TransportMode.LIVE
    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    app_url: str = "http://localhost:3000"
    app_name: str = "ReviewPanel"
    timeout_seconds: float = 90.0
    max_tokens: int = 8192
    mock_latency_seconds: float = 0.0

    reviewer_models: tuple[str, ...] = (
        "anthropic/claude-sonnet-4",
        "google/gemini-2.5-flash-preview",
        "openai/gpt-4o",
    )
    reviewer_focus: tuple[str, ...] = (
        "risk control, compliance and logical rigour",
        "technical innovation, frontier relevance and R&D strength",
        "commercial viability, team qualifications and resource support",
    )
    synthesizer_model: str = "anthropic/claude-sonnet-4"
    expert_model: str = "anthropic/claude-sonnet-4"
    chat_model: str = "anthropic/claude-haiku-4"
    keyword_model: str = "anthropic/claude-haiku-4.5"
    metadata_model: str = "anthropic/claude-haiku-4"

    review_temperature: float = 0.2
    chat_temperature: float = 0.5
    single_cycle_per_project: bool = True
    expert_search: ExpertSearchConfig = field(default_factory=ExpertSearchConfig)

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "OrchestratorConfig":
        """Resolve transport mode and freeze the settings the pipeline needs."""
        from app.llm_client import ConfigError

        s = source or settings
        try:
            mode = TransportMode(s.llm_transport.lower().strip())
        except ValueError as exc:
            raise ConfigError(f"Unsupported LLM_TRANSPORT: {s.llm_transport}") from exc

        if mode is TransportMode.LIVE and not s.openrouter_api_key:
            if not s.llm_mock_fallback:
                raise ConfigError(
                    "OPENROUTER_API_KEY is not configured. Set LLM_TRANSPORT=mock "
                    "or LLM_MOCK_FALLBACK=true to run with canned responses."
                )
            from loguru import logger

            logger.warning("OPENROUTER_API_KEY missing, falling back to mock transport")
            mode = TransportMode.MOCK

        return cls(
            transport_mode=mode,
            api_key=s.openrouter_api_key,
            base_url=s.openrouter_base_url.strip() or "https://openrouter.ai/api/v1",
            app_url=s.app_url,
            app_name=s.app_name,
            timeout_seconds=s.llm_timeout_seconds,
            max_tokens=s.llm_max_tokens,
            mock_latency_seconds=s.llm_mock_latency_seconds,
            reviewer_models=(s.model_reviewer_a, s.model_reviewer_b, s.model_reviewer_c),
            reviewer_focus=(s.focus_reviewer_a, s.focus_reviewer_b, s.focus_reviewer_c),
            synthesizer_model=s.model_synthesizer,
            expert_model=s.model_expert_search,
            chat_model=s.model_chat,
            keyword_model=s.model_keyword_extraction,
            metadata_model=s.model_metadata,
            review_temperature=s.review_temperature,
            chat_temperature=s.chat_temperature,
            single_cycle_per_project=s.single_cycle_per_project,
            expert_search=ExpertSearchConfig(
                max_results=s.expert_search_max_results,
                max_queries=s.expert_search_max_queries,
                snippet_limit=s.expert_search_snippet_limit,
                include_domains=tuple(
                    d.strip() for d in s.expert_search_domains.split(",") if d.strip()
                ),
                local_region=s.expert_local_region,
                local_institutions=s.expert_local_institutions,
                regional_area=s.expert_regional_area,
                regional_institutions=s.expert_regional_institutions,
            ),
        )
