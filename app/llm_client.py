"""OpenRouter model gateway with an explicit mock transport."""
from __future__ import annotations

import asyncio
import time
from typing import Any

from loguru import logger

from app.config import OrchestratorConfig, TransportMode
from app.models.review import AgentRole
from app.services import logger as log_service

EMPTY_COMPLETION_TEXT = "No valid content was generated."

Message = dict[str, str]


class UpstreamError(Exception):
    """The remote completion call failed (status, transport or payload)."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConfigError(Exception):
    """Live transport requested without a credential."""


def get_client(config: OrchestratorConfig) -> Any:
    """Get an OpenRouter client via the OpenAI-compatible SDK."""
    from openai import AsyncOpenAI

    return AsyncOpenAI(
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.timeout_seconds,
        max_retries=0,
    )


class ModelGateway:
    """Uniform ``complete`` call over OpenRouter, or canned output in mock mode.

    The transport is fixed at construction time. A LIVE gateway without an
    API key refuses to build instead of silently serving canned data.
    """

    def __init__(self, config: OrchestratorConfig, client: Any | None = None):
        if config.transport_mode is TransportMode.LIVE and not config.api_key and client is None:
            raise ConfigError("OPENROUTER_API_KEY is required for the live transport")
        self.config = config
        self._client = client

    @property
    def mode(self) -> TransportMode:
        return self.config.transport_mode

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_client(self.config)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "HTTP-Referer": self.config.app_url,
            "X-Title": self.config.app_name,
        }

    async def complete(
        self,
        model: str,
        messages: list[Message],
        temperature: float = 0.4,
        *,
        role: AgentRole | None = None,
        caller: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        caller_name = caller or (role.value if role else "gateway")
        if self.mode is TransportMode.MOCK:
            return await self._complete_mock(model, role, caller_name)
        return await self._complete_live(
            model,
            messages,
            temperature,
            caller=caller_name,
            max_tokens=max_tokens or self.config.max_tokens,
        )

    async def _complete_mock(self, model: str, role: AgentRole | None, caller: str) -> str:
        logger.debug(f"[{caller}] mock transport answering for {model}")
        if self.config.mock_latency_seconds > 0:
            await asyncio.sleep(self.config.mock_latency_seconds)
        log_service.log_llm_call(model=model, caller=caller, status="mock")
        return mock_completion(role)

    async def _complete_live(
        self,
        model: str,
        messages: list[Message],
        temperature: float,
        *,
        caller: str,
        max_tokens: int,
    ) -> str:
        import openai

        t0 = time.monotonic()
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.config.timeout_seconds,
                extra_headers=self._headers(),
            )
        except openai.APIStatusError as exc:
            body = _response_body(exc)
            self._log_failure(model, caller, t0, f"{exc.status_code}: {body[:200]}")
            raise UpstreamError(
                f"OpenRouter call failed: {exc.status_code}",
                status_code=exc.status_code,
                body=body,
            ) from exc
        except openai.APITimeoutError as exc:
            self._log_failure(model, caller, t0, "timeout")
            raise UpstreamError(
                f"OpenRouter call timed out after {self.config.timeout_seconds:.0f}s"
            ) from exc
        except openai.APIConnectionError as exc:
            self._log_failure(model, caller, t0, str(exc))
            raise UpstreamError(f"OpenRouter connection failed: {exc}") from exc
        except openai.APIError as exc:
            self._log_failure(model, caller, t0, f"{exc.__class__.__name__}: {exc}")
            raise UpstreamError(f"OpenRouter returned an unusable response: {exc}") from exc

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        choices = getattr(response, "choices", None) or []
        if not choices:
            self._log_failure(model, caller, t0, "no choices in response")
            raise UpstreamError("OpenRouter returned a malformed response (no choices)")

        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=model,
            caller=caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=elapsed_ms,
        )

        message = getattr(choices[0], "message", None)
        text = (getattr(message, "content", None) or "").strip()
        return text or EMPTY_COMPLETION_TEXT

    @staticmethod
    def _log_failure(model: str, caller: str, t0: float, error: str) -> None:
        log_service.log_llm_call(
            model=model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=error,
        )


def _response_body(exc: Any) -> str:
    response = getattr(exc, "response", None)
    text = getattr(response, "text", None)
    if isinstance(text, str):
        return text
    body = getattr(exc, "body", None)
    return "" if body is None else str(body)


# --- Mock transport payloads ---

MOCK_EXPERT_TABLES = """## Local Experts

| Name | Organization | Title | Research Field | Reason |
|------|--------------|-------|----------------|--------|
| Wang Minghua | Southern University of Science and Technology | Professor | Solid-state battery materials | Leads national projects on solid electrolytes |
| Zhang Weiqiang | BYD Co. | Technical Director | Power batteries | Runs battery R&D with direct industrialisation experience |

## Regional Experts

| Name | Organization | Title | Research Field | Reason |
|------|--------------|-------|----------------|--------|
| Li Jianguo | South China University of Technology | Professor | Electrochemistry | Long record in electrode interface research |
| Chen Xiaoli | Songshan Lake Materials Laboratory | Researcher | Advanced materials | Bridges lab results and pilot production |

## National Experts

| Name | Organization | Title | Research Field | Reason |
|------|--------------|-------|----------------|--------|
| Zhao Guoqing | Institute of Physics, Chinese Academy of Sciences | Research Fellow | Energy storage physics | Authority on next-generation storage systems |"""

MOCK_SYNTHESIS = """# Panel Consensus Resolution

## 1. Overall Conclusion
**[Recommend support]**

The panel considers the technical route clear, the innovation solid and the team well founded. The commercialisation path carries some uncertainty, but the project merits support.

## 2. Cross-Reviewer Agreement
1. **Technical feasibility**: all reviewers accept the core architecture as sound and promising.
2. **Team**: the team composition is considered appropriate for the goals.

## 3. Points of Disagreement
* **Market outlook**: one reviewer doubts short-term market penetration while another stresses long-term technical barriers. The panel advises starting with demonstration deployments.

## 4. Core Strengths
1. **Technical lead**: the proposed architecture is ahead of comparable work.
2. **Clear scenario**: the solution targets a concrete industrial use case.
3. **Academia-industry link**: research strength combined with engineering capability.

## 5. Consolidated Risk List
* **Data security**: privacy protection needs to be specified.
* **Cost control**: hardware cost at scale must come down through optimisation.

## 6. Final Recommendations
Add a data-security compliance section and a yearly cost-reduction roadmap to the implementation plan."""

MOCK_REVIEW = """# Project Review Opinion

## 1. Compliance and Formal Review
The application is complete and meets the basic guideline requirements. Technical targets are clear and the budget is broadly reasonable.
* **Compliance**: compliant
* **Completeness**: complete

## 2. Technical Innovation and Advancement
The project proposes a new solution with a reasonable degree of innovation.
* **Technical route**: logical and feasible.
* **Comparison**: an expected 15%-20% efficiency gain over conventional methods.

## 3. Team and Resources
The team combines technical experts and engineering staff; the host organisation has suitable facilities.

## 4. Problems and Risks
* **Risk 1**: market adoption effort may be underestimated.
* **Risk 2**: some core components depend on imports, a supply-chain risk.

## 5. Overall Conclusion
**[Recommend with conditions]**

The industrialisation plan should be detailed further."""

MOCK_REPLY = "This is a mock response. Configure OPENROUTER_API_KEY and LLM_TRANSPORT=live for real answers."

_REVIEWER_ROLES = (AgentRole.REVIEWER_A, AgentRole.REVIEWER_B, AgentRole.REVIEWER_C)


def mock_completion(role: AgentRole | None) -> str:
    """Canned, role-shaped output used by the mock transport."""
    if role is AgentRole.EXPERT_HUNTER:
        return MOCK_EXPERT_TABLES
    if role is AgentRole.SYNTHESIZER:
        return MOCK_SYNTHESIS
    if role in _REVIEWER_ROLES:
        return MOCK_REVIEW
    return MOCK_REPLY
