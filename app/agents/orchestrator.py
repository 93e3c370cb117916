from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from datetime import date
from enum import StrEnum
from typing import AsyncIterator, Awaitable, Callable, Iterator, NamedTuple, Sequence

from loguru import logger

from app.agents.registry import AgentProfile, AgentRegistry
from app.config import OrchestratorConfig
from app.llm_client import Message, ModelGateway
from app.models.events import ReviewEvent
from app.models.review import (
    AgentRole,
    AgentRunRecord,
    AgentRunResult,
    AgentRunStatus,
    ReviewCycleResult,
    ReviewDocument,
    ReviewTemplate,
)
from app.services import logger as log_service
from app.services import streaming
from app.services.prompt_store import prompt_text, render_prompt
from app.services.result_store import ResultStore, try_persist

Emit = Callable[[ReviewEvent], Awaitable[None]]


class CycleInProgressError(RuntimeError):
    """A review cycle is already running for this project."""

    def __init__(self, project_id: str):
        super().__init__(f"A review cycle is already running for project {project_id}")
        self.project_id = project_id


class ExecutionStrategy(StrEnum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class ReviewContribution(NamedTuple):
    role: AgentRole
    name: str
    focus: str
    content: str


def build_document_context(
    materials: Sequence[ReviewDocument],
    guidelines: Sequence[ReviewDocument],
) -> str:
    """Concatenate guideline and material texts into one prompt block."""
    untitled = prompt_text("review.untitled_document")
    context = "\n\n" + prompt_text("review.guidelines_header") + "\n"
    if not guidelines:
        context += prompt_text("review.guidelines_missing") + "\n"
    for index, doc in enumerate(guidelines, 1):
        header = render_prompt("review.guideline_item", index=index, name=doc.display_name or untitled)
        context += f"\n{header}\n{doc.text_content}\n"

    context += "\n\n" + prompt_text("review.materials_header") + "\n"
    if not materials:
        context += prompt_text("review.materials_missing") + "\n"
    for index, doc in enumerate(materials, 1):
        header = render_prompt("review.material_item", index=index, name=doc.display_name or untitled)
        context += f"\n{header}\n{doc.text_content}\n"
    return context


def build_reviewer_messages(
    profile: AgentProfile,
    focus: str,
    context: str,
    *,
    review_date: date | None = None,
) -> list[Message]:
    system_prompt = render_prompt(
        "review.system_prompt",
        reviewer_name=profile.display_name,
        focus_area=focus,
        review_date=(review_date or date.today()).isoformat(),
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": f"{context}\n\n{prompt_text('review.user_suffix')}"},
    ]


def build_synthesis_messages(contributions: Sequence[ReviewContribution]) -> list[Message]:
    """One user message listing every review; failed reviewers appear with empty text."""
    blocks = [
        render_prompt(
            "synthesis.review_block",
            reviewer_name=item.name,
            focus_area=item.focus,
            content=item.content,
        )
        for item in contributions
    ]
    prompt = render_prompt(
        "synthesis.prompt",
        reviewer_count=len(contributions),
        reviews="\n\n".join(blocks),
    )
    return [{"role": "user", "content": prompt}]


class ReviewOrchestrator:
    """Drives one review cycle: reviewers, join, synthesizer.

    Flow:
      1. Reset every agent slot of the project to IDLE
      2. Run each reviewer (concurrently for batch, one by one for streaming)
      3. Wait for every reviewer to reach COMPLETED or ERROR
      4. Run the synthesizer over all reviews, empty text for failed ones

    Reviewer and synthesizer failures are captured into their results; store
    writes are best-effort and never interrupt the cycle.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        gateway: ModelGateway,
        store: ResultStore | None = None,
        registry: AgentRegistry | None = None,
    ):
        self.config = config
        self.gateway = gateway
        self.store = store
        self.registry = registry or AgentRegistry.from_config(config)
        self._active_projects: set[str] = set()
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run_review_cycle(
        self,
        project_id: str,
        materials: Sequence[ReviewDocument],
        guidelines: Sequence[ReviewDocument],
        *,
        template_id: str | None = None,
    ) -> ReviewCycleResult:
        """Batch cycle: reviewers run concurrently and are joined before synthesis."""
        with self._cycle_guard(project_id):
            template = await self._load_template(template_id)
            return await self._run_cycle(
                project_id,
                materials,
                guidelines,
                strategy=ExecutionStrategy.PARALLEL,
                template=template,
            )

    async def stream_review_cycle(
        self,
        project_id: str,
        materials: Sequence[ReviewDocument],
        guidelines: Sequence[ReviewDocument],
        *,
        template_id: str | None = None,
    ) -> AsyncIterator[ReviewEvent]:
        """Streaming cycle: reviewers run one at a time, each transition is an event.

        The stream always ends with a ``complete`` or ``error`` event. The
        cycle keeps running to completion if the consumer goes away.
        """
        channel = streaming.EventChannel()
        task = asyncio.create_task(
            self._produce_stream(channel, project_id, materials, guidelines, template_id)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        async for event in channel:
            yield event

    # ------------------------------------------------------------------
    # Cycle core
    # ------------------------------------------------------------------

    async def _produce_stream(
        self,
        channel: streaming.EventChannel,
        project_id: str,
        materials: Sequence[ReviewDocument],
        guidelines: Sequence[ReviewDocument],
        template_id: str | None,
    ) -> None:
        try:
            with self._cycle_guard(project_id):
                template = await self._load_template(template_id)
                await channel.send(
                    streaming.cycle_started(project_id, template.name if template else None)
                )
                result = await self._run_cycle(
                    project_id,
                    materials,
                    guidelines,
                    strategy=ExecutionStrategy.SEQUENTIAL,
                    template=template,
                    emit=channel.send,
                )
                await channel.send(streaming.cycle_completed(result.success))
        except Exception as e:
            logger.exception(f"Review stream failed for project {project_id}: {e}")
            await channel.send(streaming.error(str(e) or e.__class__.__name__))
        finally:
            channel.close()

    async def _run_cycle(
        self,
        project_id: str,
        materials: Sequence[ReviewDocument],
        guidelines: Sequence[ReviewDocument],
        *,
        strategy: ExecutionStrategy,
        template: ReviewTemplate | None = None,
        emit: Emit | None = None,
    ) -> ReviewCycleResult:
        t0 = time.monotonic()
        reviewers = self.registry.reviewers
        focus = {
            profile.role: (template.focus_overrides.get(profile.role) if template else None)
            or profile.default_focus
            for profile in reviewers
        }
        context = build_document_context(materials, guidelines)

        logger.info(
            f"Starting {strategy.value} review cycle for project {project_id} "
            f"with {len(reviewers)} reviewers"
        )
        await self._reset_agents(project_id)

        if strategy is ExecutionStrategy.PARALLEL:
            outcomes = await asyncio.gather(
                *(
                    self._run_reviewer(project_id, profile, focus[profile.role], context, emit=emit)
                    for profile in reviewers
                ),
                return_exceptions=True,
            )
            reviews = [
                outcome
                if isinstance(outcome, AgentRunResult)
                else AgentRunResult.failed(profile.role, str(outcome), name=profile.display_name)
                for profile, outcome in zip(reviewers, outcomes)
            ]
        else:
            reviews = []
            for profile in reviewers:
                reviews.append(
                    await self._run_reviewer(project_id, profile, focus[profile.role], context, emit=emit)
                )

        logger.info(f"All reviewers resolved for project {project_id}. Starting synthesis...")
        contributions = [
            ReviewContribution(
                role=review.role,
                name=review.name,
                focus=focus.get(review.role, ""),
                content=review.content if review.succeeded else "",
            )
            for review in reviews
        ]
        synthesis = await self._run_synthesizer(project_id, contributions, emit=emit)

        result = ReviewCycleResult(project_id=project_id, reviews=reviews, synthesis=synthesis)
        log_service.log_event(
            event_type="review_cycle_finished",
            message="Review cycle finished",
            project_id=project_id,
            strategy=strategy.value,
            success=result.success,
            failed_reviewers=[r.role.value for r in reviews if not r.succeeded],
            synthesis_status=synthesis.status.value,
            runtime_ms=int((time.monotonic() - t0) * 1000),
        )
        return result

    async def _run_reviewer(
        self,
        project_id: str,
        profile: AgentProfile,
        focus: str,
        context: str,
        *,
        emit: Emit | None = None,
    ) -> AgentRunResult:
        role = profile.role
        await self._transition(project_id, role, AgentRunRecord(status=AgentRunStatus.THINKING))
        if emit:
            await emit(streaming.agent_started(role, profile.display_name))

        logger.info(f"[{profile.display_name}] using model {profile.model_id}")
        try:
            content = await self.gateway.complete(
                profile.model_id,
                build_reviewer_messages(profile, focus, context),
                self.config.review_temperature,
                role=role,
            )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"[{profile.display_name}] review failed: {message}")
            await self._transition(
                project_id, role, AgentRunRecord(status=AgentRunStatus.ERROR, error=message)
            )
            if emit:
                await emit(streaming.agent_failed(role, profile.display_name, message))
            return AgentRunResult.failed(role, message, name=profile.display_name)

        await self._transition(
            project_id, role, AgentRunRecord(status=AgentRunStatus.COMPLETED, content=content)
        )
        if emit:
            await emit(streaming.agent_completed(role, profile.display_name, content))
        return AgentRunResult.completed(role, content, name=profile.display_name)

    async def _run_synthesizer(
        self,
        project_id: str,
        contributions: Sequence[ReviewContribution],
        *,
        emit: Emit | None = None,
    ) -> AgentRunResult:
        profile = self.registry.synthesizer
        role = profile.role
        await self._transition(project_id, role, AgentRunRecord(status=AgentRunStatus.THINKING))
        if emit:
            await emit(streaming.synthesizer_started())

        try:
            content = await self.gateway.complete(
                profile.model_id,
                build_synthesis_messages(contributions),
                self.config.review_temperature,
                role=role,
            )
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"[{profile.display_name}] synthesis failed: {message}")
            await self._transition(
                project_id, role, AgentRunRecord(status=AgentRunStatus.ERROR, error=message)
            )
            if emit:
                await emit(streaming.synthesizer_failed(message))
            return AgentRunResult.failed(role, message, name=profile.display_name)

        await self._transition(
            project_id, role, AgentRunRecord(status=AgentRunStatus.COMPLETED, content=content)
        )
        if self.store is not None:
            await try_persist(
                lambda: self.store.touch_project(project_id),
                operation="touch_project",
                project_id=project_id,
                table="projects",
            )
        if emit:
            await emit(streaming.synthesizer_completed(content))
        return AgentRunResult.completed(role, content, name=profile.display_name)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _reset_agents(self, project_id: str) -> None:
        """Clear every slot before new content can arrive."""
        for profile in self.registry.all():
            await self._transition(project_id, profile.role, AgentRunRecord(status=AgentRunStatus.IDLE))

    async def _transition(self, project_id: str, role: AgentRole, record: AgentRunRecord) -> None:
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

    async def _load_template(self, template_id: str | None) -> ReviewTemplate | None:
        if not template_id or self.store is None:
            return None
        template = await self.store.get_template(template_id)
        if template is None:
            logger.warning(f"Review template {template_id} not found, using default focus areas")
        return template

    @contextmanager
    def _cycle_guard(self, project_id: str) -> Iterator[None]:
        if not self.config.single_cycle_per_project:
            yield
            return
        if project_id in self._active_projects:
            raise CycleInProgressError(project_id)
        self._active_projects.add(project_id)
        try:
            yield
        finally:
            self._active_projects.discard(project_id)
