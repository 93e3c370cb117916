"""ReviewPanel - multi-agent project review

Simple CLI for running a review cycle or expert selection on local files.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from app.agents.expert_agent import ExpertRecommendationAgent
from app.agents.orchestrator import ReviewOrchestrator
from app.config import OrchestratorConfig, settings
from app.llm_client import ConfigError, ModelGateway
from app.models.review import ReviewDocument
from app.services.expert_parser import parse_expert_tables
from app.services.result_store import InMemoryResultStore


def load_documents(paths: list[str]) -> list[ReviewDocument]:
    documents = []
    for raw in paths:
        path = Path(raw)
        documents.append(
            ReviewDocument(
                id=path.stem,
                text_content=path.read_text(encoding="utf-8"),
                display_name=path.name,
            )
        )
    return documents


async def run_review(orchestrator: ReviewOrchestrator, project_id: str, materials, guidelines):
    print(f"Reviewing project {project_id} ({len(materials)} materials, {len(guidelines)} guidelines)")
    print("-" * 50)

    result = await orchestrator.run_review_cycle(project_id, materials, guidelines)
    for review in result.reviews:
        marker = "+" if review.succeeded else "!"
        print(f"\n[{marker}] {review.name}")
        print(review.content if review.succeeded else f"    Error: {review.error}")

    print(f"\n{'='*50}")
    print("FINAL REPORT:")
    print(f"{'='*50}")
    if result.synthesis and result.synthesis.succeeded:
        print(result.synthesis.content)
    else:
        print(f"[!] Synthesis failed: {result.synthesis.error if result.synthesis else 'not run'}")
    return result.success


async def stream_review(orchestrator: ReviewOrchestrator, project_id: str, materials, guidelines):
    success = False
    async for event in orchestrator.stream_review_cycle(project_id, materials, guidelines):
        event_type = event.event.value
        data = event.data

        if event_type == "start":
            print(f"[*] {data.get('message')}")
        elif event_type == "agent_start":
            print(f"\n[~] {data.get('message')}...")
        elif event_type == "agent_complete":
            print(f"  [+] {data.get('name')} done ({len(data.get('content', ''))} chars)")
        elif event_type == "agent_error":
            print(f"  [!] {data.get('name')} failed: {data.get('error')}")
        elif event_type == "synthesizer_start":
            print(f"\n[~] {data.get('message')}...")
        elif event_type == "synthesizer_complete":
            print(f"\n{'='*50}")
            print("FINAL REPORT:")
            print(f"{'='*50}")
            print(data.get("content", ""))
        elif event_type == "synthesizer_error":
            print(f"\n[!] Synthesis failed: {data.get('error')}")
        elif event_type == "complete":
            success = bool(data.get("success"))
            print(f"\n[*] {data.get('message')} (success={success})")
        elif event_type == "error":
            print(f"\n[!] Error: {data.get('error', 'Unknown error')}")
    return success


async def run_expert(agent: ExpertRecommendationAgent, project_id: str, materials):
    result = await agent.run_for_project(project_id, materials)
    if not result.succeeded:
        print(f"[!] Expert selection failed: {result.error}")
        return False
    print(result.content)
    experts = parse_expert_tables(result.content)
    print(f"\n[*] Parsed {len(experts)} experts")
    return True


def main():
    parser = argparse.ArgumentParser(description="ReviewPanel multi-agent project review")
    parser.add_argument("--materials", "-m", nargs="+", default=[], help="Project material text files")
    parser.add_argument("--guidelines", "-g", nargs="*", default=[], help="Guideline text files")
    parser.add_argument("--project", "-p", default="local", help="Project id")
    parser.add_argument("--stream", action="store_true", help="Run reviewers sequentially with progress events")
    parser.add_argument("--expert", action="store_true", help="Recommend review experts instead of reviewing")
    parser.add_argument("--mock", action="store_true", help="Use the mock transport (no API calls)")

    args = parser.parse_args()

    source = settings.model_copy(update={"llm_transport": "mock"}) if args.mock else settings
    try:
        config = OrchestratorConfig.from_settings(source)
    except ConfigError as e:
        print(f"[!] {e}", file=sys.stderr)
        sys.exit(2)

    gateway = ModelGateway(config)
    store = InMemoryResultStore()
    materials = load_documents(args.materials)
    guidelines = load_documents(args.guidelines)

    if args.expert:
        ok = asyncio.run(run_expert(ExpertRecommendationAgent(config, gateway, store=store), args.project, materials))
    else:
        orchestrator = ReviewOrchestrator(config, gateway, store=store)
        runner = stream_review if args.stream else run_review
        ok = asyncio.run(runner(orchestrator, args.project, materials, guidelines))

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
