from __future__ import annotations

import pytest

from app.config import OrchestratorConfig, TransportMode
from app.models.review import ReviewDocument
from app.services.result_store import InMemoryResultStore
from tests.fakes import FakeGateway


@pytest.fixture
def config() -> OrchestratorConfig:
    return OrchestratorConfig(transport_mode=TransportMode.MOCK)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> InMemoryResultStore:
    return InMemoryResultStore()


@pytest.fixture
def materials() -> list[ReviewDocument]:
    return [
        ReviewDocument(
            id="m1",
            display_name="business_plan.txt",
            text_content="Solid-state battery pilot line with a sulfide electrolyte and AI-based cell inspection.",
        )
    ]


@pytest.fixture
def guidelines() -> list[ReviewDocument]:
    return [
        ReviewDocument(
            id="g1",
            display_name="call_2026.txt",
            text_content="Applicants must be registered locally and hold at least two patents.",
        )
    ]
