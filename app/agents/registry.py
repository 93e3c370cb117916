from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable

from app.config import OrchestratorConfig
from app.models.review import AgentRole

REVIEWER_ROLES: tuple[AgentRole, ...] = (
    AgentRole.REVIEWER_A,
    AgentRole.REVIEWER_B,
    AgentRole.REVIEWER_C,
)

_DESCRIPTIONS: dict[AgentRole, tuple[str, str]] = {
    AgentRole.REVIEWER_A: (
        "Reviewer A",
        "Independent full review with emphasis on risk control and compliance detail",
    ),
    AgentRole.REVIEWER_B: (
        "Reviewer B",
        "Independent full review with emphasis on technical innovation and application outlook",
    ),
    AgentRole.REVIEWER_C: (
        "Reviewer C",
        "Independent full review with emphasis on team qualifications and resources",
    ),
    AgentRole.SYNTHESIZER: (
        "Chief Review Officer",
        "Consolidates the independent reviews, cross-checks them and issues the final resolution",
    ),
    AgentRole.EXPERT_HUNTER: (
        "Expert Selection",
        "Searches for and recommends matching expert reviewers for the project's fields",
    ),
}


@dataclass(frozen=True, slots=True)
class AgentProfile:
    role: AgentRole
    display_name: str
    description: str
    model_id: str
    default_focus: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "role": self.role.value,
            "name": self.display_name,
            "description": self.description,
            "model": self.model_id,
            "focus": self.default_focus,
        }


def _model_label(model_id: str) -> str:
    return model_id.rsplit("/", 1)[-1] or model_id


class AgentRegistry:
    """Read-only role -> profile lookup.

    Reviewers keep their configured order; the orchestrator iterates them
    instead of naming slots.
    """

    def __init__(self, profiles: Iterable[AgentProfile]):
        ordered = tuple(profiles)
        self._profiles = MappingProxyType({p.role: p for p in ordered})
        self._reviewers = tuple(p for p in ordered if p.role in REVIEWER_ROLES)

    @classmethod
    def from_config(cls, config: OrchestratorConfig) -> "AgentRegistry":
        if not config.reviewer_models or len(config.reviewer_models) > len(REVIEWER_ROLES):
            raise ValueError(
                f"Between 1 and {len(REVIEWER_ROLES)} reviewer models are required, "
                f"got {len(config.reviewer_models)}"
            )
        profiles: list[AgentProfile] = []
        for idx, model in enumerate(config.reviewer_models):
            role = REVIEWER_ROLES[idx]
            label, description = _DESCRIPTIONS[role]
            focus = config.reviewer_focus[idx] if idx < len(config.reviewer_focus) else ""
            profiles.append(
                AgentProfile(
                    role=role,
                    display_name=f"{label} ({_model_label(model)})",
                    description=description,
                    model_id=model,
                    default_focus=focus,
                )
            )
        for role, model in (
            (AgentRole.SYNTHESIZER, config.synthesizer_model),
            (AgentRole.EXPERT_HUNTER, config.expert_model),
        ):
            label, description = _DESCRIPTIONS[role]
            profiles.append(
                AgentProfile(role=role, display_name=label, description=description, model_id=model)
            )
        return cls(profiles)

    def get(self, role: AgentRole) -> AgentProfile:
        try:
            return self._profiles[role]
        except KeyError:
            raise KeyError(f"Unknown agent role: {role!r}") from None

    @property
    def reviewers(self) -> tuple[AgentProfile, ...]:
        return self._reviewers

    @property
    def synthesizer(self) -> AgentProfile:
        return self.get(AgentRole.SYNTHESIZER)

    @property
    def expert_hunter(self) -> AgentProfile:
        return self.get(AgentRole.EXPERT_HUNTER)

    def all(self) -> tuple[AgentProfile, ...]:
        return tuple(self._profiles.values())

    def model_for(self, role: AgentRole) -> str:
        return self.get(role).model_id
