"""
Agent profiles: per-agent routing preferences.
"""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .models import RouteConstraints


class AgentProfile(BaseModel):
    """Routing preferences for one agent."""
    agent_id: str
    task_type: str = "general"
    min_quality: float = Field(default=0.0, ge=0.0, le=1.0)
    preferred_models: List[str] = Field(default_factory=list)
    max_cost_per_call: Optional[float] = Field(default=None, ge=0)


DEFAULT_PROFILES: List[AgentProfile] = [
    AgentProfile(agent_id="SUN", task_type="planning", min_quality=0.8),
    AgentProfile(agent_id="VENUS", task_type="design", min_quality=0.75),
    AgentProfile(agent_id="MERCURY", task_type="analysis", min_quality=0.7),
    AgentProfile(agent_id="MARS", task_type="implementation", min_quality=0.8),
    AgentProfile(agent_id="SATURN", task_type="testing", min_quality=0.7),
]


class AgentProfileManager:
    """Looks up routing constraints by agent. Unknown agents get permissive defaults."""

    def __init__(self, profiles: Optional[Iterable[AgentProfile]] = None):
        self._profiles: Dict[str, AgentProfile] = {}
        for profile in (profiles if profiles is not None else DEFAULT_PROFILES):
            self.set_profile(profile)

    def set_profile(self, profile: AgentProfile) -> None:
        self._profiles[profile.agent_id.upper()] = profile

    def get_profile(self, agent_id: str) -> Optional[AgentProfile]:
        return self._profiles.get(agent_id.upper())

    def get_constraints(self, agent_id: str) -> RouteConstraints:
        profile = self.get_profile(agent_id)
        if profile is None:
            return RouteConstraints()
        return RouteConstraints(
            min_quality=profile.min_quality,
            max_cost=profile.max_cost_per_call,
            preferred_models=list(profile.preferred_models),
        )
