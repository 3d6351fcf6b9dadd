"""
Configuration for the build core.

Values come from the process environment (populated from a .env file by
python-dotenv) and are validated by pydantic models. Nothing here is a
global: callers construct Settings and pass the pieces down.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

LOG_FORMAT = "[%(name)s] %(levelname)s %(message)s"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class PlannerConfig(BaseModel):
    """Task graph planner settings."""
    max_tasks_per_graph: int = Field(default=50, ge=1)
    max_replan_attempts: int = Field(default=3, ge=0)
    enable_parallel_detection: bool = True
    validate_architecture: bool = True

    @classmethod
    def from_env(cls) -> "PlannerConfig":
        return cls(
            max_tasks_per_graph=int(_env("BUILD_CORE_MAX_TASKS_PER_GRAPH", "50")),
            max_replan_attempts=int(_env("BUILD_CORE_MAX_REPLAN_ATTEMPTS", "3")),
            enable_parallel_detection=_env_bool("BUILD_CORE_PARALLEL_DETECTION", True),
            validate_architecture=_env_bool("BUILD_CORE_VALIDATE_ARCHITECTURE", True),
        )


class AgentLoopConfig(BaseModel):
    """Agent execution loop settings."""
    max_turns: int = Field(default=8, ge=1)
    confidence_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    work_budget: int = Field(default=50000, ge=0)
    tools_enabled: bool = True
    thinking_model: str = "qwen2.5:7b"
    final_model: str = "qwen2.5:14b"
    fallback_confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @classmethod
    def from_env(cls) -> "AgentLoopConfig":
        return cls(
            max_turns=int(_env("BUILD_CORE_MAX_TURNS", "8")),
            confidence_threshold=float(_env("BUILD_CORE_CONFIDENCE_THRESHOLD", "0.85")),
            work_budget=int(_env("BUILD_CORE_WORK_BUDGET", "50000")),
            tools_enabled=_env_bool("BUILD_CORE_TOOLS_ENABLED", True),
            thinking_model=_env("BUILD_CORE_THINKING_MODEL", "qwen2.5:7b"),
            final_model=_env("BUILD_CORE_FINAL_MODEL", "qwen2.5:14b"),
        )


class SwarmConfig(BaseModel):
    """Swarm executor settings."""
    max_concurrency: int = Field(default=8, ge=1)
    default_timeout_seconds: float = Field(default=60.0, gt=0)
    assumed_success_quality: float = Field(default=0.85, ge=0.0, le=1.0)
    breaker_failure_threshold: int = Field(default=3, ge=1)
    breaker_cooldown_seconds: float = Field(default=600.0, ge=0)

    @classmethod
    def from_env(cls) -> "SwarmConfig":
        return cls(
            max_concurrency=int(_env("BUILD_CORE_SWARM_CONCURRENCY", "8")),
            default_timeout_seconds=float(_env("BUILD_CORE_SWARM_TIMEOUT", "60")),
            breaker_failure_threshold=int(_env("BUILD_CORE_BREAKER_THRESHOLD", "3")),
            breaker_cooldown_seconds=float(_env("BUILD_CORE_BREAKER_COOLDOWN", "600")),
        )


class LLMConfig(BaseModel):
    """HTTP model client settings."""
    api_url: str = "http://localhost:11434/v1/chat/completions"
    api_key: str = ""
    default_model: str = "qwen2.5:7b"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4000, ge=1)
    timeout_seconds: float = Field(default=120.0, gt=0)
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        return cls(
            api_url=_env("LLM_API_URL", "http://localhost:11434/v1/chat/completions"),
            api_key=_env("LLM_API_KEY", ""),
            default_model=_env("LLM_MODEL", "qwen2.5:7b"),
            temperature=float(_env("LLM_TEMPERATURE", "0.7")),
            max_tokens=int(_env("LLM_MAX_TOKENS", "4000")),
        )


class BudgetConfig(BaseModel):
    """Spend limits in USD."""
    daily_budget: float = Field(default=5.0, ge=0)
    hourly_budget: float = Field(default=1.0, ge=0)
    downgrade_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    critical_only_threshold: float = Field(default=0.9, ge=0.0, le=1.0)

    @classmethod
    def from_env(cls) -> "BudgetConfig":
        return cls(
            daily_budget=float(_env("BUILD_CORE_DAILY_BUDGET", "5.0")),
            hourly_budget=float(_env("BUILD_CORE_HOURLY_BUDGET", "1.0")),
        )


class Settings(BaseModel):
    """All build core settings."""
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    agent_loop: AgentLoopConfig = Field(default_factory=AgentLoopConfig)
    swarm: SwarmConfig = Field(default_factory=SwarmConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """Load .env (if present) and build settings from the environment."""
        load_dotenv(dotenv_path)
        return cls(
            planner=PlannerConfig.from_env(),
            agent_loop=AgentLoopConfig.from_env(),
            swarm=SwarmConfig.from_env(),
            llm=LLMConfig.from_env(),
            budget=BudgetConfig.from_env(),
            log_level=_env("BUILD_CORE_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("build_core")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(getattr(h, "_build_core", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._build_core = True
        logger.addHandler(handler)

    return logger
