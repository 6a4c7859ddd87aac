"""
Pydantic models for sikil configuration.

Defines the configuration schemas using Pydantic v2 for validation,
defaults, and serialization.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ..core.models import Agent
from ..core.scanner import AgentDirectories
from ..filesystem.paths import expand_path, get_cache_path, get_repo_path

DEFAULT_AGENT_PATHS: dict[str, tuple[str, str]] = {
    Agent.CLAUDE_CODE.value: ("~/.claude/skills", ".claude/skills"),
    Agent.WINDSURF.value: ("~/.codeium/windsurf/skills", ".windsurf/skills"),
    Agent.OPENCODE.value: ("~/.config/opencode/skill", ".opencode/skill"),
    Agent.KILO_CODE.value: ("~/.kilocode/skills", ".kilocode/skills"),
    Agent.AMP.value: ("~/.config/agents/skills", ".agents/skills"),
}


class AgentDirConfig(BaseModel):
    """Directories scanned for one agent."""

    enabled: bool = True
    global_path: str
    workspace_path: str

    model_config = {"extra": "forbid"}


def default_agents() -> dict[str, AgentDirConfig]:
    return {
        name: AgentDirConfig(global_path=global_path, workspace_path=workspace_path)
        for name, (global_path, workspace_path) in DEFAULT_AGENT_PATHS.items()
    }


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    level: Literal["debug", "info", "warn", "error"] = "warn"
    file: Path | None = None
    verbose: int = 0

    model_config = {"extra": "forbid"}


class CacheConfig(BaseModel):
    """Scan cache configuration."""

    enabled: bool = True
    path: str | None = Field(
        default=None,
        description="Cache file location. Defaults to <SIKIL_HOME>/cache.json.",
    )

    model_config = {"extra": "forbid"}

    def resolved_path(self) -> Path:
        return expand_path(self.path) if self.path else get_cache_path()


class AppConfig(BaseModel):
    """Complete application configuration.

    This is the root of the configuration tree. It combines all sections
    and is the entry point for validation.
    """

    agents: dict[str, AgentDirConfig] = Field(default_factory=default_agents)
    repo_path: str | None = Field(
        default=None,
        description="Managed repository. Defaults to <SIKIL_HOME>/repo.",
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = {"extra": "forbid"}

    @field_validator("agents")
    @classmethod
    def _known_agents(cls, value: dict[str, AgentDirConfig]) -> dict[str, AgentDirConfig]:
        unknown = [name for name in value if Agent.from_cli_name(name) is None]
        if unknown:
            known = ", ".join(a.value for a in Agent)
            raise ValueError(f"unknown agent(s) {unknown}; known agents: {known}")
        return value

    def resolved_repo_path(self) -> Path:
        return expand_path(self.repo_path) if self.repo_path else get_repo_path()

    def get_agent(self, agent: Agent) -> AgentDirConfig | None:
        return self.agents.get(agent.value)

    def enabled_agents(self) -> list[Agent]:
        return [d.agent for d in self.resolve_agents() if d.enabled]

    def resolve_agents(self, cwd: Path | None = None) -> list[AgentDirectories]:
        """Expand every agent's paths; relative workspace paths join ``cwd``."""
        base = cwd or Path.cwd()
        resolved: list[AgentDirectories] = []
        for name, cfg in self.agents.items():
            agent = Agent(name)
            global_path = expand_path(cfg.global_path)
            workspace_path = expand_path(cfg.workspace_path)
            if not workspace_path.is_absolute():
                workspace_path = base / workspace_path
            resolved.append(
                AgentDirectories(
                    agent=agent,
                    enabled=cfg.enabled,
                    global_path=global_path,
                    workspace_path=workspace_path,
                )
            )
        return resolved
