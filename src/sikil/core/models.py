"""
Skill data model.

Plain dataclasses, built fresh on every scan. Nothing here is persisted
as truth: ``Skill.is_managed`` and ``Skill.repo_path`` are derived from
the installations each time one is added.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class Agent(Enum):
    """Supported coding agents, keyed by their CLI name."""

    CLAUDE_CODE = "claude-code"
    WINDSURF = "windsurf"
    OPENCODE = "opencode"
    KILO_CODE = "kilo-code"
    AMP = "amp"

    @classmethod
    def all(cls) -> list["Agent"]:
        return list(cls)

    @classmethod
    def from_cli_name(cls, name: str) -> "Agent | None":
        try:
            return cls(name)
        except ValueError:
            return None

    @property
    def cli_name(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class Scope(Enum):
    """Where an installation applies."""

    GLOBAL = "global"
    WORKSPACE = "workspace"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SkillHeader:
    """Fields parsed from the SKILL.md frontmatter."""

    name: str
    description: str
    version: str | None = None
    author: str | None = None
    license: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "author": self.author,
            "license": self.license,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SkillHeader":
        return cls(
            name=data["name"],
            description=data["description"],
            version=data.get("version"),
            author=data.get("author"),
            license=data.get("license"),
        )


@dataclass
class Installation:
    """One physical location of a skill for one agent.

    ``is_symlink`` is tri-state: None means it was never checked.
    ``symlink_target`` is the raw link text; ``resolved_target`` is the
    real path at scan time (None for a broken link or a plain directory).
    """

    agent: Agent
    path: Path
    scope: Scope
    is_symlink: bool | None = None
    symlink_target: Path | None = None
    resolved_target: Path | None = None

    def repo_entry(self, repo_root: Path | None) -> Path | None:
        """Repository entry this installation links into, if any."""
        if repo_root is None or self.is_symlink is not True:
            return None
        if self.resolved_target is None:
            return None
        try:
            relative = self.resolved_target.relative_to(repo_root)
        except ValueError:
            return None
        if not relative.parts:
            return None
        return repo_root / relative.parts[0]

    def is_managed(self, repo_root: Path | None) -> bool:
        return self.repo_entry(repo_root) is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "agent": self.agent.value,
            "path": str(self.path),
            "scope": self.scope.value,
        }
        if self.is_symlink is not None:
            data["is_symlink"] = self.is_symlink
        if self.is_symlink and self.symlink_target is not None:
            data["symlink_target"] = str(self.symlink_target)
        return data


@dataclass
class Skill:
    """All installations that share one header name, across agents."""

    metadata: SkillHeader
    directory_name: str
    installations: list[Installation] = field(default_factory=list)
    is_managed: bool = False
    repo_path: Path | None = None

    def add_installation(self, installation: Installation, repo_root: Path | None) -> None:
        """Append an installation and re-derive the managed state."""
        self.installations.append(installation)
        self.refresh_managed(repo_root)

    def refresh_managed(self, repo_root: Path | None) -> None:
        self.is_managed = False
        self.repo_path = None
        for installation in self.installations:
            entry = installation.repo_entry(repo_root)
            if entry is not None:
                self.is_managed = True
                self.repo_path = entry

    def is_orphan(self) -> bool:
        return not self.installations

    def agents(self) -> list[Agent]:
        seen: list[Agent] = []
        for installation in self.installations:
            if installation.agent not in seen:
                seen.append(installation.agent)
        return seen

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.metadata.name,
            "directory_name": self.directory_name,
            "description": self.metadata.description,
            "version": self.metadata.version,
            "author": self.metadata.author,
            "license": self.metadata.license,
            "managed": self.is_managed,
            "repo_path": str(self.repo_path) if self.repo_path else None,
            "installations": [i.to_dict() for i in self.installations],
        }
