"""
Conflict detection over a ScanResult.

Two kinds of anomaly are reported per skill name:

- DUPLICATE_UNMANAGED (error): two or more physical directories at
  distinct paths. The same path seen twice is not a conflict.
- DUPLICATE_MANAGED (informational): two or more symlinks that all resolve
  into the same repository entry. This is the normal shape of a skill
  synced to several agents; it is surfaced only for visibility.

Detection is a pure function of the scan snapshot. Formatting helpers at
the bottom are presentation only.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from .models import Installation
from .scanner import ScanResult


class ConflictKind(Enum):
    DUPLICATE_UNMANAGED = "duplicate-unmanaged"
    DUPLICATE_MANAGED = "duplicate-managed"

    def is_error(self) -> bool:
        return self is ConflictKind.DUPLICATE_UNMANAGED

    def label(self) -> str:
        return self.value.replace("-", " ")

    def description(self) -> str:
        if self is ConflictKind.DUPLICATE_UNMANAGED:
            return (
                "Multiple physical directories with the same skill name. "
                "Only one should exist or they should be consolidated."
            )
        return (
            "Multiple symlinks pointing to the same managed skill. "
            "This is normal behavior for a managed skill."
        )


@dataclass
class ConflictLocation:
    agent: str
    path: Path
    is_managed: bool
    repo_path: Path | None = None

    @classmethod
    def from_installation(
        cls, installation: Installation, repo_path: Path | None
    ) -> "ConflictLocation":
        return cls(
            agent=installation.agent.value,
            path=installation.path,
            is_managed=repo_path is not None,
            repo_path=repo_path,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent": self.agent,
            "path": str(self.path),
            "is_managed": self.is_managed,
            "repo_path": str(self.repo_path) if self.repo_path else None,
        }


@dataclass
class Conflict:
    skill_name: str
    locations: list[ConflictLocation]
    kind: ConflictKind

    def is_error(self) -> bool:
        return self.kind.is_error()

    def summary(self) -> str:
        return f"{self.skill_name}: {self.kind.label()} at {len(self.locations)} location(s)"

    def recommendations(self) -> list[str]:
        if self.kind is ConflictKind.DUPLICATE_UNMANAGED:
            return [
                "Remove duplicate skill directories and keep only one",
                "Use 'sikil adopt' to manage one of the duplicates",
                "Rename conflicting directories to use unique skill names",
            ]
        return ["No action needed - this is normal for managed skills"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_name": self.skill_name,
            "kind": self.kind.value,
            "is_error": self.is_error(),
            "locations": [loc.to_dict() for loc in self.locations],
        }


def detect_conflicts(result: ScanResult) -> list[Conflict]:
    """Classify duplicate installations for every skill in ``result``."""
    conflicts: list[Conflict] = []

    for name, skill in result.skills.items():
        unmanaged: list[ConflictLocation] = []
        managed: list[ConflictLocation] = []
        repo_entries: set[Path] = set()

        for installation in skill.installations:
            entry = installation.repo_entry(result.repo_path)
            location = ConflictLocation.from_installation(installation, entry)
            if entry is None:
                unmanaged.append(location)
            else:
                managed.append(location)
                repo_entries.add(entry)

        if len({loc.path for loc in unmanaged}) > 1:
            conflicts.append(Conflict(name, unmanaged, ConflictKind.DUPLICATE_UNMANAGED))

        if len(managed) >= 2 and len(repo_entries) == 1:
            conflicts.append(Conflict(name, managed, ConflictKind.DUPLICATE_MANAGED))

    return conflicts


def filter_error_conflicts(conflicts: list[Conflict]) -> list[Conflict]:
    return [c for c in conflicts if c.is_error()]


def filter_displayable_conflicts(conflicts: list[Conflict], verbose: bool) -> list[Conflict]:
    if verbose:
        return list(conflicts)
    return filter_error_conflicts(conflicts)


def format_conflict(conflict: Conflict) -> str:
    indicator = "✗" if conflict.is_error() else "ℹ"
    lines = [
        f"{indicator} {conflict.skill_name} ({conflict.kind.label()})",
        f"  {conflict.kind.description()}",
        "  Locations:",
    ]
    for i, loc in enumerate(conflict.locations, start=1):
        status = "managed" if loc.is_managed else "unmanaged"
        lines.append(f"    {i}. {loc.agent} ({status}) @ {loc.path}")
        if loc.repo_path is not None:
            lines.append(f"       → repo: {loc.repo_path}")
    return "\n".join(lines) + "\n"


def format_conflicts_summary(conflicts: list[Conflict]) -> str:
    errors = len(filter_error_conflicts(conflicts))
    infos = len(conflicts) - errors
    if not conflicts:
        return "No conflicts detected"
    parts = []
    if errors:
        parts.append(f"{errors} error{'s' if errors != 1 else ''}")
    if infos:
        parts.append(f"{infos} informational")
    return f"{len(conflicts)} conflict(s) detected: " + ", ".join(parts)
