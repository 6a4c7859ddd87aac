"""
Tests for conflict detection and its text presentation.
"""

from pathlib import Path

from sikil.core.conflicts import (
    ConflictKind,
    detect_conflicts,
    filter_displayable_conflicts,
    filter_error_conflicts,
    format_conflict,
    format_conflicts_summary,
)
from sikil.core.models import Agent, Installation, Scope, SkillHeader
from sikil.core.scanner import ScanResult

REPO = Path("/home/u/.sikil/repo")


def physical(agent: Agent, path: str) -> Installation:
    return Installation(agent, Path(path), Scope.GLOBAL, is_symlink=False)


def linked(agent: Agent, path: str, target: Path) -> Installation:
    return Installation(
        agent, Path(path), Scope.GLOBAL, is_symlink=True,
        symlink_target=target, resolved_target=target,
    )


def result_with(*installations: Installation, name: str = "pdf") -> ScanResult:
    result = ScanResult(repo_path=REPO)
    for inst in installations:
        result.add_installation(SkillHeader(name, "d"), name, inst)
    return result


# ── Tests: detection ─────────────────────────────────────────────────


class TestDetectConflicts:
    def test_single_installation(self):
        assert detect_conflicts(result_with(physical(Agent.AMP, "/a/pdf"))) == []

    def test_two_physical_directories(self):
        conflicts = detect_conflicts(result_with(
            physical(Agent.CLAUDE_CODE, "/c/pdf"),
            physical(Agent.WINDSURF, "/w/pdf"),
        ))
        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.DUPLICATE_UNMANAGED
        assert conflicts[0].is_error()
        assert [loc.agent for loc in conflicts[0].locations] == ["claude-code", "windsurf"]

    def test_same_path_twice_is_not_a_conflict(self):
        conflicts = detect_conflicts(result_with(
            physical(Agent.CLAUDE_CODE, "/shared/pdf"),
            physical(Agent.AMP, "/shared/pdf"),
        ))
        assert conflicts == []

    def test_two_symlinks_to_same_entry(self):
        conflicts = detect_conflicts(result_with(
            linked(Agent.CLAUDE_CODE, "/c/pdf", REPO / "pdf"),
            linked(Agent.WINDSURF, "/w/pdf", REPO / "pdf"),
        ))
        assert len(conflicts) == 1
        assert conflicts[0].kind is ConflictKind.DUPLICATE_MANAGED
        assert not conflicts[0].is_error()
        assert all(loc.repo_path == REPO / "pdf" for loc in conflicts[0].locations)

    def test_symlinks_to_different_entries(self):
        conflicts = detect_conflicts(result_with(
            linked(Agent.CLAUDE_CODE, "/c/pdf", REPO / "pdf"),
            linked(Agent.WINDSURF, "/w/pdf", REPO / "pdf-copy"),
        ))
        assert conflicts == []

    def test_managed_plus_single_physical(self):
        conflicts = detect_conflicts(result_with(
            linked(Agent.CLAUDE_CODE, "/c/pdf", REPO / "pdf"),
            physical(Agent.WINDSURF, "/w/pdf"),
        ))
        assert conflicts == []

    def test_both_kinds_for_one_skill(self):
        conflicts = detect_conflicts(result_with(
            physical(Agent.CLAUDE_CODE, "/c/pdf"),
            physical(Agent.WINDSURF, "/w/pdf"),
            linked(Agent.AMP, "/a/pdf", REPO / "pdf"),
            linked(Agent.OPENCODE, "/o/pdf", REPO / "pdf"),
        ))
        kinds = [c.kind for c in conflicts]
        assert kinds == [ConflictKind.DUPLICATE_UNMANAGED, ConflictKind.DUPLICATE_MANAGED]

    def test_symlink_outside_repo_counts_as_unmanaged(self):
        conflicts = detect_conflicts(result_with(
            linked(Agent.CLAUDE_CODE, "/c/pdf", Path("/other/pdf")),
            physical(Agent.WINDSURF, "/w/pdf"),
        ))
        assert [c.kind for c in conflicts] == [ConflictKind.DUPLICATE_UNMANAGED]


# ── Tests: filtering and formatting ──────────────────────────────────


class TestPresentation:
    def _both(self):
        result = result_with(
            physical(Agent.CLAUDE_CODE, "/c/pdf"),
            physical(Agent.WINDSURF, "/w/pdf"),
        )
        for inst in (
            linked(Agent.CLAUDE_CODE, "/c/xlsx", REPO / "xlsx"),
            linked(Agent.AMP, "/a/xlsx", REPO / "xlsx"),
        ):
            result.add_installation(SkillHeader("xlsx", "d"), "xlsx", inst)
        return detect_conflicts(result)

    def test_filters(self):
        conflicts = self._both()
        assert len(filter_error_conflicts(conflicts)) == 1
        assert len(filter_displayable_conflicts(conflicts, verbose=False)) == 1
        assert len(filter_displayable_conflicts(conflicts, verbose=True)) == 2

    def test_format_conflict_markers(self):
        error, info = self._both()
        assert format_conflict(error).startswith("✗ pdf")
        assert format_conflict(info).startswith("ℹ xlsx")
        assert "→ repo:" in format_conflict(info)

    def test_summary(self):
        assert format_conflicts_summary([]) == "No conflicts detected"
        summary = format_conflicts_summary(self._both())
        assert "1 error" in summary
        assert "1 informational" in summary

    def test_recommendations_and_dict(self):
        error, info = self._both()
        assert any("adopt" in r for r in error.recommendations())
        data = info.to_dict()
        assert data["kind"] == "duplicate-managed"
        assert data["is_error"] is False
