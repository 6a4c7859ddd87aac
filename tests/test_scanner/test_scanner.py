"""
Tests for the Scanner: discovery, merging by header name, managed
classification, error collection and cache integration.
"""

import os
from pathlib import Path

import pytest

from sikil.core.cache import ScanCache
from sikil.core.errors import DirectoryNotFound
from sikil.core.models import Agent, Scope
from sikil.core.scanner import AgentDirectories, ScanResult, Scanner


def write_skill(parent: Path, dirname: str, name: str | None = None, description: str = "d") -> Path:
    path = parent / dirname
    path.mkdir(parents=True)
    (path / "SKILL.md").write_text(
        f"---\nname: {name or dirname}\ndescription: {description}\n---\n# {dirname}\n"
    )
    return path


@pytest.fixture
def env(tmp_path: Path) -> dict[str, Path]:
    dirs = {
        "repo": tmp_path / "repo",
        "claude": tmp_path / "claude",
        "windsurf": tmp_path / "windsurf",
        "workspace": tmp_path / "project" / ".claude" / "skills",
    }
    for key in ("repo", "claude", "windsurf"):
        dirs[key].mkdir(parents=True)
    return dirs


def make_scanner(env: dict[str, Path], cache: ScanCache | None = None) -> Scanner:
    agents = [
        AgentDirectories(Agent.CLAUDE_CODE, True, env["claude"], env["workspace"]),
        AgentDirectories(Agent.WINDSURF, True, env["windsurf"], env["windsurf"].parent / "nope"),
    ]
    return Scanner(agents, env["repo"], cache)


# ── Tests: scan_directory ────────────────────────────────────────────


class TestScanDirectory:
    def test_finds_skills(self, env):
        write_skill(env["claude"], "pdf")
        write_skill(env["claude"], "xlsx")
        scanner = make_scanner(env)
        result = scanner.new_result()
        scanner.scan_directory(env["claude"], Agent.CLAUDE_CODE, Scope.GLOBAL, result)
        assert list(result.skills) == ["pdf", "xlsx"]
        assert result.entries_found == 2

    def test_skips_hidden_and_files(self, env):
        write_skill(env["claude"], ".hidden")
        (env["claude"] / "README.md").write_text("hi")
        scanner = make_scanner(env)
        result = scanner.new_result()
        scanner.scan_directory(env["claude"], Agent.CLAUDE_CODE, Scope.GLOBAL, result)
        assert result.skill_count() == 0
        assert result.errors == []

    def test_invalid_entry_recorded_and_skipped(self, env):
        write_skill(env["claude"], "good")
        bad = env["claude"] / "bad"
        bad.mkdir()
        (bad / "SKILL.md").write_text("no frontmatter")
        (env["claude"] / "empty").mkdir()

        scanner = make_scanner(env)
        result = scanner.new_result()
        scanner.scan_directory(env["claude"], Agent.CLAUDE_CODE, Scope.GLOBAL, result)

        assert list(result.skills) == ["good"]
        error_paths = [p for p, _ in result.errors]
        assert bad / "SKILL.md" in error_paths
        assert env["claude"] / "empty" / "SKILL.md" in error_paths

    def test_missing_directory(self, env):
        scanner = make_scanner(env)
        with pytest.raises(DirectoryNotFound):
            scanner.scan_directory(
                env["claude"] / "missing", Agent.CLAUDE_CODE, Scope.GLOBAL, scanner.new_result()
            )

    def test_directory_name_may_differ_from_header_name(self, env):
        write_skill(env["claude"], "folder", name="real-name")
        scanner = make_scanner(env)
        result = scanner.new_result()
        scanner.scan_directory(env["claude"], Agent.CLAUDE_CODE, Scope.GLOBAL, result)
        skill = result.get("real-name")
        assert skill is not None
        assert skill.directory_name == "folder"

    def test_symlink_records_targets(self, env):
        entry = write_skill(env["repo"], "pdf")
        os.symlink(entry, env["claude"] / "pdf")
        scanner = make_scanner(env)
        result = scanner.new_result()
        scanner.scan_directory(env["claude"], Agent.CLAUDE_CODE, Scope.GLOBAL, result)

        inst = result.get("pdf").installations[0]
        assert inst.is_symlink is True
        assert inst.symlink_target == entry
        assert inst.resolved_target == entry.resolve()

    def test_broken_symlink_is_error(self, env):
        os.symlink(env["repo"] / "gone", env["claude"] / "gone")
        scanner = make_scanner(env)
        result = scanner.new_result()
        scanner.scan_directory(env["claude"], Agent.CLAUDE_CODE, Scope.GLOBAL, result)
        assert result.skill_count() == 0
        assert len(result.errors) == 1


# ── Tests: scan_all_agents ───────────────────────────────────────────


class TestScanAllAgents:
    def test_merges_by_name_across_agents(self, env):
        write_skill(env["claude"], "pdf")
        write_skill(env["windsurf"], "pdf")
        result = make_scanner(env).scan_all_agents()
        skill = result.get("pdf")
        assert [i.agent for i in skill.installations] == [Agent.CLAUDE_CODE, Agent.WINDSURF]
        assert result.entries_found == 2

    def test_global_before_workspace(self, env):
        write_skill(env["workspace"], "pdf")
        write_skill(env["claude"], "pdf")
        result = make_scanner(env).scan_all_agents()
        scopes = [i.scope for i in result.get("pdf").installations]
        assert scopes == [Scope.GLOBAL, Scope.WORKSPACE]

    def test_disabled_agent_skipped(self, env):
        write_skill(env["windsurf"], "pdf")
        scanner = make_scanner(env)
        scanner.agents[1].enabled = False
        assert scanner.scan_all_agents().skill_count() == 0

    def test_missing_paths_are_not_errors(self, env, tmp_path):
        scanner = Scanner(
            [AgentDirectories(Agent.AMP, True, tmp_path / "x", tmp_path / "y")],
            tmp_path / "no-repo",
        )
        result = scanner.scan_all_agents()
        assert result.skill_count() == 0
        assert result.errors == []

    def test_unreadable_directory_recorded(self, env, monkeypatch):
        write_skill(env["windsurf"], "pdf")
        real_scandir = os.scandir

        def flaky(path):
            if Path(path) == env["claude"]:
                raise PermissionError("denied")
            return real_scandir(path)

        monkeypatch.setattr("sikil.core.scanner.os.scandir", flaky)
        result = make_scanner(env).scan_all_agents()
        assert result.get("pdf") is not None
        assert any(p == env["claude"] for p, _ in result.errors)

    def test_managed_classification(self, env):
        entry = write_skill(env["repo"], "pdf")
        os.symlink(entry, env["claude"] / "pdf")
        write_skill(env["windsurf"], "local")

        result = make_scanner(env).scan_all_agents()
        assert result.get("pdf").is_managed
        assert result.get("pdf").repo_path == entry.resolve()
        assert not result.get("local").is_managed
        assert result.repository == {"pdf": entry.resolve()}

    def test_symlink_outside_repo_is_unmanaged(self, env, tmp_path):
        outside = write_skill(tmp_path / "elsewhere", "pdf")
        os.symlink(outside, env["claude"] / "pdf")
        result = make_scanner(env).scan_all_agents()
        assert not result.get("pdf").is_managed

    def test_orphaned_repository_entries(self, env):
        linked = write_skill(env["repo"], "pdf")
        write_skill(env["repo"], "lonely")
        os.symlink(linked, env["claude"] / "pdf")
        result = make_scanner(env).scan_all_agents()
        assert list(result.orphaned_repository_entries()) == ["lonely"]

    def test_repository_entries_not_counted_as_installations(self, env):
        entry = write_skill(env["repo"], "pdf")
        write_skill(env["repo"], "lonely")
        os.symlink(entry, env["claude"] / "pdf")
        result = make_scanner(env).scan_all_agents()
        assert result.entries_found == 1
        assert len(result.repository) == 2

    def test_invalid_repository_entry_is_error(self, env):
        (env["repo"] / "broken").mkdir()
        result = make_scanner(env).scan_all_agents()
        assert result.repository == {}
        assert len(result.errors) == 1

    def test_deterministic(self, env):
        for name in ("c", "a", "b"):
            write_skill(env["claude"], name)
        first = make_scanner(env).scan_all_agents()
        second = make_scanner(env).scan_all_agents()
        assert list(first.skills) == list(second.skills) == ["a", "b", "c"]


# ── Tests: cache integration ─────────────────────────────────────────


class TestScannerCache:
    def test_second_scan_hits(self, env, tmp_path):
        write_skill(env["claude"], "pdf")
        write_skill(env["windsurf"], "xlsx")
        cache = ScanCache(tmp_path / "cache.json")

        first = make_scanner(env, cache).scan_all_agents()
        assert first.cache_hits == 0
        assert first.cache_misses == 2

        second = make_scanner(env, cache).scan_all_agents()
        assert second.cache_hits == 2
        assert second.cache_misses == 0
        assert second.get("pdf").metadata == first.get("pdf").metadata

    def test_modified_header_reparsed(self, env, tmp_path):
        pdf = write_skill(env["claude"], "pdf", description="old")
        write_skill(env["windsurf"], "xlsx")
        cache = ScanCache(tmp_path / "cache.json")
        make_scanner(env, cache).scan_all_agents()

        header = pdf / "SKILL.md"
        header.write_text("---\nname: pdf\ndescription: new\n---\n")
        stat = header.stat()
        os.utime(header, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        result = make_scanner(env, cache).scan_all_agents()
        assert result.get("pdf").metadata.description == "new"
        assert result.cache_misses == 1
        assert result.cache_hits == 1

    def test_cached_invalid_entry_still_reported(self, env, tmp_path):
        bad = env["claude"] / "bad"
        bad.mkdir()
        (bad / "SKILL.md").write_text("nothing")
        cache = ScanCache(tmp_path / "cache.json")
        make_scanner(env, cache).scan_all_agents()
        result = make_scanner(env, cache).scan_all_agents()
        assert len(result.errors) == 1
        assert "missing frontmatter" in result.errors[0][1]

    def test_cache_write_failure_does_not_fail_scan(self, env, tmp_path, monkeypatch):
        write_skill(env["claude"], "pdf")

        def fail(src, dst):
            raise OSError("read-only")

        monkeypatch.setattr("sikil.core.cache.os.replace", fail)
        result = make_scanner(env, ScanCache(tmp_path / "cache.json")).scan_all_agents()
        assert result.get("pdf") is not None


# ── Tests: ScanResult ────────────────────────────────────────────────


class TestScanResult:
    def test_add_error(self):
        result = ScanResult()
        result.add_error(Path("/x"), "boom")
        assert result.errors == [(Path("/x"), "boom")]

    def test_get_missing(self):
        assert ScanResult().get("nope") is None
