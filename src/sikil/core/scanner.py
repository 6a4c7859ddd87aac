"""
Skill discovery across agent directories.

A skill is an immediate, non-dot subdirectory of an agent directory that
holds a valid SKILL.md. Each agent directory is scanned into one shared
ScanResult; skills with the same header name are merged into a single
Skill carrying every installation in discovery order.

One bad entry never aborts a scan: it is recorded in ``ScanResult.errors``
and skipped. A missing agent directory only fails that directory.
"""

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ..filesystem.symlinks import is_symlink, read_symlink_target
from .cache import ScanCache, ScanEntry, now_seconds
from .errors import DirectoryNotFound, InvalidSkillHeader, SikilError, SymlinkError
from .models import Agent, Installation, Scope, Skill, SkillHeader
from .parser import SKILL_FILE, parse_skill_header_text

logger = structlog.get_logger()


@dataclass
class AgentDirectories:
    """Resolved directories for one agent."""

    agent: Agent
    enabled: bool
    global_path: Path
    workspace_path: Path


@dataclass
class ScanResult:
    """Aggregate of one scan."""

    repo_path: Path | None = None
    skills: dict[str, Skill] = field(default_factory=dict)
    repository: dict[str, Path] = field(default_factory=dict)
    entries_found: int = 0
    errors: list[tuple[Path, str]] = field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0

    def add_installation(
        self, header: SkillHeader, directory_name: str, installation: Installation
    ) -> None:
        """Fold one installation into the skill keyed by its header name."""
        self.entries_found += 1
        skill = self.skills.get(header.name)
        if skill is None:
            skill = Skill(metadata=header, directory_name=directory_name)
            self.skills[header.name] = skill
        skill.add_installation(installation, self.repo_path)

    def add_error(self, path: Path, message: str) -> None:
        self.errors.append((path, message))

    def skill_count(self) -> int:
        return len(self.skills)

    def all_skills(self) -> list[Skill]:
        return list(self.skills.values())

    def get(self, name: str) -> Skill | None:
        return self.skills.get(name)

    def orphaned_repository_entries(self) -> dict[str, Path]:
        """Repository entries that no agent links to."""
        orphans: dict[str, Path] = {}
        for name, path in self.repository.items():
            skill = self.skills.get(name)
            if skill is None or not any(
                i.repo_entry(self.repo_path) == path for i in skill.installations
            ):
                orphans[name] = path
        return orphans


class Scanner:
    """Scans agent directories and the managed repository."""

    def __init__(
        self,
        agents: list[AgentDirectories],
        repo_path: Path,
        cache: ScanCache | None = None,
    ) -> None:
        self.agents = agents
        self.repo_path = Path(repo_path)
        self.cache = cache

    def new_result(self) -> ScanResult:
        try:
            real_repo = self.repo_path.resolve()
        except (OSError, RuntimeError):
            real_repo = self.repo_path
        return ScanResult(repo_path=real_repo)

    def scan_all_agents(self) -> ScanResult:
        """Scan every enabled agent, global scope then workspace scope."""
        result = self.new_result()

        for dirs in self.agents:
            if not dirs.enabled:
                continue
            for path, scope in (
                (dirs.global_path, Scope.GLOBAL),
                (dirs.workspace_path, Scope.WORKSPACE),
            ):
                if not path.exists():
                    continue
                try:
                    self.scan_directory(path, dirs.agent, scope, result)
                except DirectoryNotFound as e:
                    result.add_error(path, str(e))
                    logger.warning("scan.directory_failed", path=str(path), error=str(e))

        if self.repo_path.is_dir():
            self.scan_repository(result)

        logger.info(
            "scan.completed",
            skills=result.skill_count(),
            entries=result.entries_found,
            repository=len(result.repository),
            errors=len(result.errors),
            cache_hits=result.cache_hits,
            cache_misses=result.cache_misses,
        )
        return result

    def scan_directory(
        self, path: Path, agent: Agent, scope: Scope, result: ScanResult
    ) -> None:
        """Scan one agent directory into ``result``.

        Raises:
            DirectoryNotFound: ``path`` is missing, not a directory, or unreadable
        """
        path = Path(path)
        if not path.is_dir():
            raise DirectoryNotFound(path)

        try:
            with os.scandir(path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise DirectoryNotFound(path) from e

        for entry in entries:
            if entry.name.startswith("."):
                continue

            entry_path = Path(entry.path)
            linked = is_symlink(entry_path)
            if not linked and not entry.is_dir(follow_symlinks=False):
                continue

            try:
                header = self._load_header(entry_path, result)
            except SikilError as e:
                result.add_error(entry_path / SKILL_FILE, str(e))
                logger.debug("scan.entry_skipped", path=str(entry_path), error=str(e))
                continue

            installation = Installation(
                agent=agent, path=entry_path, scope=scope, is_symlink=linked,
            )
            if linked:
                installation.symlink_target = _link_text(entry_path)
                installation.resolved_target = _real_path(entry_path)

            result.add_installation(header, entry.name, installation)

    def scan_repository(self, result: ScanResult) -> None:
        """Record every valid skill directory in the managed repository."""
        try:
            with os.scandir(self.repo_path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            result.add_error(self.repo_path, str(DirectoryNotFound(self.repo_path)))
            logger.warning("scan.repository_failed", path=str(self.repo_path), error=str(e))
            return

        for entry in entries:
            if entry.name.startswith(".") or not entry.is_dir(follow_symlinks=False):
                continue
            entry_path = Path(entry.path)
            try:
                header = self._load_header(entry_path, result)
            except SikilError as e:
                result.add_error(entry_path / SKILL_FILE, str(e))
                continue
            result.repository[header.name] = (result.repo_path or self.repo_path) / entry.name

    def _load_header(self, skill_dir: Path, result: ScanResult) -> SkillHeader:
        if self.cache is not None:
            cached = self.cache.get(skill_dir)
            if cached is not None and cached.is_valid_skill and cached.metadata:
                try:
                    header = SkillHeader.from_dict(cached.metadata)
                except (KeyError, TypeError):
                    header = None
                if header is not None:
                    result.cache_hits += 1
                    return header
            result.cache_misses += 1

        header_file = skill_dir / SKILL_FILE
        if not header_file.is_file():
            raise InvalidSkillHeader(
                skill_dir, f"{SKILL_FILE} not found in directory '{skill_dir.name}'"
            )

        try:
            stat = header_file.stat()
            raw = header_file.read_bytes()
        except OSError as e:
            raise InvalidSkillHeader(header_file, f"failed to read file: {e}") from e

        try:
            header = parse_skill_header_text(raw.decode("utf-8"), header_file)
        except UnicodeDecodeError as e:
            self._remember(skill_dir, stat, raw, None)
            raise InvalidSkillHeader(header_file, f"failed to read file: {e}") from e
        except InvalidSkillHeader:
            self._remember(skill_dir, stat, raw, None)
            raise

        self._remember(skill_dir, stat, raw, header)
        return header

    def _remember(
        self, skill_dir: Path, stat: os.stat_result, raw: bytes, header: SkillHeader | None
    ) -> None:
        if self.cache is None:
            return
        entry = ScanEntry(
            path=skill_dir,
            mtime=stat.st_mtime_ns,
            size=stat.st_size,
            content_hash=hashlib.sha256(raw).hexdigest(),
            cached_at=now_seconds(),
            skill_name=header.name if header else None,
            is_valid_skill=header is not None,
            metadata=header.to_dict() if header else None,
        )
        try:
            self.cache.put(entry)
        except SikilError as e:
            logger.warning("cache.write_failed", path=str(skill_dir), error=str(e))


def _link_text(path: Path) -> Path | None:
    try:
        return read_symlink_target(path)
    except SymlinkError:
        return None


def _real_path(path: Path) -> Path | None:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError):
        return None
