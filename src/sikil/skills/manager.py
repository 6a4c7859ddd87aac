"""
Skill Manager -- install, adopt, remove, unmanage and sync skills.

Every flow starts from a fresh scan, mutates the filesystem only through
sikil.filesystem (atomic copy/move/remove and the symlink helpers), and
drops the cache entries of every path it touched.

Multi-step flows undo their completed steps when a later step fails:
- install: a failed symlink removes the symlinks already created and the
  repository copy;
- adopt: a failed symlink moves the directory back;
- unmanage: a failed copy restores the symlink.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from ..config.schema import AppConfig
from ..core.cache import ScanCache
from ..core.errors import (
    AlreadyExists,
    DirectoryNotFound,
    NotADirectory,
    SikilError,
    SkillNotFound,
    ValidationError,
)
from ..core.models import Agent, Installation, Skill
from ..core.parser import SKILL_FILE, parse_skill_header, validate_skill_name
from ..core.scanner import AgentDirectories, ScanResult, Scanner
from ..filesystem.atomic import copy_directory_tree, move_directory, remove_directory
from ..filesystem.paths import ensure_dir_exists
from ..filesystem.symlinks import create_symlink, is_symlink, remove_symlink

logger = structlog.get_logger()


def parse_agent_selection(value: str | None) -> list[Agent] | None:
    """Parse ``all`` or a comma separated list of agent names.

    Returns None when ``value`` is empty, meaning "every enabled agent".

    Raises:
        ValidationError: an unknown agent name
    """
    if not value:
        return None
    if value.strip().lower() == "all":
        return Agent.all()

    selected: list[Agent] = []
    for raw in value.split(","):
        name = raw.strip()
        if not name:
            continue
        agent = Agent.from_cli_name(name)
        if agent is None:
            valid = ", ".join(a.value for a in Agent)
            raise ValidationError(f"unknown agent '{name}'. Valid agents: {valid}")
        if agent not in selected:
            selected.append(agent)
    return selected or None


def skill_files(path: Path) -> list[str]:
    """Top-level listing of a skill directory; directories end with ``/``."""
    try:
        children = sorted(path.iterdir(), key=lambda p: p.name)
    except OSError:
        return []
    return [f"{p.name}/" if p.is_dir() else p.name for p in children]


@dataclass
class InstallResult:
    name: str
    repo_path: Path
    links: list[Path] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "repo_path": str(self.repo_path),
            "links": [str(p) for p in self.links],
        }


@dataclass
class RemovalResult:
    name: str
    removed: list[Path] = field(default_factory=list)
    repo_removed: Path | None = None
    orphaned_repo: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "removed": [str(p) for p in self.removed],
            "repo_removed": str(self.repo_removed) if self.repo_removed else None,
            "orphaned_repo": str(self.orphaned_repo) if self.orphaned_repo else None,
        }


@dataclass
class SyncResult:
    name: str
    created: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "created": [str(p) for p in self.created],
            "skipped": [str(p) for p in self.skipped],
        }


class SkillManager:
    """Applies skill commands against the configured agents and repository."""

    def __init__(
        self,
        config: AppConfig,
        cache: ScanCache | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.config = config
        self.cache = cache
        self.repo_path = config.resolved_repo_path().absolute()
        self.agents: list[AgentDirectories] = config.resolve_agents(cwd)

    # ── Scanning ──────────────────────────────────────────────────────────

    def scan(self) -> ScanResult:
        return Scanner(self.agents, self.repo_path, self.cache).scan_all_agents()

    def find_skill(self, name: str, result: ScanResult | None = None) -> Skill:
        result = result or self.scan()
        skill = result.get(name)
        if skill is None:
            raise SkillNotFound(name)
        return skill

    def locate(self, name_or_path: str) -> Path:
        """A directory path as given, or the first installation of a skill name."""
        candidate = Path(name_or_path)
        if candidate.exists():
            return candidate
        skill = self.find_skill(name_or_path)
        return skill.installations[0].path

    def target_agents(self, selection: list[Agent] | None = None) -> list[AgentDirectories]:
        """Enabled agents in configuration order, optionally filtered.

        Raises:
            ValidationError: a selected agent is disabled
        """
        enabled = [d for d in self.agents if d.enabled]
        if selection is None:
            return enabled
        by_agent = {d.agent: d for d in enabled}
        missing = [a.value for a in selection if a not in by_agent]
        if missing:
            raise ValidationError(
                f"agent(s) disabled in configuration: {', '.join(missing)}"
            )
        return [d for d in enabled if d.agent in selection]

    # ── Install ───────────────────────────────────────────────────────────

    def install_local(
        self, source: Path, agents: list[Agent] | None = None
    ) -> InstallResult:
        """Copy a local skill directory into the repository and link it.

        Raises:
            DirectoryNotFound, NotADirectory: bad ``source``
            InvalidSkillHeader: ``source`` has no valid SKILL.md
            ValidationError: the skill name is not a safe directory name
            AlreadyExists: repository entry or agent entry already present
            SymlinkRejected: ``source`` contains symlinks
        """
        source = Path(source)
        if not source.exists():
            raise DirectoryNotFound(source)
        if not source.is_dir():
            raise NotADirectory(source)

        header = parse_skill_header(source / SKILL_FILE)
        name = header.name
        validate_skill_name(name)

        dest = self.repo_path / name
        if dest.exists() or is_symlink(dest):
            raise AlreadyExists(
                f"skill '{name}' in repository at {dest} "
                f"(use 'sikil sync {name}' to link it)"
            )

        targets = self.target_agents(agents)
        links = [d.global_path / name for d in targets]
        for link in links:
            if link.exists() or is_symlink(link):
                raise AlreadyExists(
                    f"{link} (use 'sikil adopt {name}' to manage the existing copy)"
                )

        ensure_dir_exists(self.repo_path)
        copy_directory_tree(source, dest)

        try:
            created = self._link_all(dest, links)
        except SikilError:
            self._discard_repo_entry(dest)
            raise

        self._invalidate(dest, *created)
        logger.info("skill.installed", name=name, repo=str(dest), links=len(created))
        return InstallResult(name=name, repo_path=dest, links=created)

    # ── Adopt ─────────────────────────────────────────────────────────────

    def adopt(self, name: str, from_agent: Agent | None = None) -> Path:
        """Move an unmanaged installation into the repository and link it back.

        Returns:
            The new repository entry.
        """
        result = self.scan()
        skill = self.find_skill(name, result)

        candidates = skill.installations
        if from_agent is not None:
            candidates = [i for i in candidates if i.agent is from_agent]
            if not candidates:
                raise ValidationError(
                    f"skill '{name}' is not installed for agent '{from_agent}'"
                )
        elif len(candidates) > 1:
            agents = ", ".join(sorted({i.agent.value for i in candidates}))
            raise ValidationError(
                f"skill '{name}' has {len(candidates)} installations ({agents}); "
                "use --from to pick one"
            )

        installation = candidates[0]
        if installation.is_symlink:
            raise ValidationError(
                f"skill '{name}' at {installation.path} is a symlink and already managed"
            )

        validate_skill_name(name)
        dest = self.repo_path / name
        if dest.exists() or is_symlink(dest):
            raise AlreadyExists(f"skill '{name}' in repository at {dest}")

        ensure_dir_exists(self.repo_path)
        move_directory(installation.path, dest)

        try:
            create_symlink(dest, installation.path)
        except SikilError:
            try:
                move_directory(dest, installation.path)
            except SikilError as e:
                logger.warning(
                    "skill.adopt_restore_failed", path=str(installation.path), error=str(e)
                )
            raise

        self._invalidate(installation.path, dest)
        logger.info("skill.adopted", name=name, path=str(installation.path), repo=str(dest))
        return dest

    # ── Remove ────────────────────────────────────────────────────────────

    def remove(
        self,
        name: str,
        agents: list[Agent] | None = None,
        remove_all: bool = False,
    ) -> RemovalResult:
        """Remove installations of ``name``.

        With ``remove_all`` the repository entry goes too. When removing by
        agent leaves a managed skill without installations, the entry is
        reported as ``orphaned_repo`` for the caller to confirm and pass to
        ``remove_repository_entry``.
        """
        if not remove_all and not agents:
            raise ValidationError("specify --agent or --all")

        result = self.scan()
        skill = self.find_skill(name, result)

        if remove_all:
            targets = list(skill.installations)
        else:
            targets = [i for i in skill.installations if i.agent in agents]
            if not targets:
                names = ", ".join(a.value for a in agents)
                raise ValidationError(f"skill '{name}' is not installed for: {names}")

        removal = RemovalResult(name=name)
        for installation in targets:
            self._remove_installation(installation)
            removal.removed.append(installation.path)

        entry = skill.repo_path or result.repository.get(name)
        if remove_all:
            if entry is not None and entry.exists():
                remove_directory(entry, confirmed=True)
                self._invalidate(entry)
                removal.repo_removed = entry
        elif skill.is_managed and entry is not None:
            remaining = [
                i for i in skill.installations
                if i not in targets and i.is_managed(result.repo_path)
            ]
            if not remaining:
                removal.orphaned_repo = entry

        logger.info("skill.removed", name=name, installations=len(removal.removed))
        return removal

    def remove_repository_entry(self, entry: Path) -> None:
        remove_directory(entry, confirmed=True)
        self._invalidate(entry)
        logger.info("skill.repository_entry_removed", path=str(entry))

    # ── Unmanage ──────────────────────────────────────────────────────────

    def unmanage(self, name: str, agent: Agent | None = None) -> list[Path]:
        """Replace managed symlinks with physical copies of the repository entry.

        The repository entry is removed once no managed installation is left.

        Returns:
            The installation paths converted to physical directories.
        """
        result = self.scan()
        skill = self.find_skill(name, result)

        managed = [i for i in skill.installations if i.is_managed(result.repo_path)]
        if not managed:
            raise ValidationError(f"skill '{name}' is not managed")
        targets = managed if agent is None else [i for i in managed if i.agent is agent]
        if not targets:
            raise ValidationError(f"skill '{name}' is not managed for agent '{agent}'")

        converted: list[Path] = []
        for installation in targets:
            entry = installation.repo_entry(result.repo_path)
            remove_symlink(installation.path)
            try:
                copy_directory_tree(entry, installation.path)
            except SikilError:
                try:
                    create_symlink(entry, installation.path)
                except SikilError as e:
                    logger.warning(
                        "skill.unmanage_restore_failed",
                        path=str(installation.path), error=str(e),
                    )
                raise
            self._invalidate(installation.path)
            converted.append(installation.path)

        if len(targets) == len(managed) and skill.repo_path is not None:
            self.remove_repository_entry(skill.repo_path)

        logger.info("skill.unmanaged", name=name, installations=len(converted))
        return converted

    # ── Sync ──────────────────────────────────────────────────────────────

    def sync(self, name: str, agents: list[Agent] | None = None) -> SyncResult:
        """Link the repository entry of ``name`` into agents that lack it."""
        result = self.scan()
        entry = result.repository.get(name)
        if entry is None:
            raise SkillNotFound(name)
        return self._sync_entry(name, entry, agents)

    def sync_all(
        self, agents: list[Agent] | None = None
    ) -> tuple[list[SyncResult], dict[str, str]]:
        """Sync every repository entry; failures are collected per skill."""
        result = self.scan()
        synced: list[SyncResult] = []
        failures: dict[str, str] = {}
        for name in sorted(result.repository):
            try:
                synced.append(self._sync_entry(name, result.repository[name], agents))
            except SikilError as e:
                failures[name] = str(e)
                logger.warning("skill.sync_failed", name=name, error=str(e))
        return synced, failures

    def _sync_entry(
        self, name: str, entry: Path, agents: list[Agent] | None
    ) -> SyncResult:
        sync = SyncResult(name=name)
        pending: list[Path] = []
        for dirs in self.target_agents(agents):
            link = dirs.global_path / name
            if is_symlink(link):
                sync.skipped.append(link)
            elif link.exists():
                raise AlreadyExists(
                    f"{link} is a physical directory (use 'sikil adopt {name}')"
                )
            else:
                pending.append(link)

        sync.created = self._link_all(entry, pending)
        self._invalidate(*sync.created)
        if sync.created:
            logger.info("skill.synced", name=name, links=len(sync.created))
        return sync

    # ── Helpers ───────────────────────────────────────────────────────────

    def _link_all(self, target: Path, links: list[Path]) -> list[Path]:
        """Create every link or none of them."""
        created: list[Path] = []
        try:
            for link in links:
                create_symlink(target, link)
                created.append(link)
        except SikilError:
            for link in reversed(created):
                try:
                    remove_symlink(link)
                except SikilError as e:
                    logger.warning("skill.link_rollback_failed", link=str(link), error=str(e))
            raise
        return created

    def _remove_installation(self, installation: Installation) -> None:
        if is_symlink(installation.path):
            remove_symlink(installation.path)
        else:
            remove_directory(installation.path, confirmed=True)
        self._invalidate(installation.path)

    def _discard_repo_entry(self, entry: Path) -> None:
        try:
            remove_directory(entry, confirmed=True)
        except SikilError as e:
            logger.warning("skill.install_rollback_failed", path=str(entry), error=str(e))

    def _invalidate(self, *paths: Path) -> None:
        if self.cache is None:
            return
        for path in paths:
            self.cache.invalidate(path)
