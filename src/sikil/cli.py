"""
Main CLI for sikil using Click.

Commands read the configuration, scan the agent directories and act on
the managed repository. Every command accepts -c/--config, -v (repeatable),
--json and --no-cache.
"""

import functools
import json
import sys
from pathlib import Path
from typing import Any, Callable

import click
from pydantic import ValidationError as PydanticValidationError

from . import __version__
from .config.loader import load_config
from .config.schema import AppConfig, DEFAULT_AGENT_PATHS
from .core.cache import ScanCache
from .core.conflicts import (
    detect_conflicts,
    filter_displayable_conflicts,
    format_conflict,
    format_conflicts_summary,
)
from .core.errors import ConfigError, SikilError
from .core.models import Agent, Skill
from .logging import configure_logging
from .skills import SkillManager, parse_agent_selection, skill_files, validate_skill

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 3


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that reads the configuration."""
    options = [
        click.option(
            "-c",
            "--config",
            type=click.Path(exists=True, path_type=Path),
            help="Path to the YAML configuration file",
        ),
        click.option("-v", "--verbose", count=True, help="Verbose output (-v, -vv)"),
        click.option("--json", "json_output", is_flag=True, help="Machine readable output"),
        click.option("--no-cache", is_flag=True, help="Bypass the scan cache"),
        click.option("-q", "--quiet", is_flag=True, help="No log output on stderr"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn SikilError into a one-line message and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SikilError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(EXIT_FAILED)

    return wrapper


def _setup(
    config: Path | None,
    verbose: int,
    json_output: bool,
    no_cache: bool,
    quiet: bool,
) -> tuple[AppConfig, SkillManager]:
    try:
        app_config = load_config(
            config_path=config,
            cli_args={"verbose": verbose, "no_cache": no_cache},
        )
    except (FileNotFoundError, ConfigError, PydanticValidationError) as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(app_config.logging, json_output=json_output, quiet=quiet)

    cache = None
    if app_config.cache.enabled:
        cache = ScanCache(app_config.cache.resolved_path())
    return app_config, SkillManager(app_config, cache=cache)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


def _confirm(message: str, yes: bool) -> None:
    if not yes:
        click.confirm(message, abort=True, err=True)


def _agents_label(skill: Skill) -> str:
    return ", ".join(a.value for a in skill.agents())


@click.group()
@click.version_option(version=__version__, prog_name="sikil")
def main() -> None:
    """sikil - manage agent skills across coding agents.

    Skills installed through sikil live once in a managed repository and
    are symlinked into each agent's skills directory.
    """
    pass


# ── LIST / SHOW ───────────────────────────────────────────────────────────


@main.command("list")
@common_options
@click.option("--agent", "agent_name", help="Only skills installed for this agent")
@click.option("--managed", is_flag=True, help="Only managed skills")
@click.option("--unmanaged", is_flag=True, help="Only unmanaged skills")
@click.option("--conflicts", "only_conflicts", is_flag=True, help="Only skills with conflicts")
@click.option("--duplicates", is_flag=True, help="Only skills installed more than once")
@handle_errors
def list_cmd(
    agent_name: str | None,
    managed: bool,
    unmanaged: bool,
    only_conflicts: bool,
    duplicates: bool,
    **kwargs: Any,
) -> None:
    """List skills found in every agent directory."""
    app_config, manager = _setup(**kwargs)
    result = manager.scan()
    conflicts = detect_conflicts(result)

    skills = result.all_skills()
    if agent_name:
        agent = parse_agent_selection(agent_name)
        skills = [s for s in skills if any(a in agent for a in s.agents())]
    if managed:
        skills = [s for s in skills if s.is_managed]
    if unmanaged:
        skills = [s for s in skills if not s.is_managed]
    if only_conflicts:
        conflicted = {c.skill_name for c in filter_displayable_conflicts(conflicts, True)}
        skills = [s for s in skills if s.metadata.name in conflicted]
    if duplicates:
        skills = [s for s in skills if len(s.installations) > 1]

    skills.sort(key=lambda s: (not s.is_managed, s.metadata.name))

    if kwargs["json_output"]:
        _echo_json([s.to_dict() for s in skills])
        return

    if not skills:
        click.echo("No skills found.")
        disabled = [
            name for name, cfg in app_config.agents.items()
            if not cfg.enabled and name in DEFAULT_AGENT_PATHS
        ]
        if disabled:
            click.echo(f"Disabled agents: {', '.join(disabled)} (enable them in config.yaml)")
        return

    for label, group in (
        ("Managed", [s for s in skills if s.is_managed]),
        ("Unmanaged", [s for s in skills if not s.is_managed]),
    ):
        if not group:
            continue
        click.echo(f"{label} skills ({len(group)}):")
        for skill in group:
            click.echo(f"  {skill.metadata.name:24s} {skill.metadata.description}")
            click.echo(f"  {'':24s} agents: {_agents_label(skill)}")
        click.echo()

    visible = filter_displayable_conflicts(conflicts, verbose=kwargs["verbose"] > 0)
    if visible:
        click.echo(format_conflicts_summary(visible))
        for conflict in visible:
            click.echo(format_conflict(conflict))

    if kwargs["verbose"]:
        for path, message in result.errors:
            click.echo(f"  ⚠ {path}: {message}", err=True)


@main.command()
@click.argument("name")
@common_options
@handle_errors
def show(name: str, **kwargs: Any) -> None:
    """Show full details for one skill."""
    _, manager = _setup(**kwargs)
    skill = manager.find_skill(name)
    location = skill.repo_path or skill.installations[0].path
    files = skill_files(location)

    if kwargs["json_output"]:
        _echo_json({**skill.to_dict(), "files": files})
        return

    meta = skill.metadata
    click.echo(f"{meta.name}")
    click.echo(f"  Description: {meta.description}")
    for label, value in (("Version", meta.version), ("Author", meta.author), ("License", meta.license)):
        if value:
            click.echo(f"  {label}: {value}")
    click.echo(f"  Managed: {'yes' if skill.is_managed else 'no'}")
    if skill.repo_path:
        click.echo(f"  Repository: {skill.repo_path}")

    click.echo("  Installations:")
    for inst in skill.installations:
        line = f"    - {inst.agent} ({inst.scope}) {inst.path}"
        if inst.is_symlink and inst.symlink_target is not None:
            line += f" -> {inst.symlink_target}"
        click.echo(line)

    click.echo("  Files:")
    for entry in files:
        click.echo(f"    {entry}")


# ── VALIDATE ──────────────────────────────────────────────────────────────


@main.command()
@click.argument("path_or_name")
@common_options
@handle_errors
def validate(path_or_name: str, **kwargs: Any) -> None:
    """Validate a skill directory (path) or an installed skill (name)."""
    _, manager = _setup(**kwargs)
    report = validate_skill(manager.locate(path_or_name))

    if kwargs["json_output"]:
        _echo_json(report.to_dict())
    else:
        click.echo(f"Validating {report.path}")
        for check in report.checks:
            if check.passed:
                click.echo(f"  ✓ {check.name}")
            else:
                click.echo(f"  ✗ {check.name}: {check.message}")
        for warning in report.warnings:
            click.echo(f"  ⚠ {warning}")
        detected = [d for d, present in (("scripts/", report.has_scripts),
                                         ("references/", report.has_references)) if present]
        if detected:
            click.echo(f"  Detected: {', '.join(detected)}")
        click.echo("Valid" if report.passed else "Invalid")

    if not report.passed:
        sys.exit(EXIT_FAILED)


# ── REPOSITORY COMMANDS ───────────────────────────────────────────────────


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--to", "to_agents", help="'all' or comma separated agent names")
@common_options
@handle_errors
def install(path: Path, to_agents: str | None, **kwargs: Any) -> None:
    """Install a local skill directory into the repository and link it."""
    _, manager = _setup(**kwargs)
    installed = manager.install_local(path, parse_agent_selection(to_agents))

    if kwargs["json_output"]:
        _echo_json(installed.to_dict())
        return
    click.echo(f"Installed '{installed.name}' to {installed.repo_path}")
    for link in installed.links:
        click.echo(f"  linked {link}")


@main.command()
@click.argument("name")
@click.option("--from", "from_agent", help="Agent whose installation to adopt")
@common_options
@handle_errors
def adopt(name: str, from_agent: str | None, **kwargs: Any) -> None:
    """Move an unmanaged skill into the repository."""
    _, manager = _setup(**kwargs)
    agent = None
    if from_agent:
        agent = Agent.from_cli_name(from_agent)
        if agent is None:
            raise SikilError(f"unknown agent '{from_agent}'")
    repo_entry = manager.adopt(name, agent)

    if kwargs["json_output"]:
        _echo_json({"name": name, "repo_path": str(repo_entry)})
        return
    click.echo(f"Adopted '{name}' into {repo_entry}")


@main.command()
@click.argument("name")
@click.option("--agent", "agent_names", help="Comma separated agents to remove from")
@click.option("--all", "remove_all", is_flag=True, help="Remove every installation")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@common_options
@handle_errors
def remove(
    name: str, agent_names: str | None, remove_all: bool, yes: bool, **kwargs: Any
) -> None:
    """Remove installations of a skill."""
    _, manager = _setup(**kwargs)
    agents = parse_agent_selection(agent_names)
    if not remove_all and not agents:
        raise SikilError("specify --agent or --all")

    target = "every installation" if remove_all else ", ".join(a.value for a in agents)
    _confirm(f"Remove '{name}' from {target}?", yes)

    removal = manager.remove(name, agents=agents, remove_all=remove_all)
    if removal.orphaned_repo is not None:
        _confirm(
            f"'{name}' has no installations left. Remove {removal.orphaned_repo}?", yes
        )
        manager.remove_repository_entry(removal.orphaned_repo)
        removal.repo_removed = removal.orphaned_repo

    if kwargs["json_output"]:
        _echo_json(removal.to_dict())
        return
    for path in removal.removed:
        click.echo(f"Removed {path}")
    if removal.repo_removed:
        click.echo(f"Removed repository entry {removal.repo_removed}")


@main.command()
@click.argument("name")
@click.option("--agent", "agent_name", help="Only this agent's installation")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@common_options
@handle_errors
def unmanage(name: str, agent_name: str | None, yes: bool, **kwargs: Any) -> None:
    """Replace managed symlinks with physical copies."""
    _, manager = _setup(**kwargs)
    agent = None
    if agent_name:
        agent = Agent.from_cli_name(agent_name)
        if agent is None:
            raise SikilError(f"unknown agent '{agent_name}'")
    _confirm(f"Unmanage '{name}'?", yes)
    converted = manager.unmanage(name, agent)

    if kwargs["json_output"]:
        _echo_json({"name": name, "converted": [str(p) for p in converted]})
        return
    for path in converted:
        click.echo(f"Copied into {path}")


@main.command()
@click.argument("name", required=False)
@click.option("--all", "sync_every", is_flag=True, help="Sync every repository entry")
@click.option("--to", "to_agents", help="'all' or comma separated agent names")
@common_options
@handle_errors
def sync(name: str | None, sync_every: bool, to_agents: str | None, **kwargs: Any) -> None:
    """Create missing symlinks from the repository to agent directories."""
    if not name and not sync_every:
        raise SikilError("specify a skill name or --all")
    _, manager = _setup(**kwargs)
    agents = parse_agent_selection(to_agents)

    if sync_every:
        synced, failures = manager.sync_all(agents)
    else:
        synced, failures = [manager.sync(name, agents)], {}

    if kwargs["json_output"]:
        _echo_json({"synced": [s.to_dict() for s in synced], "failures": failures})
    else:
        for result in synced:
            for link in result.created:
                click.echo(f"Linked {link}")
            if not result.created:
                click.echo(f"'{result.name}' already in sync")
        for skill_name, message in failures.items():
            click.echo(f"Error: {skill_name}: {message}", err=True)

    if failures:
        sys.exit(EXIT_FAILED)


# ── CACHE ─────────────────────────────────────────────────────────────────


@main.group()
def cache() -> None:
    """Manage the scan cache."""
    pass


@cache.command("clear")
@common_options
@handle_errors
def cache_clear(**kwargs: Any) -> None:
    """Drop every cache entry."""
    app_config, _ = _setup(**kwargs)
    ScanCache(app_config.cache.resolved_path()).clear()
    click.echo("Cache cleared")


@cache.command("clean")
@common_options
@handle_errors
def cache_clean(**kwargs: Any) -> None:
    """Drop cache entries whose skill directory is gone."""
    app_config, _ = _setup(**kwargs)
    removed = ScanCache(app_config.cache.resolved_path()).clean_stale()
    click.echo(f"Cache cleaned: {removed} stale entries removed")


# ── CONFIG ────────────────────────────────────────────────────────────────


@main.command()
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to the configuration file to validate",
)
def validate_config(config: Path | None) -> None:
    """Validate a YAML configuration file."""
    try:
        app_config = load_config(config_path=config)
    except (FileNotFoundError, ConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)
    except PydanticValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    click.echo("Valid configuration")
    click.echo(f"  Repository: {app_config.resolved_repo_path()}")
    enabled = [name for name, cfg in app_config.agents.items() if cfg.enabled]
    click.echo(f"  Agents enabled: {', '.join(enabled) or 'none'}")
    click.echo(f"  Cache: {'enabled' if app_config.cache.enabled else 'disabled'}")


if __name__ == "__main__":
    main()
