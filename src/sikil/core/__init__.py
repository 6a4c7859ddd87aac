"""
Core module - skill model, SKILL.md parsing, scan cache, scanner and
conflict detection.
"""

from .cache import ScanCache, ScanEntry
from .conflicts import (
    Conflict,
    ConflictKind,
    ConflictLocation,
    detect_conflicts,
    filter_displayable_conflicts,
    filter_error_conflicts,
)
from .errors import SikilError
from .models import Agent, Installation, Scope, Skill, SkillHeader
from .parser import SKILL_FILE, parse_skill_header, validate_skill_name
from .scanner import AgentDirectories, ScanResult, Scanner

__all__ = [
    "Agent",
    "AgentDirectories",
    "Conflict",
    "ConflictKind",
    "ConflictLocation",
    "Installation",
    "SKILL_FILE",
    "ScanCache",
    "ScanEntry",
    "ScanResult",
    "Scanner",
    "Scope",
    "SikilError",
    "Skill",
    "SkillHeader",
    "detect_conflicts",
    "filter_displayable_conflicts",
    "filter_error_conflicts",
    "parse_skill_header",
    "validate_skill_name",
]
