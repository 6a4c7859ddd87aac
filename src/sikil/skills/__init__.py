"""
Skills module - managed repository operations and skill validation.
"""

from .manager import (
    InstallResult,
    RemovalResult,
    SkillManager,
    SyncResult,
    parse_agent_selection,
    skill_files,
)
from .validator import CheckResult, ValidationReport, validate_skill

__all__ = [
    "CheckResult",
    "InstallResult",
    "RemovalResult",
    "SkillManager",
    "SyncResult",
    "ValidationReport",
    "parse_agent_selection",
    "skill_files",
    "validate_skill",
]
