"""
Skill directory validation for ``sikil validate``.

Runs the checks one at a time so the report shows exactly which step
failed. Later checks are skipped when an earlier one makes them
meaningless (no SKILL.md, no frontmatter, not a mapping).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import InvalidSkillHeader, SikilError
from ..core.parser import (
    SKILL_FILE,
    extract_frontmatter,
    validate_description,
    validate_skill_name,
)

OPTIONAL_FIELDS = ("version", "author", "license")


@dataclass
class CheckResult:
    name: str
    passed: bool
    message: str = ""


@dataclass
class ValidationReport:
    path: Path
    checks: list[CheckResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    has_scripts: bool = False
    has_references: bool = False

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    def check(self, name: str, passed: bool, message: str = "") -> bool:
        self.checks.append(CheckResult(name, passed, message))
        return passed

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "passed": self.passed,
            "checks": [
                {"name": c.name, "passed": c.passed, "message": c.message}
                for c in self.checks
            ],
            "warnings": list(self.warnings),
            "has_scripts": self.has_scripts,
            "has_references": self.has_references,
        }


def validate_skill(skill_dir: Path) -> ValidationReport:
    """Validate the skill directory at ``skill_dir``."""
    skill_dir = Path(skill_dir)
    report = ValidationReport(path=skill_dir)
    header_file = skill_dir / SKILL_FILE

    if not report.check(
        "SKILL.md exists", header_file.is_file(), f"{SKILL_FILE} not found in {skill_dir}"
    ):
        return report

    try:
        content = header_file.read_text(encoding="utf-8")
        block = extract_frontmatter(content, header_file)
    except (OSError, UnicodeDecodeError) as e:
        report.check("Frontmatter valid", False, f"failed to read file: {e}")
        return report
    except InvalidSkillHeader as e:
        report.check("Frontmatter valid", False, e.reason)
        return report

    try:
        raw = yaml.safe_load(block) if block else {}
    except yaml.YAMLError as e:
        report.check("Frontmatter valid", False, f"failed to parse YAML: {e}")
        return report
    if raw is None:
        raw = {}
    if not report.check(
        "Frontmatter valid",
        isinstance(raw, dict),
        f"frontmatter must be a YAML mapping, got {type(raw).__name__}",
    ):
        return report

    name = raw.get("name")
    description = raw.get("description")
    missing = [
        key for key, value in (("name", name), ("description", description))
        if value is None or not str(value).strip()
    ]
    report.check(
        "Required fields present",
        not missing,
        f"missing required field(s): {', '.join(missing)}",
    )

    if name is not None and str(name).strip():
        report.check("Name format", *_outcome(validate_skill_name, str(name).strip()))

    if description is not None and str(description).strip():
        report.check(
            "Description length", *_outcome(validate_description, str(description).strip())
        )

    for key in OPTIONAL_FIELDS:
        if raw.get(key) is None:
            report.warnings.append(f"optional field '{key}' is not set")

    report.has_scripts = (skill_dir / "scripts").is_dir()
    report.has_references = (skill_dir / "references").is_dir()
    return report


def _outcome(check, value: str) -> tuple[bool, str]:
    try:
        check(value)
    except SikilError as e:
        return False, str(e)
    return True, ""
