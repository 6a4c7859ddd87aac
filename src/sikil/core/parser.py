"""
SKILL.md parsing.

Only the frontmatter block matters here: it must open the file (leading
whitespace allowed) and is delimited by the first two ``---`` markers.
Field-level parsing is delegated to PyYAML.
"""

import re
from pathlib import Path
from typing import Any

import yaml

from .errors import InvalidSkillHeader, PathTraversal, ValidationError
from .models import SkillHeader

SKILL_FILE = "SKILL.md"
MARKER = "---"
MAX_DESCRIPTION_LENGTH = 1024
MAX_NAME_LENGTH = 64

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")
_OPTIONAL_FIELDS = ("version", "author", "license")


def extract_frontmatter(content: str, path: Path | str = "<content>") -> str:
    """Return the text between the first and second ``---`` markers.

    Raises:
        InvalidSkillHeader: no marker, a single marker, or text before the
            first marker.
    """
    first = content.find(MARKER)
    if first == -1:
        raise InvalidSkillHeader(
            path, "missing frontmatter delimiters (no '---' markers found)"
        )

    before = content[:first]
    if before.strip():
        raise InvalidSkillHeader(
            path,
            "frontmatter must be at the start of the file "
            f"(found '{before.strip()[:40]}' before first '---')",
        )

    rest = content[first + len(MARKER):]
    second = rest.find(MARKER)
    if second == -1:
        raise InvalidSkillHeader(
            path, "malformed frontmatter (only one '---' marker found, expected two)"
        )

    return rest[:second].strip()


def parse_skill_header_text(content: str, path: Path | str = "<content>") -> SkillHeader:
    """Parse SKILL.md content into a SkillHeader."""
    block = extract_frontmatter(content, path)

    try:
        raw = yaml.safe_load(block) if block else {}
    except yaml.YAMLError as e:
        raise InvalidSkillHeader(path, f"failed to parse YAML: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidSkillHeader(
            path, f"frontmatter must be a YAML mapping, got {type(raw).__name__}"
        )

    name = _required_string(raw, "name", path)
    description = _required_string(raw, "description", path)
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidSkillHeader(
            path,
            f"description is {len(description)} characters "
            f"(maximum {MAX_DESCRIPTION_LENGTH})",
        )

    optional = {key: _optional_string(raw.get(key)) for key in _OPTIONAL_FIELDS}
    return SkillHeader(name=name, description=description, **optional)


def parse_skill_header(header_file: Path) -> SkillHeader:
    """Read and parse a SKILL.md file."""
    try:
        content = header_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidSkillHeader(header_file, f"failed to read file: {e}") from e
    return parse_skill_header_text(content, header_file)


def validate_skill_name(name: str) -> None:
    """Check that a skill name is safe to use as a directory name.

    Raises:
        PathTraversal: for ``.`` and ``..``
        ValidationError: for any other invalid name
    """
    if not name:
        raise ValidationError("skill name cannot be empty")

    if name in (".", ".."):
        raise PathTraversal(name)

    if "/" in name or "\\" in name:
        sep = "/" if "/" in name else "\\"
        raise ValidationError(
            f"skill name cannot contain path separators: found '{sep}' in '{name}'"
        )

    if not _NAME_RE.match(name):
        raise ValidationError(
            f"invalid skill name '{name}': must start with a lowercase letter or "
            "digit, contain only lowercase letters, digits, hyphens and "
            f"underscores, and be 1-{MAX_NAME_LENGTH} characters"
        )


def validate_description(description: str) -> None:
    if not description:
        raise ValidationError("description cannot be empty")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"description is {len(description)} characters "
            f"(maximum {MAX_DESCRIPTION_LENGTH})"
        )


def _required_string(raw: dict[str, Any], key: str, path: Path | str) -> str:
    value = raw.get(key)
    if value is None:
        raise InvalidSkillHeader(path, f"missing required field '{key}'")
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise InvalidSkillHeader(path, f"field '{key}' must be a string")
    text = str(value).strip()
    if not text:
        raise InvalidSkillHeader(path, f"required field '{key}' is empty")
    return text


def _optional_string(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
