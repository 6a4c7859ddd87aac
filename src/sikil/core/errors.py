"""
Error taxonomy for sikil.

Every expected failure (missing directory, malformed SKILL.md, refused
symlink, permission problem) is raised as a subclass of SikilError so
callers can catch the whole family in one place. Messages are stable:
the CLI prints them verbatim.
"""

from pathlib import Path


class SikilError(Exception):
    """Base class for all sikil errors."""

    pass


class DirectoryNotFound(SikilError):
    """A required directory does not exist or cannot be read."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Directory not found: {self.path}")


class NotADirectory(SikilError):
    """A path that must be a directory is something else."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Not a directory: {self.path}")


class PermissionDenied(SikilError):
    """An I/O operation failed.

    The underlying OSError is chained as ``__cause__`` by the raiser.
    """

    def __init__(self, operation: str, path: Path | str):
        self.operation = operation
        self.path = Path(path)
        super().__init__(f"Permission denied: {operation} on {self.path}")


class SymlinkRejected(SikilError):
    """A symbolic link was found where none is allowed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Symlink not allowed: {reason}")


SymlinkNotAllowed = SymlinkRejected


class SymlinkError(SikilError):
    """Creating, reading or resolving a symlink failed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Symlink error: {reason}")


class PathTraversal(SikilError):
    """A name or sub-path would resolve outside its expected root."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Path traversal detected: {path}")


class AlreadyExists(SikilError):
    """The destination of an operation is already taken."""

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Already exists: {resource}")


class ValidationError(SikilError):
    """Input failed validation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Validation failed: {reason}")


class InvalidSkillHeader(ValidationError):
    """SKILL.md is missing or its frontmatter is malformed."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        SikilError.__init__(self, f"Invalid SKILL.md in {self.path}: {reason}")


class ConfirmationRequired(SikilError):
    """A destructive operation was attempted without explicit confirmation."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Confirmation required: {operation}")


class SkillNotFound(SikilError):
    """No installation or repository entry carries this skill name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Skill not found: {name}")


class ConfigError(SikilError):
    """The configuration file cannot be read or parsed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Configuration error: {reason}")


class ConfigTooLarge(ConfigError):
    """The configuration file exceeds the size ceiling."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        SikilError.__init__(
            self,
            f"Configuration file too large: {size} bytes (maximum {limit} bytes)",
        )
