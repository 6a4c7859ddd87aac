"""
On-disk scan cache.

Maps a skill directory to what was learned about its SKILL.md the last
time it was scanned, so unchanged directories are not re-read. The cache
is an optimization, never a source of truth:

- a hit requires the header file to exist with the exact cached mtime;
- a version mismatch, a corrupt file or a file above MAX_CACHE_FILE_SIZE
  reads as empty (the next write rebuilds it from scratch);
- writes go to a uniquely named temp file that is then renamed over the
  cache file, so readers never see a partial write.

File layout:
    {"version": 1, "entries": {"<abs path>": {mtime, size, content_hash,
     cached_at, skill_name, is_valid_skill, metadata}}}
"""

import json
import os
import threading
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import structlog

from .errors import PermissionDenied, SikilError, ValidationError
from .parser import SKILL_FILE

logger = structlog.get_logger()

CACHE_VERSION = 1
MAX_HASH_SIZE = 64
MAX_CACHE_FILE_SIZE = 10 * 1024 * 1024


@dataclass
class ScanEntry:
    """Cached facts about one skill directory."""

    path: Path
    mtime: int
    size: int
    content_hash: str
    cached_at: int
    skill_name: str | None
    is_valid_skill: bool
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        del data["path"]
        return data

    @classmethod
    def from_dict(cls, path: str, data: dict[str, Any]) -> "ScanEntry":
        valid = {f.name for f in fields(cls)} - {"path"}
        unknown = set(data) - valid
        if unknown:
            raise KeyError(f"unknown cache fields: {sorted(unknown)}")
        return cls(path=Path(path), **data)


class ScanCache:
    """JSON-file cache of ScanEntry records keyed by directory path."""

    def __init__(self, cache_file: Path) -> None:
        self.cache_file = Path(cache_file)

    def get(self, path: Path) -> ScanEntry | None:
        """Return the entry for ``path`` only if it is still exact."""
        key = str(path)
        raw = self._load().get(key)
        if raw is None:
            return None

        try:
            entry = ScanEntry.from_dict(key, raw)
        except (KeyError, TypeError):
            return None

        header_file = Path(path) / SKILL_FILE
        try:
            current_mtime = header_file.stat().st_mtime_ns
        except OSError:
            return None
        if current_mtime != entry.mtime:
            return None

        return entry

    def put(self, entry: ScanEntry) -> None:
        """Insert or replace the record for ``entry.path``.

        Raises:
            ValidationError: the content hash exceeds MAX_HASH_SIZE
            PermissionDenied: the cache file could not be written
        """
        if len(entry.content_hash) > MAX_HASH_SIZE:
            raise ValidationError(
                f"content hash too long: {len(entry.content_hash)} "
                f"(maximum {MAX_HASH_SIZE})"
            )

        entries = self._load()
        entries[str(entry.path)] = entry.to_dict()
        self._save(entries)

    def invalidate(self, path: Path) -> None:
        """Drop the record for ``path``. Failures are logged, not raised."""
        entries = self._load()
        if entries.pop(str(path), None) is None:
            return
        try:
            self._save(entries)
        except SikilError as e:
            logger.warning("cache.invalidate_failed", path=str(path), error=str(e))

    def clear(self) -> None:
        """Drop every record. Failures are logged, not raised."""
        try:
            self._save({})
        except SikilError as e:
            logger.warning("cache.clear_failed", error=str(e))

    def clean_stale(self) -> int:
        """Remove records whose directory no longer holds a SKILL.md.

        Returns:
            Number of records removed.
        """
        entries = self._load()
        stale = [key for key in entries if not (Path(key) / SKILL_FILE).is_file()]
        if not stale:
            return 0
        for key in stale:
            del entries[key]
        self._save(entries)
        logger.info("cache.cleaned", removed=len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._load())

    def _load(self) -> dict[str, dict[str, Any]]:
        try:
            size = self.cache_file.stat().st_size
        except OSError:
            return {}

        if size > MAX_CACHE_FILE_SIZE:
            logger.warning(
                "cache.too_large", path=str(self.cache_file), size=size,
                limit=MAX_CACHE_FILE_SIZE,
            )
            return {}

        try:
            data = json.loads(self.cache_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.debug("cache.unreadable", path=str(self.cache_file))
            return {}

        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            return {}

        entries = data.get("entries")
        if not isinstance(entries, dict):
            return {}
        return {k: v for k, v in entries.items() if isinstance(v, dict)}

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        payload = {"version": CACHE_VERSION, "entries": entries}
        tmp = self.cache_file.with_name(
            f"{self.cache_file.name}.{time.time_ns()}.{os.getpid()}"
            f".{threading.get_ident()}.tmp"
        )
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp, self.cache_file)
        except OSError as e:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise PermissionDenied("write cache", self.cache_file) from e


def now_seconds() -> int:
    return int(time.time())
