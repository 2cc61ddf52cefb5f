"""Models for home directory provisioning."""

import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Self

from .constants import MAX_ID, RESERVED_UIDS

__all__ = ["CopyReport", "FsEntryKind", "HomeSpec"]


@dataclass(frozen=True)
class HomeSpec:
    """Everything needed to provision one home directory."""

    path: Path
    """Home directory to create."""

    uid: int
    """Owner of the home directory and of copied skeleton entries."""

    gid: int
    """Group of the home directory and of copied skeleton entries."""

    directory_mode: int
    """Mode of any parent directories that have to be created."""

    home_mode: int
    """Mode of the home directory itself."""

    skeleton: Path | None = None
    """Skeleton directory whose contents populate the new home."""

    def __post_init__(self) -> None:
        if self.uid in RESERVED_UIDS:
            raise ValueError(f"Will not provision for reserved UID {self.uid}")
        for item in (self.uid, self.gid):
            if item < 0:
                raise ValueError("UID/GID must be positive")
            if item > MAX_ID:
                raise ValueError(f"UID/GID must be <= {MAX_ID}")
        if not self.path.is_absolute():
            raise ValueError(f"Home directory {self.path} is not absolute")
        if self.skeleton is not None and not self.skeleton.is_absolute():
            raise ValueError(
                f"Skeleton directory {self.skeleton} is not absolute"
            )


class FsEntryKind(Enum):
    """Kind of a skeleton entry, as seen by a non-following lookup."""

    DIRECTORY = "directory"
    REGULAR_FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"

    @classmethod
    def from_mode(cls, mode: int) -> Self:
        """Classify an ``st_mode`` value from ``lstat``."""
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISREG(mode):
            return cls.REGULAR_FILE
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        return cls.OTHER


@dataclass
class CopyReport:
    """Outcome of copying a skeleton tree into a home directory.

    Copying is best-effort, so rather than stopping at the first problem
    every entry's outcome is recorded here.
    """

    copied: list[Path] = field(default_factory=list)
    """Destination paths that were copied successfully."""

    failed: dict[Path, str] = field(default_factory=dict)
    """Source paths that could not be copied, with the reason."""

    skipped: list[Path] = field(default_factory=list)
    """Source paths of unsupported type that were not copied."""

    @property
    def attempted(self) -> int:
        """Number of entries that were considered."""
        return len(self.copied) + len(self.failed) + len(self.skipped)

    @property
    def ok(self) -> bool:
        """Whether every entry was copied or deliberately skipped."""
        return not self.failed

    def record_failure(self, path: Path, error: Exception) -> None:
        self.failed[path] = str(error)

    def __str__(self) -> str:
        return (
            f"{len(self.copied)} copied, {len(self.failed)} failed,"
            f" {len(self.skipped)} skipped"
        )
