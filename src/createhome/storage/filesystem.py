"""Filesystem access layer with a metadata lookup cache."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

__all__ = ["Filesystem"]


class Filesystem:
    """Thin wrapper around the POSIX calls needed to provision homes.

    Results of ``stat`` and ``lstat``, including failures such as a path
    not existing, are remembered until `clear_cache` is called.  Nothing
    that modifies the filesystem invalidates the cache, so callers that
    create something and then look for it must clear the cache first.
    """

    def __init__(self) -> None:
        self._cache: dict[tuple[str, bool], os.stat_result | OSError] = {}

    def clear_cache(self) -> None:
        """Forget all cached metadata lookups."""
        self._cache.clear()

    def stat(self, path: Path) -> os.stat_result:
        """Return metadata for a path, following symlinks."""
        return self._lookup(path, follow_symlinks=True)

    def lstat(self, path: Path) -> os.stat_result:
        """Return metadata for a path without following symlinks."""
        return self._lookup(path, follow_symlinks=False)

    def _lookup(
        self, path: Path, *, follow_symlinks: bool
    ) -> os.stat_result:
        key = (str(path), follow_symlinks)
        if key not in self._cache:
            try:
                result = os.stat(path, follow_symlinks=follow_symlinks)
            except OSError as exc:
                self._cache[key] = exc
                raise
            self._cache[key] = result
            return result
        cached = self._cache[key]
        if isinstance(cached, OSError):
            raise cached
        return cached

    @contextmanager
    def umask(self, mask: int) -> Iterator[None]:
        """Set the process umask, restoring the previous one on exit."""
        previous = os.umask(mask)
        try:
            yield
        finally:
            os.umask(previous)

    def mkdir(self, path: Path, mode: int) -> None:
        os.mkdir(path, mode)

    def chown(self, path: Path, uid: int, gid: int) -> None:
        os.chown(path, uid, gid)

    def lchown(self, path: Path, uid: int, gid: int) -> None:
        """Change ownership of a symlink itself rather than its target."""
        os.chown(path, uid, gid, follow_symlinks=False)

    def chmod(self, path: Path, mode: int) -> None:
        os.chmod(path, mode)

    def open_read(self, path: Path) -> BinaryIO:
        return path.open("rb")

    def create_exclusive(self, path: Path) -> BinaryIO:
        """Create a new file for writing, failing if it already exists.

        The file is truncated to zero length before being returned.
        """
        fh = path.open("xb")
        fh.truncate(0)
        return fh

    def readlink(self, path: Path) -> str:
        return os.readlink(path)

    def symlink(self, target: str, path: Path) -> None:
        os.symlink(target, path)

    def scandir_names(self, path: Path) -> list[str]:
        """Return the names of the entries in a directory, sorted.

        The ``.`` and ``..`` pseudo-entries are never included.
        """
        with os.scandir(path) as entries:
            return sorted(entry.name for entry in entries)
