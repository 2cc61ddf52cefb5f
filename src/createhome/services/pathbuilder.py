"""Creating a home directory and any missing parents."""

from pathlib import Path

from structlog.stdlib import BoundLogger, get_logger

from ..constants import ROOT_LOGGER, SUPERUSER_GID, SUPERUSER_UID
from ..exceptions import (
    CreateHomeError,
    DirectoryCreateError,
    OwnershipError,
    PathLookupError,
)
from ..storage.filesystem import Filesystem

__all__ = ["PathBuilder"]


class PathBuilder:
    """Create directories with exact ownership and mode."""

    def __init__(
        self, fs: Filesystem, logger: BoundLogger | None = None
    ) -> None:
        self._fs = fs
        self._logger = logger or get_logger(ROOT_LOGGER)

    def create_directory(
        self, path: Path, uid: int, gid: int, mode: int
    ) -> bool:
        """Create a single directory unless it already exists.

        An existing directory is never modified.  A new directory gets
        exactly ``mode``, regardless of the process umask.

        Parameters
        ----------
        path
            Directory to create.  Its parent must exist.
        uid
            Owner of the new directory.
        gid
            Group of the new directory.
        mode
            Permission bits of the new directory.

        Returns
        -------
        bool
            `True` if the directory was created, `False` if it was already
            there.

        Raises
        ------
        PathLookupError
            Raised if checking for the directory failed for a reason other
            than it not existing.
        DirectoryCreateError
            Raised if the directory could not be created.
        OwnershipError
            Raised if ownership of the new directory could not be set.
        """
        self._fs.clear_cache()
        try:
            self._fs.stat(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise PathLookupError(path, exc) from exc
        else:
            self._logger.debug(f"'{path!s}' already exists")
            return False

        with self._fs.umask(0):
            try:
                self._fs.mkdir(path, mode)
            except OSError as exc:
                raise DirectoryCreateError(path, exc) from exc
        try:
            self._fs.chown(path, uid, gid)
        except OSError as exc:
            raise OwnershipError(path, uid, gid, exc) from exc

        self._logger.debug(f"Directory '{path!s}' created")
        return True

    def create_path(
        self,
        path: Path,
        user: str,
        uid: int,
        gid: int,
        directory_mode: int,
        home_mode: int,
    ) -> bool:
        """Make sure every directory along a path exists.

        Parents that have to be created are owned by root with
        ``directory_mode``; the final directory is owned by ``uid`` and
        ``gid`` with ``home_mode``.  Directories that already exist are left
        alone.

        Returns
        -------
        bool
            `True` if this call created the final directory, `False` if it
            already existed.

        Raises
        ------
        CreateHomeError
            Raised for the first directory along the path that could not be
            checked or created.  The walk stops there.
        """
        self._fs.clear_cache()
        try:
            self._fs.stat(path)
        except OSError:
            pass
        else:
            return False

        self._logger.debug(f"Creating home directory '{path!s}' for {user}")
        segments = path.parts[1:]
        current = Path(path.anchor)
        created = False
        for i, segment in enumerate(segments):
            current /= segment
            if i == len(segments) - 1:
                owner, group, mode = uid, gid, home_mode
            else:
                owner, group = SUPERUSER_UID, SUPERUSER_GID
                mode = directory_mode
            try:
                created = self.create_directory(current, owner, group, mode)
            except CreateHomeError as exc:
                self._logger.warning(str(exc), path=str(current), user=user)
                raise
        self._logger.debug(f"Home directory '{path!s}' created")
        return created
