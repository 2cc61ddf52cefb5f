"""Populate a new home directory from a skeleton directory."""

import stat
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from structlog.stdlib import BoundLogger, get_logger

from ..constants import COPY_BUFFER_SIZE, ROOT_LOGGER
from ..exceptions import (
    CreateHomeError,
    ModeError,
    OwnershipError,
    SkeletonReadError,
    SkeletonWriteError,
    SymlinkError,
)
from ..models import CopyReport, FsEntryKind
from ..storage.filesystem import Filesystem
from .pathbuilder import PathBuilder

__all__ = ["SkeletonPopulator"]


class SkeletonPopulator:
    """Copy a skeleton tree into a home directory, in the manner of
    ``/etc/skel``.

    Copying is best-effort: a problem with one entry is logged and recorded
    in the returned `~createhome.models.CopyReport`, and the rest of the
    tree is still copied.  Every copied entry is owned by the home
    directory's owner.
    """

    def __init__(
        self,
        fs: Filesystem,
        builder: PathBuilder | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._fs = fs
        self._logger = logger or get_logger(ROOT_LOGGER)
        self._builder = builder or PathBuilder(fs, self._logger)

    def populate(
        self, skeleton: Path, home: Path, uid: int, gid: int
    ) -> CopyReport:
        """Copy the contents of a skeleton directory into a home directory.

        A skeleton that is not a directory, or that anyone may write to, is
        refused, since its contents would end up owned by the user.
        """
        report = CopyReport()
        self._logger.debug(
            f"Copying skeleton files from '{skeleton!s}' into '{home!s}'"
        )
        try:
            st = self._fs.stat(skeleton)
        except OSError as exc:
            self._logger.warning(f"Cannot use skeleton '{skeleton!s}': {exc}")
            report.record_failure(skeleton, exc)
            return report
        if not stat.S_ISDIR(st.st_mode):
            error: OSError = NotADirectoryError(
                f"'{skeleton!s}' is not a directory"
            )
            self._logger.warning(str(error))
            report.record_failure(skeleton, error)
            return report
        if st.st_mode & stat.S_IWOTH:
            error = PermissionError(f"'{skeleton!s}' is world-writable")
            self._logger.warning(str(error))
            report.record_failure(skeleton, error)
            return report
        return self.copy_directory(skeleton, home, uid, gid, report)

    def copy_directory(
        self,
        src_dir: Path,
        dst_dir: Path,
        uid: int,
        gid: int,
        report: CopyReport | None = None,
        *,
        src_root: Path | None = None,
        dst_root: Path | None = None,
    ) -> CopyReport:
        """Recursively copy the entries of one directory into another.

        Subdirectories are created before their contents are copied.
        Regular files lose any setuid and setgid bits.  Symlinks pointing
        anywhere under ``src_root`` are rewritten to point at the
        corresponding place under ``dst_root``.  Any other kind of entry is
        skipped.

        Parameters
        ----------
        src_dir
            Skeleton directory to copy from.
        dst_dir
            Existing directory to copy into.
        uid
            Owner of everything copied.
        gid
            Group of everything copied.
        report
            Report to add outcomes to, used when recursing.
        src_root
            Top of the skeleton tree, used to rewrite symlinks.  Defaults to
            ``src_dir``.
        dst_root
            Top of the destination tree.  Defaults to ``dst_dir``.

        Returns
        -------
        CopyReport
            What was copied, what failed, and what was skipped.
        """
        if report is None:
            report = CopyReport()
        src_root = src_root or src_dir
        dst_root = dst_root or dst_dir
        try:
            names = self._fs.scandir_names(src_dir)
        except OSError as exc:
            self._logger.warning(
                f"Error copying '{src_dir!s}' skeleton files: {exc}"
            )
            report.record_failure(src_dir, exc)
            return report

        for name in names:
            src_path = src_dir / name
            dst_path = dst_dir / name
            try:
                st = self._fs.lstat(src_path)
            except OSError as exc:
                self._logger.debug(
                    f"Unable to stat '{src_path!s}' ({exc}), skipping"
                )
                report.record_failure(src_path, exc)
                continue

            match FsEntryKind.from_mode(st.st_mode):
                case FsEntryKind.DIRECTORY:
                    mode = stat.S_IMODE(st.st_mode)
                    try:
                        self._builder.create_directory(
                            dst_path, uid, gid, mode
                        )
                    except CreateHomeError as exc:
                        self._logger.warning(str(exc))
                        report.record_failure(src_path, exc)
                        continue
                    report.copied.append(dst_path)
                    self.copy_directory(
                        src_path,
                        dst_path,
                        uid,
                        gid,
                        report,
                        src_root=src_root,
                        dst_root=dst_root,
                    )
                case FsEntryKind.REGULAR_FILE:
                    mode = stat.S_IMODE(st.st_mode)
                    mode &= ~(stat.S_ISUID | stat.S_ISGID)
                    try:
                        self.copy_file(src_path, dst_path, uid, gid, mode)
                    except CreateHomeError as exc:
                        report.record_failure(src_path, exc)
                    else:
                        report.copied.append(dst_path)
                case FsEntryKind.SYMLINK:
                    try:
                        self.copy_symlink(
                            src_root, src_path, dst_root, dst_path, uid, gid
                        )
                    except CreateHomeError as exc:
                        report.record_failure(src_path, exc)
                    else:
                        report.copied.append(dst_path)
                case FsEntryKind.OTHER:
                    self._logger.debug(
                        f"Skipping skeleton file '{src_path!s}'"
                    )
                    report.skipped.append(src_path)

        return report

    def copy_file(
        self, src: Path, dst: Path, uid: int, gid: int, mode: int
    ) -> None:
        """Copy a regular file, which must not exist yet at the destination.

        Ownership and mode are set once the contents are written.  Every
        step is attempted even if an earlier one failed, and the first
        failure is raised at the end.

        Raises
        ------
        CreateHomeError
            Raised if the file could not be copied completely or its
            ownership or mode could not be set.
        """
        try:
            src_fh = self._fs.open_read(src)
        except OSError as exc:
            self._logger.debug(f"Trouble with '{src!s}': {exc}")
            raise SkeletonReadError(src, exc) from exc

        with src_fh:
            try:
                dst_fh = self._fs.create_exclusive(dst)
            except OSError as exc:
                self._logger.debug(f"Trouble with '{dst!s}': {exc}")
                raise SkeletonWriteError(dst, exc) from exc

            errors: list[CreateHomeError] = []
            try:
                self._transfer(src, src_fh, dst, dst_fh)
            except CreateHomeError as exc:
                self._logger.warning(str(exc))
                errors.append(exc)

            try:
                self._fs.chown(dst, uid, gid)
            except OSError as exc:
                errors.append(OwnershipError(dst, uid, gid, exc))
                self._logger.warning(str(errors[-1]))
            try:
                self._fs.chmod(dst, mode)
            except OSError as exc:
                errors.append(ModeError(dst, mode, exc))
                self._logger.warning(str(errors[-1]))

            try:
                dst_fh.close()
            except OSError as exc:
                self._logger.warning(f"Error closing '{dst!s}': {exc}")
                errors.append(SkeletonWriteError(dst, exc))

        if errors:
            raise errors[0]

    def _transfer(
        self, src: Path, src_fh: BinaryIO, dst: Path, dst_fh: BinaryIO
    ) -> None:
        while True:
            try:
                chunk = src_fh.read(COPY_BUFFER_SIZE)
            except OSError as exc:
                raise SkeletonReadError(src, exc) from exc
            if not chunk:
                break
            try:
                dst_fh.write(chunk)
            except OSError as exc:
                raise SkeletonWriteError(dst, exc) from exc
        try:
            dst_fh.flush()
        except OSError as exc:
            raise SkeletonWriteError(dst, exc) from exc

    def copy_symlink(
        self,
        src_root: Path,
        src_path: Path,
        dst_root: Path,
        dst_path: Path,
        uid: int,
        gid: int,
    ) -> None:
        """Recreate a symlink, keeping links within the skeleton internal.

        A target under ``src_root`` is rewritten to the same place under
        ``dst_root``.  Any other target, including a relative one, is kept
        as is.  The new link itself, not its target, is given to ``uid`` and
        ``gid``.

        Raises
        ------
        CreateHomeError
            Raised if the link could not be read, created, or re-owned.
        """
        try:
            target = self._fs.readlink(src_path)
        except OSError as exc:
            error = SymlinkError("reading link", src_path, exc)
            self._logger.warning(str(error))
            raise error from exc

        target = self._rewrite_target(target, src_root, dst_root)
        try:
            self._fs.symlink(target, dst_path)
        except OSError as exc:
            error = SymlinkError(f"symlinking '{target}' to", dst_path, exc)
            self._logger.warning(str(error))
            raise error from exc

        try:
            self._fs.lchown(dst_path, uid, gid)
        except OSError as exc:
            owner_error = OwnershipError(dst_path, uid, gid, exc)
            self._logger.warning(str(owner_error))
            raise owner_error from exc

    def _rewrite_target(
        self, target: str, src_root: Path, dst_root: Path
    ) -> str:
        link = PurePosixPath(target)
        root = PurePosixPath(str(src_root))
        if not link.is_relative_to(root):
            return target
        return str(PurePosixPath(str(dst_root)) / link.relative_to(root))
