"""Provisioner for user home directories."""

from pathlib import Path

from structlog.stdlib import BoundLogger, get_logger

from ..config import Config
from ..constants import ROOT_LOGGER
from ..exceptions import CreateHomeError, PrivilegeError
from ..models import HomeSpec
from ..storage.filesystem import Filesystem
from ..storage.privileges import EffectiveIdPrivileges, Privileges
from .pathbuilder import PathBuilder
from .populator import SkeletonPopulator

__all__ = ["Provisioner"]


class Provisioner:
    """Object to oversee on-demand creation of home directories.

    Parameters
    ----------
    config
        Policy: whether to create homes at all, with which modes, and from
        which skeleton.
    fs
        Filesystem access layer.  A fresh one is used if not given.
    privileges
        Means of becoming root for the duration of provisioning.  Defaults
        to switching the effective UID and GID.
    logger
        Logger to use.  Defaults to the createhome root logger.
    """

    def __init__(
        self,
        config: Config,
        *,
        fs: Filesystem | None = None,
        privileges: Privileges | None = None,
        logger: BoundLogger | None = None,
    ) -> None:
        self._config = config
        self._fs = fs or Filesystem()
        self._privileges = privileges or EffectiveIdPrivileges()
        self._logger = logger or get_logger(ROOT_LOGGER)
        self._builder = PathBuilder(self._fs, self._logger)
        self._populator = SkeletonPopulator(
            self._fs, self._builder, self._logger
        )

    def provision_home(
        self, home: Path, user: str, uid: int, gid: int
    ) -> bool:
        """Create a user's home directory if configured to do so.

        This is the usual entry point.  If home creation is disabled, this
        does nothing and reports success.

        Parameters
        ----------
        home
            Absolute path of the home directory.
        user
            Name of the user, used only for logging.
        uid
            Owner of the home directory.
        gid
            Group of the home directory.

        Returns
        -------
        bool
            `False` if the home directory could not be created, including
            because the UID, GID, or home path is not acceptable, `True`
            otherwise.  Problems copying skeleton files do not count.

        Raises
        ------
        PrivilegeError
            Raised if superuser privileges could not be dropped again.
        """
        if not self._config.enabled:
            self._logger.debug("Home creation disabled", user=user)
            return True
        try:
            spec = self._config.home_spec(home, uid, gid)
        except ValueError as exc:
            self._logger.warning(
                "Refusing to create home directory",
                user=user,
                home=str(home),
                error=str(exc),
            )
            return False
        return self.provision(spec, user)

    def provision(self, spec: HomeSpec, user: str) -> bool:
        """Create the home directory described by spec, as root.

        Parent directories are created owned by root; the home directory
        and any skeleton files copied into it are owned by the user.
        Existing directories are not modified.  Skeleton entries that
        already exist in the home directory are left alone.

        Raises
        ------
        PrivilegeError
            Raised if superuser privileges could not be dropped again.  The
            process may still be running as root.
        """
        logger = self._logger.bind(user=user, home=str(spec.path))
        try:
            token = self._privileges.elevate()
        except PrivilegeError as exc:
            logger.warning("Could not switch privileges", error=str(exc))
            return False
        try:
            return self._provision_as_root(spec, user, logger)
        finally:
            self._privileges.relinquish(token)

    def _provision_as_root(
        self, spec: HomeSpec, user: str, logger: BoundLogger
    ) -> bool:
        try:
            self._builder.create_path(
                spec.path,
                user,
                spec.uid,
                spec.gid,
                spec.directory_mode,
                spec.home_mode,
            )
        except CreateHomeError as exc:
            logger.warning("Could not create home directory", error=str(exc))
            return False

        if spec.skeleton:
            report = self._populator.populate(
                spec.skeleton, spec.path, spec.uid, spec.gid
            )
            if not report.ok:
                failed = {str(k): v for k, v in report.failed.items()}
                logger.debug(
                    "Error copying skeleton files",
                    report=str(report),
                    failed=failed,
                )
        return True
