"""Acquiring and relinquishing superuser privileges."""

import os
from abc import ABCMeta, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from ..constants import SUPERUSER_GID, SUPERUSER_UID
from ..exceptions import PrivilegeError

__all__ = ["EffectiveIdPrivileges", "PrivilegeToken", "Privileges"]


@dataclass(frozen=True, eq=False)
class PrivilegeToken:
    """Proof of an active elevation, needed to relinquish it."""

    euid: int
    """Effective UID to restore on relinquish."""

    egid: int
    """Effective GID to restore on relinquish."""


class Privileges(metaclass=ABCMeta):
    """Paired elevate/relinquish of superuser privileges.

    Only one elevation may be active at a time.  Prefer `elevated`, which
    guarantees the release on every exit path.
    """

    def __init__(self) -> None:
        self._active: PrivilegeToken | None = None

    @property
    def active(self) -> bool:
        """Whether privileges are currently elevated."""
        return self._active is not None

    def elevate(self) -> PrivilegeToken:
        """Acquire superuser privileges.

        Raises
        ------
        PrivilegeError
            Raised if privileges are already elevated or could not be
            acquired.
        """
        if self._active is not None:
            raise PrivilegeError("Privileges are already elevated")
        self._active = self._acquire()
        return self._active

    def relinquish(self, token: PrivilegeToken) -> None:
        """Drop privileges acquired by the `elevate` call returning token.

        Raises
        ------
        PrivilegeError
            Raised if token is not the active elevation or privileges could
            not be dropped.  In the latter case the elevation stays active.
        """
        if token is not self._active:
            raise PrivilegeError("Token does not match active elevation")
        self._release(token)
        self._active = None

    @contextmanager
    def elevated(self) -> Iterator[PrivilegeToken]:
        """Run the body of a ``with`` block with superuser privileges."""
        token = self.elevate()
        try:
            yield token
        finally:
            self.relinquish(token)

    @abstractmethod
    def _acquire(self) -> PrivilegeToken:
        """Switch to superuser and return what is needed to switch back."""

    @abstractmethod
    def _release(self, token: PrivilegeToken) -> None:
        """Switch back to the identity saved in token."""


class EffectiveIdPrivileges(Privileges):
    """Elevate by switching the effective UID and GID.

    This only works if the real or saved UID of the process is root, which
    is the case for daemons that drop privileges after startup.
    """

    def _acquire(self) -> PrivilegeToken:
        token = PrivilegeToken(euid=os.geteuid(), egid=os.getegid())
        try:
            os.seteuid(SUPERUSER_UID)
        except OSError as exc:
            raise PrivilegeError(f"Cannot elevate privileges: {exc}") from exc
        try:
            os.setegid(SUPERUSER_GID)
        except OSError as exc:
            os.seteuid(token.euid)
            raise PrivilegeError(f"Cannot elevate privileges: {exc}") from exc
        return token

    def _release(self, token: PrivilegeToken) -> None:
        try:
            self._restore(token)
        except OSError as exc:
            raise PrivilegeError(f"Cannot drop privileges: {exc}") from exc

    def _restore(self, token: PrivilegeToken) -> None:
        # The group must go first, since changing it needs root.
        if os.getegid() != token.egid:
            os.setegid(token.egid)
        if os.geteuid() != token.euid:
            os.seteuid(token.euid)
