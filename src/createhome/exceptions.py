"""Exceptions for createhome."""

from pathlib import Path
from typing import override

from safir.slack.blockkit import SlackException, SlackMessage, SlackTextBlock
from safir.slack.sentry import SentryEventInfo

__all__ = [
    "CreateHomeError",
    "DirectoryCreateError",
    "ModeError",
    "OwnershipError",
    "PathLookupError",
    "PrivilegeError",
    "ProvisionFailedError",
    "SkeletonReadError",
    "SkeletonWriteError",
    "SymlinkError",
]


class CreateHomeError(SlackException):
    """A filesystem operation on behalf of home provisioning failed.

    Parameters
    ----------
    action
        Short description of what was being attempted.
    path
        Path the operation was acting on.
    error
        Underlying operating system error, if any.
    """

    def __init__(
        self, action: str, path: Path, error: OSError | None = None
    ) -> None:
        self.path = path
        self.strerror: str | None = None
        if error is not None:
            self.strerror = error.strerror or str(error)
        msg = f"Error {action} '{path!s}'"
        if self.strerror:
            msg += f": {self.strerror}"
        super().__init__(msg)

    @override
    def to_slack(self) -> SlackMessage:
        """Format this exception as a Slack message."""
        message = super().to_slack()
        attachment = SlackTextBlock(heading="Path", text=str(self.path))
        message.attachments.append(attachment)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        """Return Sentry metadata for this exception."""
        info = super().to_sentry()
        info.tags["path"] = str(self.path)
        return info


class PathLookupError(CreateHomeError):
    """Checking whether a path exists failed for some other reason."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__("checking", path, error)


class DirectoryCreateError(CreateHomeError):
    """A directory could not be created."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__("creating", path, error)


class OwnershipError(CreateHomeError):
    """Ownership of a path could not be changed."""

    def __init__(
        self, path: Path, uid: int, gid: int, error: OSError
    ) -> None:
        super().__init__(f"setting ownership {uid}/{gid} of", path, error)


class ModeError(CreateHomeError):
    """Permissions of a path could not be changed."""

    def __init__(self, path: Path, mode: int, error: OSError) -> None:
        super().__init__(f"setting mode {mode:04o} of", path, error)


class SkeletonReadError(CreateHomeError):
    """A skeleton file could not be opened or read."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__("reading", path, error)


class SkeletonWriteError(CreateHomeError):
    """A copied file could not be created, written, or closed."""

    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__("writing", path, error)


class SymlinkError(CreateHomeError):
    """A skeleton symlink could not be read or recreated."""

    def __init__(self, action: str, path: Path, error: OSError) -> None:
        super().__init__(action, path, error)


class PrivilegeError(SlackException):
    """Elevated privileges could not be acquired or released."""


class ProvisionFailedError(SlackException):
    """A home directory could not be provisioned."""
