"""Constants for createhome.  Overrideable for testing."""

from pathlib import Path

__all__ = [
    "CONFIG_FILE",
    "CONFIG_FILE_ENV_VAR",
    "COPY_BUFFER_SIZE",
    "DEFAULT_DIRECTORY_MODE",
    "DEFAULT_HOME_MODE",
    "ENV_PREFIX",
    "MAX_ID",
    "RESERVED_UIDS",
    "ROOT_LOGGER",
    "SUPERUSER_GID",
    "SUPERUSER_UID",
]

CONFIG_FILE = Path("/etc/createhome/config.yaml")
"""Default location of the configuration file."""

ENV_PREFIX = "CREATEHOME_"
"""Prefix for environment variables overriding configuration."""

CONFIG_FILE_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
"""Environment variable that overrides the configuration file location."""

ROOT_LOGGER = "createhome"
"""Root logger name."""

DEFAULT_HOME_MODE = 0o700
"""Mode of the home directory itself when none is configured."""

DEFAULT_DIRECTORY_MODE = 0o711
"""Mode of created parent directories when none is configured."""

COPY_BUFFER_SIZE = 8192
"""Chunk size used when streaming skeleton files."""

SUPERUSER_UID = 0
SUPERUSER_GID = 0

MAX_ID = 2**32 - 1  # True for Linux, which is where we run
# cf https://en.wikipedia.org/wiki/User_identifier
RESERVED_UIDS = (MAX_ID, 0, 65535, 65534)
"""Owners that never get a home directory.  Any valid GID is allowed."""
