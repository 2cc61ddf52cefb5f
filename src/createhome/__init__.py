"""Create user home directories on demand."""

from importlib.metadata import PackageNotFoundError, version

from .config import Config
from .models import HomeSpec
from .services.provisioner import Provisioner

__all__ = ["Config", "HomeSpec", "Provisioner", "__version__"]


__version__: str
"""The application version string (PEP 440 / SemVer compatible)."""

try:
    __version__ = version(__name__)
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"
