"""Storage layer: filesystem and privilege primitives."""

from .filesystem import Filesystem
from .privileges import EffectiveIdPrivileges, Privileges, PrivilegeToken

__all__ = [
    "EffectiveIdPrivileges",
    "Filesystem",
    "PrivilegeToken",
    "Privileges",
]
