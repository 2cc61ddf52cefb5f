"""Services that create and populate home directories."""

from .pathbuilder import PathBuilder
from .populator import SkeletonPopulator
from .provisioner import Provisioner

__all__ = ["PathBuilder", "Provisioner", "SkeletonPopulator"]
