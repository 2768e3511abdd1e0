"""Version selection policies and the ordering of static versions."""

from .classifier import VersionClassifier
from .select import CanReuse, VersionSelector

__all__ = ["VersionClassifier", "VersionSelector", "CanReuse"]
