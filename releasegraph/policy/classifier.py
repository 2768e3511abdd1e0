"""Ordering of static versions."""

import re
from typing import List, Tuple

from packaging.version import InvalidVersion
from packaging.version import Version as PackagingVersion

from releasegraph.model.version import Version

_DIGITS_PATTERN = re.compile(r"(\d+)")


def _natural_key(name: str) -> Tuple:
    parts = _DIGITS_PATTERN.split(name)
    return tuple(int(part) if i % 2 else part.lower() for i, part in enumerate(parts))


class VersionClassifier:
    """
    Orders static versions by name.

    Names that packaging.version can parse ("1.2", "v2.0.10", "1.0rc1") are
    ordered as versions and rank above names that cannot, which are ordered
    naturally ("rel-9" < "rel-10").
    """

    def sort_key(self, version: Version) -> Tuple:
        try:
            return (1, PackagingVersion(version.name), ())
        except InvalidVersion:
            return (0, PackagingVersion("0"), _natural_key(version.name))

    def compare(self, version1: Version, version2: Version) -> int:
        key1 = self.sort_key(version1)
        key2 = self.sort_key(version2)
        return (key1 > key2) - (key1 < key2)

    def sort(self, versions: List[Version], newest_first: bool = True) -> List[Version]:
        return sorted(versions, key=self.sort_key, reverse=newest_first)
