"""Source control adapter interface and the types it exchanges."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, Flag
from pathlib import Path
from typing import Dict, List, Optional

from releasegraph.model.version import BaseVersion, Version


class IsSyncFlag(Flag):
    REMOTE_CHANGES = 1
    LOCAL_CHANGES = 2
    ALL_CHANGES = REMOTE_CHANGES | LOCAL_CHANGES


class CommitFlag(Flag):
    """Fields to fill in when listing commits."""

    NONE = 0
    INCLUDE_MESSAGE = 1
    INCLUDE_MAP_ATTR = 2
    INCLUDE_VERSION_STATIC = 4
    UPDATE_START_INDEX = 8


class MergeResult(Enum):
    MERGED = "merged"
    CONFLICTS = "conflicts"
    NOTHING_TO_MERGE = "nothing_to_merge"


@dataclass
class Commit:
    """A commit, populated according to the CommitFlag used to list it."""

    id: str
    message: Optional[str] = None
    attributes: Optional[Dict[str, str]] = None
    static_versions: Optional[List[Version]] = None


@dataclass
class CommitPaging:
    """
    Paging state for commit listing.

    start_index is advanced by the listing when UPDATE_START_INDEX is
    requested. done is set once the listing reached its end.
    """

    start_index: int = 0
    max_count: int = -1
    returned: int = 0
    done: bool = False


class ScmAdapter(ABC):
    """Operations a module's source control adapter provides."""

    @abstractmethod
    def get_scm_type(self) -> str:
        pass

    @abstractmethod
    def get_scm_url(self, path: Optional[Path] = None) -> str:
        pass

    @abstractmethod
    def is_module_exists(self) -> bool:
        pass

    @abstractmethod
    def get_default_version(self) -> Version:
        pass

    @abstractmethod
    def checkout_system(self, version: Optional[Version] = None) -> Path:
        pass

    @abstractmethod
    def check_out(self, version: Version, path: Path) -> None:
        pass

    @abstractmethod
    def get_version(self, path: Path) -> Version:
        pass

    @abstractmethod
    def is_sync(self, path: Path, flags: IsSyncFlag) -> bool:
        pass

    @abstractmethod
    def update(self, path: Path) -> bool:
        pass

    @abstractmethod
    def switch_version(self, path: Path, version: Version) -> bool:
        pass

    @abstractmethod
    def commit(
        self, path: Path, message: str, attributes: Optional[Dict[str, str]] = None
    ) -> None:
        pass

    @abstractmethod
    def is_version_exists(self, version: Version) -> bool:
        pass

    @abstractmethod
    def get_list_version_static(self) -> List[Version]:
        pass

    @abstractmethod
    def create_version(
        self,
        path: Path,
        version_target: Version,
        attributes: Optional[Dict[str, str]] = None,
        switch: bool = True,
    ) -> None:
        pass

    @abstractmethod
    def get_map_version_attr(self, version: Version) -> Dict[str, str]:
        pass

    @abstractmethod
    def create_temp_dynamic_version(self, path: Path) -> None:
        pass

    @abstractmethod
    def release_temp_dynamic_version(self, path: Path) -> None:
        pass

    @abstractmethod
    def is_temp_dynamic_version(self) -> bool:
        pass

    @abstractmethod
    def get_base_version(self, version: Version) -> Optional[BaseVersion]:
        pass

    @abstractmethod
    def get_list_commit(
        self,
        version: Version,
        paging: Optional[CommitPaging] = None,
        flags: CommitFlag = CommitFlag.NONE,
    ) -> List[Commit]:
        pass

    @abstractmethod
    def get_list_commit_diverge(
        self,
        version_src: Version,
        version_dest: Version,
        paging: Optional[CommitPaging] = None,
        flags: CommitFlag = CommitFlag.NONE,
    ) -> List[Commit]:
        pass

    @abstractmethod
    def merge(
        self, path: Path, version_src: Version, message: Optional[str] = None
    ) -> MergeResult:
        pass

    @abstractmethod
    def merge_exclude_commits(
        self,
        path: Path,
        version_src: Version,
        exclude: List[Commit],
        message: Optional[str] = None,
    ) -> MergeResult:
        pass

    @abstractmethod
    def replace(
        self, path: Path, version_src: Version, message: Optional[str] = None
    ) -> MergeResult:
        pass
