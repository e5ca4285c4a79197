"""Data models shared across the fork pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

# Node id -> ids of the nodes it depends on.
DependencyGraph = dict[str, frozenset[str]]

REPO_ROOT = PurePosixPath(".")


class SourceKind(Enum):
    """Where the patched source comes from."""

    ARCHIVE_SNAPSHOT = "crate"
    VCS_HEAD = "vcs-head"
    VCS_PINNED_TO_RELEASE = "vcs-current"


@dataclass(frozen=True)
class CrateCoordinate:
    """A published crate release."""

    name: str
    version: str

    @property
    def archive_name(self) -> str:
        return f"{self.name}-{self.version}.crate"

    def __str__(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass(frozen=True)
class VcsInfo:
    """Commit and subpath recorded in a release's .cargo_vcs_info.json.

    ``subpath_recorded`` is False when the file omitted ``path_in_vcs`` and
    ``path_in_repo`` fell back to the repository root.
    """

    revision_hash: str
    path_in_repo: PurePosixPath = REPO_ROOT
    subpath_recorded: bool = True


@dataclass(frozen=True)
class AcquiredSource:
    local_path: Path


@dataclass(frozen=True)
class PatchEntry:
    """One row of ``[patch.<registry>]``."""

    package_name: str
    local_path: Path


@dataclass
class NodeDiff:
    """Edge changes for one node of the dependency graph."""

    added: set[str] = field(default_factory=set)
    removed: set[str] = field(default_factory=set)
    is_new: bool = False


GraphDiff = dict[str, NodeDiff]


@dataclass(frozen=True)
class CargoPackage:
    """Subset of a ``cargo metadata`` package entry."""

    id: str
    name: str
    version: str
    manifest_path: Path
    repository: str | None = None

    @property
    def coordinate(self) -> CrateCoordinate:
        return CrateCoordinate(name=self.name, version=self.version)


@dataclass
class WorkspaceMetadata:
    """Parsed output of ``cargo metadata --format-version 1``."""

    workspace_root: Path
    packages: list[CargoPackage] = field(default_factory=list)
    workspace_members: list[str] = field(default_factory=list)
    resolve: DependencyGraph = field(default_factory=dict)

    @property
    def manifest_path(self) -> Path:
        return self.workspace_root / "Cargo.toml"

    def workspace_packages(self) -> list[CargoPackage]:
        members = set(self.workspace_members)
        return [p for p in self.packages if p.id in members]
