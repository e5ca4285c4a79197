"""cargo-fork: patch a Cargo dependency with a local, editable checkout."""

from cargo_fork.acquire import SourceAcquirer
from cargo_fork.archive import ArchiveFetcher, CrateArchive, extract_vcs_info
from cargo_fork.diff import diff_graphs, format_diff
from cargo_fork.manifest import ManifestPatcher
from cargo_fork.models import (
    AcquiredSource,
    CrateCoordinate,
    DependencyGraph,
    GraphDiff,
    NodeDiff,
    PatchEntry,
    SourceKind,
    VcsInfo,
)
from cargo_fork.orchestrator import ForkOrchestrator, ForkResult
from cargo_fork.repo import RepositoryCheckout

__version__ = "0.1.0"

__all__ = [
    "AcquiredSource",
    "ArchiveFetcher",
    "CrateArchive",
    "CrateCoordinate",
    "DependencyGraph",
    "ForkOrchestrator",
    "ForkResult",
    "GraphDiff",
    "ManifestPatcher",
    "NodeDiff",
    "PatchEntry",
    "RepositoryCheckout",
    "SourceAcquirer",
    "SourceKind",
    "VcsInfo",
    "diff_graphs",
    "extract_vcs_info",
    "format_diff",
]
