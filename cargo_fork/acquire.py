"""Materialize a dependency's source on disk.

Three strategies, selected by :class:`SourceKind`:

- ``crate``: unpack the exact ``.crate`` published to the registry.
- ``vcs-head``: clone the declared repository at HEAD.
- ``vcs-current``: clone the declared repository at the commit recorded in
  the release's ``.cargo_vcs_info.json``.
"""

from __future__ import annotations

import shutil
import tempfile
from contextlib import closing
from pathlib import Path

import structlog

from cargo_fork.archive.stream import ArchiveFetcher
from cargo_fork.archive.vcs_info import VCS_INFO_FILENAME, extract_vcs_info
from cargo_fork.cargo import Cargo, find_package
from cargo_fork.exceptions import DestinationExists, NoVcsInfoForRelease, PackageNotFound
from cargo_fork.models import AcquiredSource, CrateCoordinate, SourceKind, VcsInfo
from cargo_fork.registry import RegistryClient, repo_dir_name
from cargo_fork.repo import RepositoryCheckout

log = structlog.get_logger("cargo_fork.acquire")


class SourceAcquirer:
    """Fetches a crate's source with one of the three strategies."""

    def __init__(
        self,
        fetcher: ArchiveFetcher,
        registry: RegistryClient,
        checkout: RepositoryCheckout,
        cargo: Cargo,
    ) -> None:
        self._fetcher = fetcher
        self._registry = registry
        self._checkout = checkout
        self._cargo = cargo
        self._handlers = {
            SourceKind.ARCHIVE_SNAPSHOT: self._acquire_archive,
            SourceKind.VCS_HEAD: self._acquire_vcs_head,
            SourceKind.VCS_PINNED_TO_RELEASE: self._acquire_vcs_pinned,
        }

    def acquire(
        self,
        kind: SourceKind,
        coordinate: CrateCoordinate,
        parent_dir: Path,
        dest_dir: Path | None = None,
    ) -> AcquiredSource:
        """Fetch *coordinate* and return where its source now lives.

        The destination is *dest_dir* if given, otherwise a directory under
        *parent_dir* named after the archive root (``foo-1.2.3``) or the
        repository (``foo``).
        """
        log.info("acquire.start", crate=str(coordinate), source=kind.value)
        path = self._handlers[kind](coordinate, parent_dir, dest_dir)
        log.info("acquire.done", crate=str(coordinate), path=str(path))
        return AcquiredSource(local_path=path.absolute())

    # ── crate archive ────────────────────────────────────────────────────

    def _acquire_archive(
        self, coordinate: CrateCoordinate, parent_dir: Path, dest_dir: Path | None
    ) -> Path:
        if dest_dir is not None:
            _ensure_vacant(dest_dir)
        scratch_parent = dest_dir.parent if dest_dir is not None else parent_dir
        scratch_parent.mkdir(parents=True, exist_ok=True)

        # Scratch dir on the same filesystem so the final move is a rename.
        with tempfile.TemporaryDirectory(prefix=".cargo-fork-", dir=scratch_parent) as tmpdir:
            with self._fetcher.open(coordinate) as archive:
                archive_root = archive.unpack(Path(tmpdir))
            dest = dest_dir if dest_dir is not None else parent_dir / archive_root.name
            _ensure_vacant(dest)
            shutil.move(str(archive_root), str(dest))
        return dest

    # ── version control ──────────────────────────────────────────────────

    def _acquire_vcs_head(
        self, coordinate: CrateCoordinate, parent_dir: Path, dest_dir: Path | None
    ) -> Path:
        repo_url = self._registry.get_repository(coordinate.name)
        dest = dest_dir if dest_dir is not None else parent_dir / repo_dir_name(repo_url)
        self._checkout.checkout(repo_url, "HEAD", dest)
        return dest

    def _acquire_vcs_pinned(
        self, coordinate: CrateCoordinate, parent_dir: Path, dest_dir: Path | None
    ) -> Path:
        repo_url = self._registry.get_repository(coordinate.name)
        vcs_info = self.lookup_vcs_info(coordinate)
        if vcs_info is None:
            raise NoVcsInfoForRelease(
                f"no {VCS_INFO_FILENAME} for package {coordinate.name}:{coordinate.version}, "
                "try --source vcs-head"
            )

        dest = dest_dir if dest_dir is not None else parent_dir / repo_dir_name(repo_url)
        self._checkout.checkout(repo_url, vcs_info.revision_hash, dest)

        if vcs_info.subpath_recorded:
            return dest / vcs_info.path_in_repo
        return dest / self._locate_in_checkout(coordinate.name, dest)

    def lookup_vcs_info(self, coordinate: CrateCoordinate) -> VcsInfo | None:
        """Read the provenance recorded in the published archive, if any."""
        with self._fetcher.open(coordinate) as archive, closing(archive.entries()) as entries:
            return extract_vcs_info(entries, archive.name)

    def _locate_in_checkout(self, name: str, checkout_dir: Path) -> Path:
        """Find the directory of *name* within a (possibly multi-crate) repository."""
        metadata = self._cargo.metadata(checkout_dir)
        try:
            pkg = find_package(metadata.workspace_packages(), name)
        except PackageNotFound as exc:
            raise PackageNotFound(
                f"failed to find package {name} in repo {checkout_dir}"
            ) from exc
        root = checkout_dir.resolve()
        try:
            return pkg.manifest_path.parent.resolve().relative_to(root)
        except ValueError as exc:
            raise PackageNotFound(
                f"package {name} resolves outside repo {checkout_dir}: {pkg.manifest_path}"
            ) from exc


def _ensure_vacant(dest: Path) -> None:
    if dest.exists():
        raise DestinationExists(f"patch directory {dest} already exists")
