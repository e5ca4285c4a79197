"""End-to-end fork pipeline: acquire -> patch manifest -> re-lock -> diff."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import structlog

from cargo_fork.acquire import SourceAcquirer
from cargo_fork.archive.stream import ArchiveFetcher
from cargo_fork.cargo import Cargo, find_package
from cargo_fork.config import Settings
from cargo_fork.diff import diff_graphs
from cargo_fork.manifest import ManifestPatcher, load_manifest, write_manifest
from cargo_fork.models import CrateCoordinate, GraphDiff, PatchEntry, SourceKind
from cargo_fork.progress import ProgressTracker
from cargo_fork.registry import RegistryClient
from cargo_fork.repo import RepositoryCheckout

log = structlog.get_logger("cargo_fork.orchestrator")


@dataclass
class ForkResult:
    crate: CrateCoordinate
    source: SourceKind
    patch_path: Path
    manifest_path: Path
    diff: GraphDiff = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)


class ForkOrchestrator:
    """Runs one fork invocation against the workspace containing *cwd*.

    Stages run strictly in order and the first failure aborts the run.
    Nothing is rolled back: if ``update-lockfile`` fails the manifest
    stays patched.
    """

    def __init__(
        self,
        acquirer: SourceAcquirer,
        patcher: ManifestPatcher,
        cargo: Cargo,
    ) -> None:
        self._acquirer = acquirer
        self._patcher = patcher
        self._cargo = cargo
        self.progress = ProgressTracker()

    @classmethod
    def create(cls, settings: Settings, client: httpx.Client) -> ForkOrchestrator:
        cargo = Cargo(settings.cargo)
        acquirer = SourceAcquirer(
            fetcher=ArchiveFetcher(client, settings),
            registry=RegistryClient(client, settings),
            checkout=RepositoryCheckout(settings.git),
            cargo=cargo,
        )
        return cls(acquirer, ManifestPatcher(settings.registry_name), cargo)

    def run(
        self,
        crate_name: str,
        source: SourceKind,
        *,
        cwd: Path,
        dest_dir: Path | None = None,
    ) -> ForkResult:
        stage = self.progress.stage

        with stage("metadata-before"):
            before = self._cargo.metadata(cwd)
        manifest_path = before.manifest_path
        log.info("orchestrator.manifest", path=str(manifest_path))

        with stage("load-manifest"):
            doc = load_manifest(manifest_path)

        with stage("find-package") as p:
            package = find_package(before.packages, crate_name)
            p.detail = package.id

        with stage("acquire") as p:
            acquired = self._acquirer.acquire(
                source,
                package.coordinate,
                parent_dir=before.workspace_root.parent,
                dest_dir=dest_dir,
            )
            p.detail = str(acquired.local_path)

        with stage("patch-manifest"):
            self._patcher.insert_patch(
                doc, PatchEntry(package_name=crate_name, local_path=acquired.local_path)
            )
            write_manifest(doc, manifest_path)

        with stage("update-lockfile"):
            self._cargo.update(before.workspace_root, manifest_path, crate_name)

        with stage("metadata-after"):
            after = self._cargo.metadata(cwd)

        with stage("diff") as p:
            diff = diff_graphs(before.resolve, after.resolve)
            p.detail = f"{len(diff)} changed"

        return ForkResult(
            crate=package.coordinate,
            source=source,
            patch_path=acquired.local_path,
            manifest_path=manifest_path,
            diff=diff,
            summary=self.progress.get_summary(),
        )
