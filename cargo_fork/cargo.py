"""Wrappers around the ``cargo`` commands the fork pipeline depends on."""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path

import structlog

from cargo_fork import process
from cargo_fork.exceptions import (
    AmbiguousPackageMatch,
    CargoCommandError,
    PackageNotFound,
)
from cargo_fork.models import CargoPackage, DependencyGraph, WorkspaceMetadata

log = structlog.get_logger("cargo_fork.cargo")


def parse_metadata(raw: str) -> WorkspaceMetadata:
    """Parse ``cargo metadata --format-version 1`` JSON output."""
    data = json.loads(raw)
    packages = [
        CargoPackage(
            id=p["id"],
            name=p["name"],
            version=p["version"],
            manifest_path=Path(p["manifest_path"]),
            repository=p.get("repository"),
        )
        for p in data.get("packages", [])
    ]
    resolve: DependencyGraph = {}
    # "resolve" is null when metadata was produced with --no-deps
    for node in (data.get("resolve") or {}).get("nodes", []):
        resolve[node["id"]] = frozenset(node.get("dependencies", []))
    return WorkspaceMetadata(
        workspace_root=Path(data["workspace_root"]),
        packages=packages,
        workspace_members=list(data.get("workspace_members", [])),
        resolve=resolve,
    )


def find_package(packages: Iterable[CargoPackage], name: str) -> CargoPackage:
    """Return the only package called *name*."""
    matches = [p for p in packages if p.name == name]
    if not matches:
        raise PackageNotFound(f"package {name} is not a dependency")
    if len(matches) > 1:
        raise AmbiguousPackageMatch(name, [p.id for p in matches])
    return matches[0]


class Cargo:
    """Runs cargo as a subprocess."""

    def __init__(self, executable: str = "cargo") -> None:
        self._cargo = executable

    def metadata(self, cwd: Path) -> WorkspaceMetadata:
        """Resolve the workspace containing *cwd* and return its metadata."""
        proc = process.run(
            [self._cargo, "metadata", "--format-version", "1"],
            cwd=cwd,
            error_cls=CargoCommandError,
        )
        try:
            metadata = parse_metadata(proc.stdout)
        except (ValueError, KeyError) as exc:
            raise CargoCommandError(
                [self._cargo, "metadata"], proc.returncode, f"unparseable output: {exc}"
            ) from exc
        log.debug(
            "cargo.metadata",
            workspace_root=str(metadata.workspace_root),
            packages=len(metadata.packages),
        )
        return metadata

    def update(self, workspace_root: Path, manifest_path: Path, package: str) -> None:
        """Re-lock *package* after its source was overridden."""
        log.info("cargo.update", package=package, manifest=str(manifest_path))
        process.run(
            [
                self._cargo,
                "update",
                "--quiet",
                "--workspace",
                "--package",
                package,
                "--manifest-path",
                str(manifest_path),
            ],
            cwd=workspace_root,
            error_cls=CargoCommandError,
        )
