"""Extract the git provenance cargo records in ``.cargo_vcs_info.json``."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

import structlog

from cargo_fork.archive.stream import ArchiveEntry
from cargo_fork.exceptions import ArchiveFormatError, MissingVcsRevision
from cargo_fork.models import REPO_ROOT, VcsInfo

log = structlog.get_logger("cargo_fork.archive")

VCS_INFO_FILENAME = ".cargo_vcs_info.json"


def parse_vcs_info(content: str, archive: str = "<archive>") -> VcsInfo:
    """Parse the JSON document cargo writes at publish time.

    Expected shape::

        {"git": {"sha1": "<hash>", "dirty": false}, "path_in_vcs": "crates/foo"}

    ``path_in_vcs`` is optional (older cargo releases omit it) and defaults
    to the repository root. A missing ``git.sha1`` is an error.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ArchiveFormatError(f"invalid {VCS_INFO_FILENAME} in {archive}: {exc}") from exc
    if not isinstance(data, dict):
        raise ArchiveFormatError(f"invalid {VCS_INFO_FILENAME} in {archive}: not an object")

    git = data.get("git")
    if not isinstance(git, dict):
        raise MissingVcsRevision(f"no git info found in {VCS_INFO_FILENAME} for {archive}")
    sha1 = git.get("sha1")
    if not sha1:
        raise MissingVcsRevision(f"no revision info found in {VCS_INFO_FILENAME} for {archive}")

    path_in_vcs = data.get("path_in_vcs")
    if path_in_vcs:
        subpath = PurePosixPath(path_in_vcs)
        if subpath.is_absolute() or ".." in subpath.parts:
            raise ArchiveFormatError(f"path_in_vcs escapes the repository in {archive}: {path_in_vcs!r}")
        return VcsInfo(revision_hash=sha1, path_in_repo=PurePosixPath(path_in_vcs))
    return VcsInfo(revision_hash=sha1, path_in_repo=REPO_ROOT, subpath_recorded=False)


def extract_vcs_info(entries: Iterable[ArchiveEntry], archive: str = "<archive>") -> VcsInfo | None:
    """Scan *entries* for the first ``.cargo_vcs_info.json``.

    Returns None when the archive has no such file. Stops reading the
    archive as soon as the file is found.
    """
    for entry in entries:
        if entry.name != VCS_INFO_FILENAME:
            continue
        log.debug("vcs_info.found", archive=archive, path=str(entry.path))
        with tempfile.TemporaryDirectory(prefix="cargo-fork-vcs-") as tmpdir:
            scratch = entry.unpack(Path(tmpdir) / VCS_INFO_FILENAME)
            content = scratch.read_text(encoding="utf-8")
        return parse_vcs_info(content, archive)

    log.info("vcs_info.missing", archive=archive)
    return None
