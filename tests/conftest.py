"""Shared pytest fixtures for cargo-fork tests."""

from __future__ import annotations

import io
import json
import shutil
import subprocess
import tarfile
from pathlib import Path

import httpx
import pytest

from cargo_fork.config import Settings

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def build_crate(files: dict[str, str | bytes]) -> bytes:
    """Build a gzipped tarball the way ``cargo package`` lays one out."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def vcs_info_json(sha1: str | None = "abcd1234", path_in_vcs: str | None = None) -> str:
    data: dict = {"git": {"sha1": sha1}} if sha1 is not None else {"git": {}}
    if path_in_vcs is not None:
        data["path_in_vcs"] = path_in_vcs
    return json.dumps(data)


class FakeRegistry:
    """In-process stand-in for crates.io and static.crates.io."""

    def __init__(self) -> None:
        self.archives: dict[str, bytes] = {}
        self.crates: dict[str, dict] = {}
        self.requests: list[str] = []

    def add_archive(self, name: str, version: str, files: dict[str, str | bytes]) -> None:
        self.archives[f"/crates/{name}/{name}-{version}.crate"] = build_crate(files)

    def add_crate(self, name: str, repository: str | None) -> None:
        self.crates[name] = {"crate": {"id": name, "name": name, "repository": repository}}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        path = request.url.path
        if request.url.host == "static.crates.io":
            if path in self.archives:
                return httpx.Response(200, content=self.archives[path])
            return httpx.Response(403, content=b"<Error>AccessDenied</Error>")
        if request.url.host == "crates.io" and path.startswith("/api/v1/crates/"):
            name = path.rsplit("/", 1)[-1]
            if name in self.crates:
                return httpx.Response(200, json=self.crates[name])
            return httpx.Response(404, json={"errors": [{"detail": "Not Found"}]})
        return httpx.Response(404)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def http_client(registry: FakeRegistry):
    client = registry.client()
    yield client
    client.close()


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        [
            "git",
            "-c", "user.name=Test",
            "-c", "user.email=test@example.com",
            "-c", "commit.gpgsign=false",
            "-c", "init.defaultBranch=main",
            *args,
        ],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return proc.stdout.strip()


@pytest.fixture
def upstream_repo(tmp_path: Path) -> dict:
    """A local git repository with two commits.

    Returns ``{"path", "url", "first", "second"}`` where first/second are SHAs.
    """
    repo = tmp_path / "upstream"
    repo.mkdir()
    git(repo, "init", "-q")
    (repo / "crates" / "foo").mkdir(parents=True)
    (repo / "crates" / "foo" / "lib.rs").write_text("// v1\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "first")
    first = git(repo, "rev-parse", "HEAD")
    (repo / "crates" / "foo" / "lib.rs").write_text("// v2\n")
    git(repo, "commit", "-q", "-am", "second")
    second = git(repo, "rev-parse", "HEAD")
    return {"path": repo, "url": repo.as_uri(), "first": first, "second": second}
