"""crates.io API access."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from urllib.parse import urlparse

import httpx
import structlog

from cargo_fork.config import Settings
from cargo_fork.exceptions import NetworkError, NoRepositoryDeclared

log = structlog.get_logger("cargo_fork.registry")


def _user_agent() -> str:
    try:
        ver = version("cargo-fork")
    except PackageNotFoundError:
        ver = "0.0.0"
    return f"cargo-fork/{ver} (https://github.com/ahupp/cargo-fork)"


def build_http_client(settings: Settings, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the HTTP client shared by registry lookups and archive downloads.

    crates.io rejects requests without a descriptive User-Agent.
    """
    return httpx.Client(
        headers={"User-Agent": _user_agent()},
        timeout=settings.http_timeout,
        follow_redirects=True,
        transport=transport,
    )


def repo_dir_name(repo_url: str) -> str:
    """Directory name a clone of *repo_url* gets by default.

    >>> repo_dir_name("https://github.com/serde-rs/json.git")
    'json'
    """
    path = urlparse(repo_url).path.rstrip("/")
    name = path.rsplit("/", 1)[-1].removesuffix(".git")
    if not name:
        raise NoRepositoryDeclared(f"cannot derive a directory name from repository URL {repo_url!r}")
    return name


class RegistryClient:
    """Thin wrapper around the crates.io ``/crates/<name>`` endpoint."""

    def __init__(self, client: httpx.Client, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or Settings()

    def get_crate(self, name: str) -> dict:
        url = f"{self._settings.registry_api.rstrip('/')}/crates/{name}"
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise NetworkError(f"failed to query {url}: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise NetworkError(f"failed to query {url}: HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(f"invalid JSON from {url}: {exc}") from exc

    def get_repository(self, name: str) -> str:
        """Return the repository URL the crate declares.

        Raises :class:`NoRepositoryDeclared` if it declares none.
        """
        data = self.get_crate(name)
        repo_url = ((data.get("crate") or {}).get("repository") or "").strip()
        if not repo_url:
            raise NoRepositoryDeclared(f"package {name} does not specify a repository")
        log.info("registry.repository", crate=name, repo_url=repo_url)
        return repo_url
