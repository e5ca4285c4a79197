"""Tests for crates.io lookups."""

from __future__ import annotations

import httpx
import pytest

from cargo_fork.config import Settings
from cargo_fork.exceptions import NetworkError, NoRepositoryDeclared
from cargo_fork.registry import RegistryClient, build_http_client, repo_dir_name


class TestRepoDirName:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://github.com/serde-rs/json", "json"),
            ("https://github.com/serde-rs/json.git", "json"),
            ("https://github.com/serde-rs/json/", "json"),
            ("https://gitlab.com/group/sub/project", "project"),
            ("file:///tmp/upstream", "upstream"),
        ],
    )
    def test_last_segment(self, url, expected):
        assert repo_dir_name(url) == expected

    def test_no_path(self):
        with pytest.raises(NoRepositoryDeclared, match="cannot derive a directory name"):
            repo_dir_name("https://example.com/")


class TestRegistryClient:
    def test_repository(self, registry, http_client, settings):
        registry.add_crate("serde", "https://github.com/serde-rs/serde")
        client = RegistryClient(http_client, settings)
        assert client.get_repository("serde") == "https://github.com/serde-rs/serde"
        assert registry.requests == ["https://crates.io/api/v1/crates/serde"]

    def test_no_repository(self, registry, http_client, settings):
        registry.add_crate("lonely", None)
        with pytest.raises(NoRepositoryDeclared, match="lonely"):
            RegistryClient(http_client, settings).get_repository("lonely")

    def test_blank_repository(self, registry, http_client, settings):
        registry.add_crate("blank", "   ")
        with pytest.raises(NoRepositoryDeclared):
            RegistryClient(http_client, settings).get_repository("blank")

    def test_unknown_crate(self, http_client, settings):
        with pytest.raises(NetworkError, match="404"):
            RegistryClient(http_client, settings).get_repository("nope")

    def test_custom_api_base(self, registry):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"crate": {"repository": "https://example.com/r"}})

        settings = Settings(registry_api="https://mirror.example.com/api/v1")
        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            assert RegistryClient(client, settings).get_repository("x") == "https://example.com/r"
        assert seen == ["https://mirror.example.com/api/v1/crates/x"]


class TestBuildHttpClient:
    def test_user_agent_and_timeout(self):
        settings = Settings(http_timeout=5)
        with build_http_client(settings) as client:
            assert client.headers["User-Agent"].startswith("cargo-fork/")
            assert client.timeout.read == 5
            assert client.follow_redirects is True
