"""Git checkout helper for VCS-based sources."""

from __future__ import annotations

from pathlib import Path

import structlog

from cargo_fork import process
from cargo_fork.exceptions import GitCommandError, RevisionNotFound

log = structlog.get_logger("cargo_fork.repo")

# ``git rev-parse --verify --quiet`` exits 1 (with no output) for unknown revisions.
_REV_PARSE_NOT_FOUND = 1


class RepositoryCheckout:
    """Clone (or reuse) a working copy and check out one revision."""

    def __init__(self, git: str = "git") -> None:
        self._git = git

    def checkout(self, repo_url: str, revision: str, dest: Path) -> str:
        """Make *dest* a working copy of *repo_url* at *revision*.

        *revision* can be a commit SHA or ``HEAD``. An existing *dest* is
        reused as-is: it is not checked for local changes or refreshed from
        the remote. Returns the full SHA that was checked out.
        """
        if dest.exists():
            self._ensure_repository_root(dest)
            log.info("repo.reuse", path=str(dest))
        else:
            log.info("repo.clone", repo_url=repo_url, path=str(dest))
            self._git_cmd(["clone", "--", repo_url, str(dest)])

        sha = self.resolve(dest, revision, repo_url)
        log.info("repo.checkout", rev=sha[:8], path=str(dest))
        self._git_cmd(["-C", str(dest), "checkout", "--force", "--detach", sha])
        return sha

    def resolve(self, dest: Path, revision: str, repo_url: str = "") -> str:
        """Resolve *revision* to a commit SHA inside *dest*."""
        proc = process.run(
            [self._git, "-C", str(dest), "rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"],
            error_cls=GitCommandError,
            allowed_returncodes=(0, _REV_PARSE_NOT_FOUND),
        )
        if proc.returncode == _REV_PARSE_NOT_FOUND:
            raise RevisionNotFound(revision, repo_url or str(dest))
        return proc.stdout.strip()

    def _ensure_repository_root(self, dest: Path) -> None:
        """Fail unless *dest* is the top of its own working copy.

        A plain directory nested in some other repository is rejected rather
        than resolved to the enclosing one.
        """
        cmd = [self._git, "-C", str(dest), "rev-parse", "--show-toplevel"]
        proc = process.run(cmd, error_cls=GitCommandError)
        toplevel = Path(proc.stdout.strip()).resolve()
        if toplevel != dest.resolve():
            raise GitCommandError(
                cmd, proc.returncode, f"{dest} is not a repository root (enclosing repository: {toplevel})"
            )

    def _git_cmd(self, args: list[str]) -> None:
        process.run([self._git, *args], error_cls=GitCommandError)
