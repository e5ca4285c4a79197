"""Custom exceptions for cargo-fork."""


class CargoForkError(Exception):
    """Base exception for all cargo-fork errors."""


class ConfigError(CargoForkError):
    """Raised when a CARGO_FORK_* environment variable holds an invalid value."""


class NetworkError(CargoForkError):
    """Raised when a registry request fails or returns a non-success status."""


class ArchiveFormatError(CargoForkError):
    """Raised when a crate archive cannot be decompressed or parsed."""


class MalformedArchiveLayout(ArchiveFormatError):
    """Raised when an unpacked crate does not have exactly one top-level entry."""

    def __init__(self, archive: str, entries: list[str]):
        self.archive = archive
        self.entries = entries
        if entries:
            detail = f"{len(entries)} top-level entries: {entries}"
        else:
            detail = "no top-level entries"
        super().__init__(f"crate archive {archive} has {detail}, expected exactly one directory")


class MissingVcsRevision(CargoForkError):
    """Raised when .cargo_vcs_info.json exists but carries no git revision."""


class NoVcsInfoForRelease(CargoForkError):
    """Raised when a release archive has no .cargo_vcs_info.json."""


class NoRepositoryDeclared(CargoForkError):
    """Raised when the registry entry for a crate has no repository URL."""


class RevisionNotFound(CargoForkError):
    """Raised when a git revision does not exist in the checked-out repository."""

    def __init__(self, revision: str, repo_url: str):
        self.revision = revision
        self.repo_url = repo_url
        super().__init__(f"revision {revision} not found in {repo_url}")


class DestinationExists(CargoForkError):
    """Raised when the patch destination directory is already occupied."""


class ManifestParseError(CargoForkError):
    """Raised when Cargo.toml cannot be read, parsed or navigated."""


class PackageNotFound(CargoForkError):
    """Raised when no package with the requested name is known."""


class AmbiguousPackageMatch(CargoForkError):
    """Raised when a package name matches more than one package."""

    def __init__(self, name: str, package_ids: list[str]):
        self.name = name
        self.package_ids = package_ids
        super().__init__(
            f"found {len(package_ids)} packages named '{name}': {package_ids}"
        )


class CommandError(CargoForkError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        message = f"command failed (exit {returncode}): {' '.join(cmd)}"
        if stderr:
            message += f": {stderr}"
        super().__init__(message)


class GitCommandError(CommandError):
    """Raised when a git command fails."""


class CargoCommandError(CommandError):
    """Raised when a cargo command fails."""
