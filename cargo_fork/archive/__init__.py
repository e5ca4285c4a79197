"""Release archive streaming and provenance extraction."""

from cargo_fork.archive.stream import (
    ArchiveEntry,
    ArchiveFetcher,
    ByteSource,
    BytesSource,
    CrateArchive,
    GzipByteSource,
    HttpByteSource,
)
from cargo_fork.archive.vcs_info import VCS_INFO_FILENAME, extract_vcs_info, parse_vcs_info

__all__ = [
    "VCS_INFO_FILENAME",
    "ArchiveEntry",
    "ArchiveFetcher",
    "ByteSource",
    "BytesSource",
    "CrateArchive",
    "GzipByteSource",
    "HttpByteSource",
    "extract_vcs_info",
    "parse_vcs_info",
]
