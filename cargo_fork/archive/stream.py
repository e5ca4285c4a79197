"""Streaming access to published ``.crate`` archives.

A ``.crate`` is a gzip-compressed tarball. It is read as a chain of byte
sources (network -> gzip -> tar) so the archive is never held in memory
as a whole::

    HttpByteSource(response.iter_bytes())
        -> GzipByteSource(...)
            -> CrateArchive(...).entries() / .unpack(dest)

Every stage only needs ``read(size)``, so the same archive code runs over
an HTTP response, a local file or an in-memory buffer.
"""

from __future__ import annotations

import shutil
import tarfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

import httpx
import structlog

from cargo_fork.config import Settings
from cargo_fork.exceptions import ArchiveFormatError, MalformedArchiveLayout, NetworkError
from cargo_fork.models import CrateCoordinate

log = structlog.get_logger("cargo_fork.archive")

_READ_CHUNK = 64 * 1024


@runtime_checkable
class ByteSource(Protocol):
    """Sequential readable byte source. ``read`` returns ``b""`` at end of stream."""

    def read(self, size: int = -1) -> bytes: ...


class BytesSource:
    """In-memory byte source."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._pos = 0

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            end = len(self._data)
        else:
            end = min(self._pos + size, len(self._data))
        chunk = self._data[self._pos : end].tobytes()
        self._pos = end
        return chunk


class HttpByteSource:
    """Adapts an iterator of network chunks (``Response.iter_bytes``) to ``read``."""

    def __init__(self, chunks: Iterator[bytes]) -> None:
        self._chunks = chunks
        self._pending = bytearray()
        self._exhausted = False

    def _next_chunk(self) -> bytes:
        try:
            return next(self._chunks)
        except StopIteration:
            self._exhausted = True
            return b""
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise NetworkError(f"error while streaming response body: {exc}") from exc

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            while not self._exhausted:
                self._pending += self._next_chunk()
            data = bytes(self._pending)
            self._pending.clear()
            return data

        while len(self._pending) < size and not self._exhausted:
            self._pending += self._next_chunk()
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data


class GzipByteSource:
    """Incrementally gunzips another byte source."""

    def __init__(self, inner: ByteSource, chunk_size: int = _READ_CHUNK) -> None:
        self._inner = inner
        self._chunk_size = chunk_size
        # 16 + MAX_WBITS selects gzip framing
        self._decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
        self._pending = bytearray()
        self._eof = False

    def _fill(self) -> None:
        compressed = self._inner.read(self._chunk_size)
        try:
            if not compressed:
                if not self._decompressor.eof:
                    raise ArchiveFormatError("truncated gzip stream")
                self._eof = True
                return
            self._pending += self._decompressor.decompress(compressed)
        except zlib.error as exc:
            raise ArchiveFormatError(f"invalid gzip data: {exc}") from exc
        if self._decompressor.eof:
            self._eof = True

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            while not self._eof:
                self._fill()
            data = bytes(self._pending)
            self._pending.clear()
            return data

        while len(self._pending) < size and not self._eof:
            self._fill()
        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data


class ArchiveEntry:
    """One member of a streaming archive.

    Only valid until the iteration moves on to the next entry; its content
    can be read (or unpacked) at most once.
    """

    def __init__(self, tar: tarfile.TarFile, member: tarfile.TarInfo) -> None:
        self._tar = tar
        self._member = member

    @property
    def path(self) -> PurePosixPath:
        return PurePosixPath(self._member.name)

    @property
    def name(self) -> str:
        return self.path.name

    def unpack(self, dest: Path) -> Path:
        """Write this entry's content to the file *dest*."""
        fileobj = self._tar.extractfile(self._member)
        if fileobj is None:
            raise ArchiveFormatError(f"archive entry {self._member.name} is not a regular file")
        try:
            with fileobj, open(dest, "wb") as out:
                shutil.copyfileobj(fileobj, out)
        except tarfile.TarError as exc:
            raise ArchiveFormatError(f"cannot read archive entry {self._member.name}: {exc}") from exc
        return dest


class CrateArchive:
    """Tar reader over a :class:`ByteSource`.

    The underlying stream is consumed once: call either :meth:`entries`
    or :meth:`unpack`, a single time. Re-reading requires fetching again.
    """

    def __init__(self, source: ByteSource, name: str = "<stream>") -> None:
        self._source = source
        self.name = name
        self._consumed = False

    def _open(self) -> tarfile.TarFile:
        if self._consumed:
            raise ArchiveFormatError(f"crate archive {self.name} has already been read")
        self._consumed = True
        try:
            return tarfile.open(fileobj=self._source, mode="r|")
        except tarfile.TarError as exc:
            raise ArchiveFormatError(f"cannot read crate archive {self.name}: {exc}") from exc

    def entries(self) -> Iterator[ArchiveEntry]:
        """Yield entries lazily, in archive order."""
        tar = self._open()
        try:
            try:
                for member in tar:
                    yield ArchiveEntry(tar, member)
            except tarfile.TarError as exc:
                raise ArchiveFormatError(f"corrupt crate archive {self.name}: {exc}") from exc
        finally:
            tar.close()

    def unpack(self, dest: Path) -> Path:
        """Unpack everything into the empty directory *dest*.

        Returns the path of the single top-level directory. Raises
        :class:`MalformedArchiveLayout` unless there is exactly one.
        """
        dest.mkdir(parents=True, exist_ok=True)
        tar = self._open()
        try:
            for member in tar:
                _check_member(member, self.name)
                if hasattr(tarfile, "data_filter"):
                    tar.extract(member, dest, filter="data")
                else:
                    tar.extract(member, dest)
        except tarfile.TarError as exc:
            raise ArchiveFormatError(f"cannot unpack crate archive {self.name}: {exc}") from exc
        finally:
            tar.close()

        top_level = sorted(p.name for p in dest.iterdir())
        if len(top_level) != 1 or not (dest / top_level[0]).is_dir():
            raise MalformedArchiveLayout(self.name, top_level)
        log.debug("archive.unpacked", archive=self.name, root=top_level[0])
        return dest / top_level[0]


def _check_member(member: tarfile.TarInfo, archive: str) -> None:
    path = PurePosixPath(member.name)
    if path.is_absolute() or ".." in path.parts:
        raise ArchiveFormatError(f"unsafe path {member.name!r} in crate archive {archive}")
    if member.issym() or member.islnk():
        target = PurePosixPath(member.linkname)
        if target.is_absolute() or ".." in target.parts:
            raise ArchiveFormatError(
                f"unsafe link {member.name!r} -> {member.linkname!r} in crate archive {archive}"
            )


class ArchiveFetcher:
    """Downloads release archives from the registry's static host."""

    def __init__(self, client: httpx.Client, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or Settings()

    def archive_url(self, coordinate: CrateCoordinate) -> str:
        base = self._settings.download_base.rstrip("/")
        return f"{base}/{coordinate.name}/{coordinate.archive_name}"

    @contextmanager
    def open(self, coordinate: CrateCoordinate) -> Iterator[CrateArchive]:
        """Open a streaming :class:`CrateArchive` for *coordinate*.

        The HTTP response stays open for the duration of the ``with`` block.
        """
        url = self.archive_url(coordinate)
        log.info("archive.fetch", url=url)
        try:
            response = self._client.send(self._client.build_request("GET", url), stream=True)
        except httpx.HTTPError as exc:
            raise NetworkError(f"failed to fetch {url}: {exc}") from exc
        try:
            if response.status_code != httpx.codes.OK:
                raise NetworkError(f"failed to fetch {url}: HTTP {response.status_code}")
            source = GzipByteSource(HttpByteSource(response.iter_bytes()))
            yield CrateArchive(source, name=coordinate.archive_name)
        finally:
            response.close()
