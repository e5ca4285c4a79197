"""Insert ``[patch.<registry>]`` overrides into a Cargo.toml.

The manifest is edited as a tomlkit document, so comments, key order and
whitespace outside the inserted entry survive the round trip unchanged.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from pathlib import Path

import structlog
import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import InlineTable
from tomlkit.toml_document import TOMLDocument

from cargo_fork.config import DEFAULT_REGISTRY_NAME
from cargo_fork.exceptions import ManifestParseError
from cargo_fork.models import PatchEntry

log = structlog.get_logger("cargo_fork.manifest")


def load_manifest(path: Path) -> TOMLDocument:
    try:
        with open(path, encoding="utf-8", newline="") as f:
            text = f.read()
    except OSError as exc:
        raise ManifestParseError(f"failed to read manifest {path}: {exc}") from exc
    return parse_manifest(text, str(path))


def parse_manifest(text: str, source: str = "<manifest>") -> TOMLDocument:
    try:
        return tomlkit.parse(text)
    except TOMLKitError as exc:
        raise ManifestParseError(f"failed to parse manifest {source}: {exc}") from exc


def write_manifest(doc: TOMLDocument, path: Path) -> None:
    # newline="" keeps whatever line endings the document already had
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(tomlkit.dumps(doc))


def get_or_create_table(root: MutableMapping, keys: list[str]) -> MutableMapping:
    """Walk *keys* from *root*, creating missing tables on the way.

    Tables created for every key but the last are super tables, so an
    empty ``[patch]`` header is not emitted above ``[patch.crates-io]``.
    Raises :class:`ManifestParseError` if a key on the path holds a value
    that is not a table.
    """
    current = root
    for depth, key in enumerate(keys):
        if key not in current:
            is_leaf = depth == len(keys) - 1
            if isinstance(current, InlineTable):
                current[key] = tomlkit.inline_table()
            else:
                current[key] = tomlkit.table(is_super_table=not is_leaf)
        child = current[key]
        if not isinstance(child, MutableMapping):
            dotted = ".".join(keys[: depth + 1])
            raise ManifestParseError(f"malformed Cargo.toml: '{dotted}' is not a table")
        current = child
    return current


class ManifestPatcher:
    """Writes path overrides into ``[patch.<registry_name>]``."""

    def __init__(self, registry_name: str = DEFAULT_REGISTRY_NAME) -> None:
        self.registry_name = registry_name

    def insert_patch(self, doc: TOMLDocument, entry: PatchEntry) -> None:
        """Add or replace the override for ``entry.package_name``.

        ``package`` is written explicitly so the key can later be renamed
        when several versions of one crate are patched. Only one override
        per package name is kept: a second insert replaces the first.
        """
        table = get_or_create_table(doc, ["patch", self.registry_name])
        record = tomlkit.inline_table()
        record.append("path", str(entry.local_path))
        record.append("package", entry.package_name)
        replaced = entry.package_name in table
        table[entry.package_name] = record
        log.info(
            "manifest.patch",
            package=entry.package_name,
            path=str(entry.local_path),
            replaced=replaced,
        )
