"""
Version manifest model.

Manifests are the ``latest*.yml`` documents written next to the installers by
the publish pipeline. Three field sets exist in the wild:

- bare ``path``/``sha512`` (older pipelines, no ``files`` list)
- a ``files`` list without ``path``
- both, which is what the current pipeline writes

All three parse into the same :class:`Manifest`; the ``schema`` tag records
which one was seen so the resolver can pick the matching lookup.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import yaml

from release_gateway.errors import ManifestInconsistency, ManifestMalformed

logger = logging.getLogger(__name__)


class ManifestSchema(enum.Enum):
    PRIMARY_ONLY = "primary_only"
    FILES_ONLY = "files_only"
    FILES_WITH_PRIMARY = "files_with_primary"


@dataclass(frozen=True)
class ArtifactEntry:
    url: str
    checksum: str
    size: int


@dataclass(frozen=True)
class Manifest:
    version: str
    files: tuple[ArtifactEntry, ...]
    path: str
    checksum: str
    schema: ManifestSchema

    def find_files(self, name: str) -> list[ArtifactEntry]:
        return [entry for entry in self.files if entry.url == name]

    def primary_artifact(self) -> ArtifactEntry:
        """Return the entry designated by ``path``.

        Raises ManifestInconsistency unless exactly one entry matches.
        """
        if not self.path:
            raise ManifestInconsistency("manifest has no primary path")
        matches = self.find_files(self.path)
        if len(matches) != 1:
            raise ManifestInconsistency(
                f"primary path {self.path!r} matches {len(matches)} file entries"
            )
        return matches[0]


def _coerce_size(value: Any, where: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ManifestMalformed(f"{where}: size must be an integer, got {value!r}")
    if value < 0:
        raise ManifestMalformed(f"{where}: size must be non-negative, got {value}")
    return value


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _parse_entry(raw: Any, index: int) -> ArtifactEntry:
    where = f"files[{index}]"
    if not isinstance(raw, Mapping):
        raise ManifestMalformed(f"{where}: expected a mapping")
    url = raw.get("url")
    if not isinstance(url, str) or not url:
        raise ManifestMalformed(f"{where}: missing url")
    return ArtifactEntry(
        url=url,
        checksum=_coerce_str(raw.get("sha512")),
        size=_coerce_size(raw.get("size"), where),
    )


def parse_manifest(raw: bytes | str) -> Manifest:
    """Parse a manifest document into a normalized Manifest.

    Raises ManifestMalformed for anything that is not a usable manifest.
    """
    try:
        doc = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ManifestMalformed(f"invalid YAML: {e}") from e

    if not isinstance(doc, Mapping):
        raise ManifestMalformed("manifest must be a mapping")

    version = doc.get("version")
    if version is None or version == "":
        raise ManifestMalformed("manifest has no version")
    # YAML may load unquoted versions such as `7` as numbers
    version = str(version)

    path = _coerce_str(doc.get("path"))
    checksum = _coerce_str(doc.get("sha512"))
    raw_files = doc.get("files")

    if raw_files is None:
        if not path:
            raise ManifestMalformed("manifest has neither files nor path")
        primary = ArtifactEntry(url=path, checksum=checksum, size=_coerce_size(doc.get("size"), "manifest"))
        return Manifest(
            version=version,
            files=(primary,),
            path=path,
            checksum=checksum,
            schema=ManifestSchema.PRIMARY_ONLY,
        )

    if not isinstance(raw_files, list):
        raise ManifestMalformed("files must be a list")
    files = tuple(_parse_entry(item, i) for i, item in enumerate(raw_files))
    schema = ManifestSchema.FILES_WITH_PRIMARY if path else ManifestSchema.FILES_ONLY
    logger.debug("Parsed manifest version=%s files=%d schema=%s", version, len(files), schema.value)
    return Manifest(version=version, files=files, path=path, checksum=checksum, schema=schema)
