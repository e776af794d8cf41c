"""
Latest key resolution.

Turns ``desktop/app-latest_x64.deb`` style keys into the concrete artifact key
named by the platform's ``latest*.yml`` manifest. Results are cached per
extension; any failure falls back to serving the requested key as-is.
"""

from __future__ import annotations

import logging

from release_gateway.cache import ResolutionCache
from release_gateway.errors import ManifestInconsistency, ManifestNotFound, ResolutionError
from release_gateway.keys import KeyDescriptor
from release_gateway.manifest import Manifest, ManifestSchema, parse_manifest
from release_gateway.platforms import PlatformTableSource
from release_gateway.s3_adapter import ObjectStorage

logger = logging.getLogger(__name__)


def _by_primary(manifest: Manifest, descriptor: KeyDescriptor) -> str:
    return descriptor.join(manifest.primary_artifact().url)


def _by_version_name(manifest: Manifest, descriptor: KeyDescriptor, *, allow_primary: bool) -> str:
    wanted = descriptor.base_name.replace("latest", manifest.version, 1)
    matches = manifest.find_files(wanted)
    if len(matches) == 1:
        return descriptor.join(matches[0].url)
    if not matches and allow_primary:
        return _by_primary(manifest, descriptor)
    raise ManifestInconsistency(f"{wanted!r} matches {len(matches)} file entries", descriptor.key)


def concrete_key(manifest: Manifest, descriptor: KeyDescriptor) -> str:
    """Pick the artifact key for a latest-marked descriptor."""
    if manifest.schema is ManifestSchema.PRIMARY_ONLY:
        return _by_primary(manifest, descriptor)
    return _by_version_name(
        manifest,
        descriptor,
        allow_primary=manifest.schema is ManifestSchema.FILES_WITH_PRIMARY,
    )


class LatestResolver:
    def __init__(self, storage: ObjectStorage, cache: ResolutionCache, platforms: PlatformTableSource) -> None:
        self.storage = storage
        self.cache = cache
        self.platforms = platforms

    def resolve(self, descriptor: KeyDescriptor) -> str:
        """Return the concrete key for descriptor, or its own key if none applies."""
        if not descriptor.is_latest_marker():
            return descriptor.key

        cached = self.cache.lookup(descriptor.extension)
        if cached:
            return cached

        try:
            resolved = self._resolve_from_manifest(descriptor)
        except ResolutionError as e:
            logger.error(
                "unable to get latest object for %s (%s): %s",
                descriptor.key,
                type(e).__name__,
                e,
            )
            return descriptor.key

        self.cache.store(descriptor.extension, resolved)
        logger.info("returning %s for %s", resolved, descriptor.key)
        return resolved

    def _resolve_from_manifest(self, descriptor: KeyDescriptor) -> str:
        manifest_key = descriptor.join(self.platforms.snapshot().manifest_name(descriptor.extension))
        obj = self.storage.get(manifest_key)
        if obj is None:
            raise ManifestNotFound(f"unable to get {manifest_key}: object not found", descriptor.key)
        manifest = parse_manifest(obj.read())
        return concrete_key(manifest, descriptor)
