"""Local directory of prebuilt bundles.

Layout:

    registry.json                  # optional: name, description, version
    my-bundle/
      deployment-manifest.yml
      prompts/...
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.registry import AdapterRegistry
from promptreg.archive import repackage_directory
from promptreg.constants import DEFAULT_VERSION, DEPLOYMENT_MANIFEST_NAME
from promptreg.exceptions import ArchiveError, DiscoveryError, RegistryError
from promptreg.models import (
    Bundle,
    BundleDependency,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.parsing import parse_deployment_manifest
from promptreg.utils import (
    directory_size,
    format_size,
    local_path_from_url,
    to_file_url,
)

logger = logging.getLogger(__name__)

REGISTRY_FILE = "registry.json"


def _mtime_iso(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()


def _field(manifest: dict[str, Any], key: str, default: Any = None) -> Any:
    """Read a manifest field from the top level or from `metadata`."""
    value = manifest.get(key)
    if value:
        return value
    metadata = manifest.get("metadata")
    if isinstance(metadata, dict) and metadata.get(key):
        return metadata[key]
    return default


class LocalAdapter:
    """Each subdirectory holding a deployment-manifest.yml is one bundle."""

    kind = SourceKind.LOCAL.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.root = local_path_from_url(source.url)

    def bundle_directories(self) -> list[Path]:
        """Subdirectories that contain a deployment manifest.

        Raises:
            DiscoveryError: If the root directory cannot be read
        """
        if not self.root.is_dir():
            raise DiscoveryError(f"Cannot access local directory: {self.root}")
        try:
            entries = sorted(self.root.iterdir())
        except OSError as e:
            raise DiscoveryError(
                f"Failed to read local directory {self.root}: {e}"
            ) from e
        return [
            entry
            for entry in entries
            if entry.is_dir() and (entry / DEPLOYMENT_MANIFEST_NAME).is_file()
        ]

    def _load_bundle(self, bundle_dir: Path) -> Bundle:
        manifest_path = bundle_dir / DEPLOYMENT_MANIFEST_NAME
        manifest = parse_deployment_manifest(
            manifest_path.read_text(encoding="utf-8"), str(manifest_path)
        )
        metadata = manifest.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return Bundle(
            id=str(manifest.get("id") or ""),
            name=str(manifest.get("name") or bundle_dir.name),
            version=str(manifest.get("version") or DEFAULT_VERSION),
            description=str(_field(manifest, "description", "")),
            author=str(_field(manifest, "author", "Unknown")),
            source_id=self.source.id,
            manifest_url=to_file_url(manifest_path),
            download_url=to_file_url(bundle_dir),
            environments=list(manifest.get("environments") or []),
            tags=list(manifest.get("tags") or metadata.get("keywords") or []),
            last_updated=_mtime_iso(bundle_dir),
            size=str(manifest.get("size") or format_size(directory_size(bundle_dir))),
            dependencies=[
                BundleDependency.from_dict(d)
                for d in manifest.get("dependencies") or []
            ],
            license=str(_field(manifest, "license", "Unknown")),
            prompts=list(manifest.get("prompts") or []),
            mcp_servers=dict(manifest.get("mcpServers") or {}),
        )

    async def fetch_bundles(self) -> list[Bundle]:
        try:
            directories = self.bundle_directories()
        except DiscoveryError as e:
            logger.error("%s: %s", self.source.id, e)
            raise

        bundles = []
        for bundle_dir in directories:
            try:
                bundles.append(await asyncio.to_thread(self._load_bundle, bundle_dir))
            except (RegistryError, OSError, ValueError) as e:
                logger.warning(
                    "%s: skipping bundle %s: %s", self.source.id, bundle_dir.name, e
                )
        logger.info("%s: found %d local bundles", self.source.id, len(bundles))
        return bundles

    def _registry_metadata(self) -> dict[str, Any]:
        path = self.root / REGISTRY_FILE
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("%s: ignoring unreadable %s: %s", self.source.id, path, e)
            return {}
        return data if isinstance(data, dict) else {}

    async def fetch_metadata(self) -> SourceMetadata:
        try:
            directories = self.bundle_directories()
            last_updated = _mtime_iso(self.root)
        except (DiscoveryError, OSError) as e:
            raise DiscoveryError(
                "Failed to fetch local registry metadata for "
                f"'{self.source.id}': {e}"
            ) from e
        registry = self._registry_metadata()
        return SourceMetadata(
            name=registry.get("name") or self.root.name,
            description=registry.get("description") or "Local bundle registry",
            bundle_count=len(directories),
            last_updated=last_updated,
            version=registry.get("version") or DEFAULT_VERSION,
        )

    async def validate(self) -> ValidationResult:
        if not self.root.is_dir():
            return ValidationResult.failure(f"Directory does not exist: {self.root}")
        try:
            directories = self.bundle_directories()
        except DiscoveryError as e:
            return ValidationResult.failure(f"Local registry validation failed: {e}")
        warnings = [] if directories else ["No bundles found in directory"]
        return ValidationResult.ok(bundles_found=len(directories), warnings=warnings)

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        return to_file_url(self.root / bundle_id / DEPLOYMENT_MANIFEST_NAME)

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return to_file_url(self.root / bundle_id)

    async def download_bundle(self, bundle: Bundle) -> bytes:
        bundle_dir = local_path_from_url(bundle.download_url)
        manifest_path = bundle_dir / DEPLOYMENT_MANIFEST_NAME
        try:
            manifest_text = manifest_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ArchiveError(
                f"Cannot read manifest for bundle '{bundle.id}': {e}"
            ) from e
        return await repackage_directory(bundle_dir, manifest_text, label=bundle.id)


AdapterRegistry.register(LocalAdapter.kind, LocalAdapter)
