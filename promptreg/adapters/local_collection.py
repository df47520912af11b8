"""Curated collections read from a local checkout."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.collection import collection_bundle
from promptreg.adapters.registry import AdapterRegistry
from promptreg.archive import (
    assemble_collection,
    build_collection_manifest,
    item_archive_path,
)
from promptreg.cache import TTLCache, cache_key
from promptreg.constants import (
    COLLECTION_SUFFIX,
    DEFAULT_COLLECTIONS_PATH,
    DEFAULT_VERSION,
)
from promptreg.exceptions import DiscoveryError, ManifestParseError, RegistryError
from promptreg.models import (
    Bundle,
    CollectionManifest,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.parsing import parse_collection_yaml
from promptreg.utils import local_path_from_url, to_file_url

logger = logging.getLogger(__name__)

LOCAL_AUTHOR = "Local Developer"


def _mtime_iso(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()


class LocalAwesomeCopilotAdapter:
    """Collections in `<root>/collections/*.collection.yml` with items on disk."""

    kind = SourceKind.LOCAL_AWESOME_COPILOT.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.root = local_path_from_url(source.url)
        self.collections_path = source.option(
            "collectionsPath", DEFAULT_COLLECTIONS_PATH
        ).strip("/")
        self.cache: TTLCache[tuple[Bundle, ...]] = TTLCache(self.options.cache_ttl)

    @property
    def collections_dir(self) -> Path:
        return self.root / self.collections_path

    def list_collection_files(self) -> list[str]:
        if not self.collections_dir.is_dir():
            raise DiscoveryError(
                f"Collections directory does not exist: {self.collections_dir}"
            )
        return sorted(
            entry.name
            for entry in self.collections_dir.iterdir()
            if entry.is_file() and entry.name.endswith(COLLECTION_SUFFIX)
        )

    async def load_collection(self, collection_file: str) -> CollectionManifest:
        path = self.collections_dir / collection_file
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DiscoveryError(f"Cannot read collection {path}: {e}") from e
        return parse_collection_yaml(text, str(path))

    async def fetch_bundles(self) -> list[Bundle]:
        key = cache_key(self.source.url, self.collections_path)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        try:
            files = self.list_collection_files()
        except DiscoveryError as e:
            logger.error("%s: %s", self.source.id, e)
            raise

        bundles = []
        for collection_file in files:
            path = self.collections_dir / collection_file
            try:
                collection = await self.load_collection(collection_file)
                bundle = collection_bundle(
                    collection,
                    source=self.source,
                    collection_file=collection_file,
                    url=to_file_url(path),
                    default_author=LOCAL_AUTHOR,
                )
                bundle.last_updated = _mtime_iso(path)
            except (RegistryError, OSError, ValueError) as e:
                logger.warning(
                    "%s: skipping collection %s: %s",
                    self.source.id,
                    collection_file,
                    e,
                )
                continue
            bundles.append(bundle)

        self.cache.set(key, tuple(bundles))
        logger.info("%s: found %d local collections", self.source.id, len(bundles))
        return bundles

    async def fetch_metadata(self) -> SourceMetadata:
        try:
            files = self.list_collection_files()
            last_updated = _mtime_iso(self.root)
        except (DiscoveryError, OSError) as e:
            raise DiscoveryError(
                f"Failed to fetch metadata for '{self.source.id}': {e}"
            ) from e
        return SourceMetadata(
            name=self.root.name,
            description=f"Local Awesome Copilot collections from {self.root}",
            bundle_count=len(files),
            last_updated=last_updated,
        )

    async def validate(self) -> ValidationResult:
        try:
            files = self.list_collection_files()
        except DiscoveryError as e:
            return ValidationResult.failure(str(e))
        if not files:
            return ValidationResult.failure(
                f"No {COLLECTION_SUFFIX} files found in collections directory"
            )
        return ValidationResult.ok(bundles_found=len(files))

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        return to_file_url(self.collections_dir / f"{bundle_id}{COLLECTION_SUFFIX}")

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return self.get_manifest_url(bundle_id, version)

    def _read_item_blocking(self, path: str) -> bytes:
        root = self.root.resolve()
        target = (root / path).resolve()
        if not target.is_relative_to(root):
            raise ManifestParseError(f"Item {path} resolves outside {root}")
        return target.read_bytes()

    async def _read_item(self, path: str) -> bytes:
        return await asyncio.to_thread(self._read_item_blocking, path)

    async def download_bundle(self, bundle: Bundle) -> bytes:
        collection_file = bundle.collection_file or f"{bundle.id}{COLLECTION_SUFFIX}"
        collection = await self.load_collection(collection_file)
        manifest = build_collection_manifest(
            collection,
            version=collection.version or DEFAULT_VERSION,
            author=collection.author or LOCAL_AUTHOR,
            repository_url=self.source.url,
            directory=self.collections_path,
            repository_type="local",
        )
        items = [(item.path, item_archive_path(item)) for item in collection.items]
        return await assemble_collection(
            manifest, items, self._read_item, label=collection.id
        )


AdapterRegistry.register(
    LocalAwesomeCopilotAdapter.kind, LocalAwesomeCopilotAdapter
)
