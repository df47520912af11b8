"""Curated collection backend (awesome-copilot layout on GitHub).

Repository layout:

    collections/
      azure-cloud-development.collection.yml
    prompts/
      azure-resource-health.prompt.md
    instructions/
      bicep.instructions.md

Each collection file is one bundle. Downloads fetch every referenced
item and assemble the archive on the fly.
"""

import asyncio
import logging
from collections.abc import Iterable

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.registry import AdapterRegistry
from promptreg.archive import (
    assemble_collection,
    build_collection_manifest,
    item_archive_path,
)
from promptreg.archive.manifest import now_iso
from promptreg.cache import TTLCache, cache_key
from promptreg.constants import (
    COLLECTION_BATCH_SIZE,
    COLLECTION_SUFFIX,
    DEFAULT_BRANCH,
    DEFAULT_COLLECTIONS_PATH,
    DEFAULT_VERSION,
)
from promptreg.exceptions import DiscoveryError, RegistryError
from promptreg.fetcher import GITHUB_TRUSTED_DOMAINS, Downloader, Fetcher
from promptreg.models import (
    Bundle,
    CollectionItem,
    CollectionManifest,
    ItemKind,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.parsing import parse_collection_yaml
from promptreg.utils import parse_github_url

logger = logging.getLogger(__name__)

ENVIRONMENT_BY_TAG = {
    "azure": "cloud",
    "aws": "cloud",
    "gcp": "cloud",
    "frontend": "web",
    "backend": "server",
    "database": "data",
    "devops": "infrastructure",
    "testing": "testing",
}

_BREAKDOWN_KEYS = {
    ItemKind.PROMPT.value: "prompts",
    ItemKind.INSTRUCTION.value: "instructions",
    ItemKind.CHAT_MODE.value: "chatmodes",
    ItemKind.AGENT.value: "agents",
    ItemKind.SKILL.value: "skills",
}


def infer_environments(tags: Iterable[str]) -> list[str]:
    """Map collection tags to target environments.

    Examples:
        >>> infer_environments(["Azure", "aws", "testing"])
        ['cloud', 'testing']
        >>> infer_environments(["misc"])
        ['general']
    """
    environments: list[str] = []
    for tag in tags:
        environment = ENVIRONMENT_BY_TAG.get(tag.lower())
        if environment and environment not in environments:
            environments.append(environment)
    return environments or ["general"]


def item_breakdown(items: Iterable[CollectionItem]) -> dict[str, int]:
    """Count collection items per kind."""
    breakdown = dict.fromkeys(_BREAKDOWN_KEYS.values(), 0)
    for item in items:
        key = _BREAKDOWN_KEYS.get(item.kind)
        if key:
            breakdown[key] += 1
    return breakdown


def collection_bundle(
    collection: CollectionManifest,
    *,
    source: Source,
    collection_file: str,
    url: str,
    default_author: str,
    extra_tags: Iterable[str] = (),
) -> Bundle:
    """Build the Bundle descriptor for a parsed collection."""
    tags = list(collection.tags)
    tags += [tag for tag in extra_tags if tag not in collection.tags]
    return Bundle(
        id=collection.id,
        name=collection.name,
        version=collection.version or DEFAULT_VERSION,
        description=collection.description,
        author=collection.author or default_author,
        source_id=source.id,
        manifest_url=url,
        download_url=url,
        environments=infer_environments(collection.tags),
        tags=tags,
        last_updated=now_iso(),
        size=f"{len(collection.items)} items",
        license="MIT",
        repository=source.url,
        collection_file=collection_file,
        breakdown=item_breakdown(collection.items),
        mcp_servers=dict(collection.mcp_servers),
    )


class AwesomeCopilotAdapter:
    """Collections listed through the GitHub contents API."""

    kind = SourceKind.AWESOME_COPILOT.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.owner, self.repo = parse_github_url(source.url)
        self.branch = source.option("branch", DEFAULT_BRANCH)
        self.collections_path = source.option(
            "collectionsPath", DEFAULT_COLLECTIONS_PATH
        ).strip("/")
        self.auth = self.options.github_resolver(source)
        self.fetcher = Fetcher(self.auth, settings=self.options.http)
        self.downloader = Downloader(
            self.auth,
            settings=self.options.http,
            trusted_domains=GITHUB_TRUSTED_DOMAINS,
        )
        self.cache: TTLCache[tuple[Bundle, ...]] = TTLCache(self.options.cache_ttl)

    def api_url(self, path: str) -> str:
        return (
            f"https://api.github.com/repos/{self.owner}/{self.repo}/contents/{path}"
            f"?ref={self.branch}"
        )

    def raw_url(self, path: str) -> str:
        return (
            f"https://raw.githubusercontent.com/{self.owner}/{self.repo}/{self.branch}/"
            f"{path.lstrip('/')}"
        )

    def collection_url(self, collection_file: str) -> str:
        return self.raw_url(f"{self.collections_path}/{collection_file}")

    async def list_collection_files(self) -> list[str]:
        """Names of the collection files in the collections directory."""
        entries = await self.fetcher.get_json(self.api_url(self.collections_path))
        if not isinstance(entries, list):
            raise DiscoveryError(
                f"'{self.collections_path}' in {self.owner}/{self.repo} "
                "is not a directory"
            )
        return [
            entry["name"]
            for entry in entries
            if isinstance(entry, dict)
            and entry.get("type") == "file"
            and str(entry.get("name", "")).endswith(COLLECTION_SUFFIX)
        ]

    async def load_collection(self, collection_file: str) -> CollectionManifest:
        url = self.collection_url(collection_file)
        text = await self.downloader.download_text(url)
        return parse_collection_yaml(text, url)

    async def _parse_collection(self, collection_file: str) -> Bundle | None:
        try:
            collection = await self.load_collection(collection_file)
            return collection_bundle(
                collection,
                source=self.source,
                collection_file=collection_file,
                url=self.collection_url(collection_file),
                default_author=self.owner,
            )
        except (RegistryError, ValueError) as e:
            logger.warning(
                "%s: skipping collection %s: %s", self.source.id, collection_file, e
            )
            return None

    async def fetch_bundles(self) -> list[Bundle]:
        key = cache_key(self.source.url, self.branch)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        try:
            files = await self.list_collection_files()
        except RegistryError as e:
            logger.error("%s: cannot list collections: %s", self.source.id, e)
            raise DiscoveryError(
                f"Failed to list collections for source '{self.source.id}': {e}"
            ) from e
        logger.debug("%s: found %d collection files", self.source.id, len(files))

        bundles: list[Bundle] = []
        for start in range(0, len(files), COLLECTION_BATCH_SIZE):
            batch = files[start : start + COLLECTION_BATCH_SIZE]
            results = await asyncio.gather(
                *(self._parse_collection(name) for name in batch)
            )
            bundles.extend(bundle for bundle in results if bundle is not None)

        self.cache.set(key, tuple(bundles))
        logger.info("%s: found %d collections", self.source.id, len(bundles))
        return bundles

    async def fetch_metadata(self) -> SourceMetadata:
        try:
            files = await self.list_collection_files()
        except RegistryError as e:
            raise DiscoveryError(
                f"Failed to fetch metadata for '{self.source.id}': {e}"
            ) from e
        return SourceMetadata(
            name=f"{self.owner}/{self.repo}",
            description=f"Awesome Copilot collections from {self.source.url}",
            bundle_count=len(files),
            last_updated=now_iso(),
        )

    async def validate(self) -> ValidationResult:
        try:
            files = await self.list_collection_files()
        except RegistryError as e:
            return ValidationResult.failure(f"Failed to validate repository: {e}")
        if not files:
            return ValidationResult.failure(
                f"No {COLLECTION_SUFFIX} files found in "
                f"{self.collections_path} directory"
            )
        return ValidationResult.ok(bundles_found=len(files))

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        return self.collection_url(f"{bundle_id}{COLLECTION_SUFFIX}")

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return self.get_manifest_url(bundle_id, version)

    async def _fetch_item(self, path: str) -> bytes:
        return await self.downloader.download(self.raw_url(path))

    async def download_bundle(self, bundle: Bundle) -> bytes:
        collection_file = bundle.collection_file or f"{bundle.id}{COLLECTION_SUFFIX}"
        collection = await self.load_collection(collection_file)
        logger.debug(
            "%s: assembling %s with %d items",
            self.source.id,
            collection.id,
            len(collection.items),
        )
        manifest = build_collection_manifest(
            collection,
            version=collection.version or DEFAULT_VERSION,
            author=collection.author or self.owner,
            repository_url=self.source.url,
            directory=self.collections_path,
        )
        items = [(item.path, item_archive_path(item)) for item in collection.items]
        return await assemble_collection(
            manifest, items, self._fetch_item, label=collection.id
        )


AdapterRegistry.register(AwesomeCopilotAdapter.kind, AwesomeCopilotAdapter)
