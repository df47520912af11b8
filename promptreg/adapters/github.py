"""GitHub releases backend.

A release becomes a bundle when it carries both a deployment manifest
asset and an archive asset. Release notes may declare targets:

    Azure helpers for Copilot.

    environments: vscode, claude
    tags: azure, cloud
"""

import logging
import re
from typing import Any

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.registry import AdapterRegistry
from promptreg.constants import ARCHIVE_SUFFIXES, DEFAULT_VERSION, MANIFEST_ASSET_NAMES
from promptreg.exceptions import DiscoveryError, RegistryError
from promptreg.fetcher import GITHUB_TRUSTED_DOMAINS, Downloader, Fetcher
from promptreg.models import (
    Bundle,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.utils import format_size, parse_github_url

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

_ENVIRONMENTS_LINE = re.compile(
    r"(?:environments?|platforms?):\s*([^\n]+)", re.IGNORECASE
)
_TAGS_LINE = re.compile(r"(?:tags?):\s*([^\n]+)", re.IGNORECASE)
_LIST_SEPARATOR = re.compile(r"[,\s]+")


def release_description(body: str | None) -> str:
    """First paragraph of a release body, joined and cut to 200 characters.

    Examples:
        >>> release_description("First line\\nsecond line\\n\\nMore")
        'First line second line'
    """
    lines: list[str] = []
    for line in (body or "").split("\n"):
        stripped = line.strip()
        if not stripped:
            if lines:
                break
            continue
        lines.append(stripped)
    return " ".join(lines)[:200]


def _listed_values(pattern: re.Pattern, body: str | None) -> list[str]:
    match = pattern.search(body or "")
    if not match:
        return []
    return [value for value in _LIST_SEPARATOR.split(match.group(1)) if value.strip()]


def release_environments(body: str | None) -> list[str]:
    return _listed_values(_ENVIRONMENTS_LINE, body) or ["vscode"]


def release_tags(body: str | None) -> list[str]:
    return _listed_values(_TAGS_LINE, body)


def _find_asset(assets: list[dict[str, Any]], predicate) -> dict[str, Any] | None:
    for asset in assets:
        if predicate(str(asset.get("name", ""))):
            return asset
    return None


class GitHubAdapter:
    """Bundles published as GitHub release assets."""

    kind = SourceKind.GITHUB.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.owner, self.repo = parse_github_url(source.url)
        self.auth = self.options.github_resolver(source)
        self.fetcher = Fetcher(self.auth, settings=self.options.http)
        self.downloader = Downloader(
            self.auth,
            settings=self.options.http,
            trusted_domains=GITHUB_TRUSTED_DOMAINS,
        )

    @property
    def repo_api(self) -> str:
        return f"{GITHUB_API}/repos/{self.owner}/{self.repo}"

    def release_to_bundle(self, release: dict[str, Any]) -> Bundle | None:
        """Map one release to a Bundle, or None when an asset is missing."""
        assets = release.get("assets") or []
        manifest_asset = _find_asset(assets, lambda name: name in MANIFEST_ASSET_NAMES)
        if manifest_asset is None:
            return None
        archive_asset = _find_asset(
            assets, lambda name: name.endswith(ARCHIVE_SUFFIXES)
        )
        if archive_asset is None:
            return None

        tag = str(release["tag_name"])
        body = release.get("body")
        return Bundle(
            id=f"{self.owner}-{self.repo}-{tag}",
            name=release.get("name") or f"{self.repo} {tag}",
            version=re.sub(r"^v", "", tag),
            description=release_description(body),
            author=self.owner,
            source_id=self.source.id,
            manifest_url=manifest_asset.get("browser_download_url", ""),
            download_url=archive_asset.get("browser_download_url", ""),
            environments=release_environments(body),
            tags=release_tags(body),
            last_updated=release.get("published_at") or "",
            size=format_size(int(archive_asset.get("size") or 0)),
            repository=self.source.url,
        )

    async def _releases(self) -> list[dict[str, Any]]:
        releases = await self.fetcher.get_json(f"{self.repo_api}/releases")
        if not isinstance(releases, list):
            raise DiscoveryError(
                f"GitHub releases listing for {self.owner}/{self.repo} is not a list"
            )
        return [release for release in releases if isinstance(release, dict)]

    async def fetch_bundles(self) -> list[Bundle]:
        try:
            releases = await self._releases()
        except RegistryError as e:
            logger.error("%s: cannot list releases: %s", self.source.id, e)
            raise DiscoveryError(
                "Failed to fetch bundles from GitHub source "
                f"'{self.source.id}': {e}"
            ) from e

        bundles = []
        for release in releases:
            try:
                bundle = self.release_to_bundle(release)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("%s: skipping malformed release: %s", self.source.id, e)
                continue
            if bundle is None:
                logger.debug(
                    "%s: release %s lacks manifest or archive asset",
                    self.source.id,
                    release.get("tag_name"),
                )
                continue
            bundles.append(bundle)
        logger.info(
            "%s: found %d bundles in %d releases",
            self.source.id,
            len(bundles),
            len(releases),
        )
        return bundles

    async def fetch_metadata(self) -> SourceMetadata:
        try:
            repo_data = await self.fetcher.get_json(self.repo_api)
            releases = await self._releases()
        except RegistryError as e:
            raise DiscoveryError(
                f"Failed to fetch GitHub metadata for '{self.source.id}': {e}"
            ) from e
        return SourceMetadata(
            name=repo_data.get("name") or self.repo,
            description=repo_data.get("description") or "",
            bundle_count=len(releases),
            last_updated=repo_data.get("updated_at") or "",
            version=DEFAULT_VERSION,
        )

    async def validate(self) -> ValidationResult:
        try:
            await self.fetcher.get_json(self.repo_api)
            releases = await self._releases()
        except RegistryError as e:
            return ValidationResult.failure(f"GitHub validation failed: {e}")
        warnings = [] if releases else ["No releases found in repository"]
        return ValidationResult.ok(bundles_found=len(releases), warnings=warnings)

    def _release_asset_url(self, asset: str, version: str | None) -> str:
        base = f"https://github.com/{self.owner}/{self.repo}/releases"
        if version:
            return f"{base}/download/v{version}/{asset}"
        return f"{base}/latest/download/{asset}"

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        return self._release_asset_url("deployment-manifest.yml", version)

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return self._release_asset_url("bundle.zip", version)

    async def download_bundle(self, bundle: Bundle) -> bytes:
        return await self.downloader.download(bundle.download_url)


AdapterRegistry.register(GitHubAdapter.kind, GitHubAdapter)
