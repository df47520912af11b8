"""GitLab releases backend (gitlab.com or self-hosted)."""

import logging
from typing import Any

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.registry import AdapterRegistry
from promptreg.constants import (
    DEFAULT_BRANCH,
    DEFAULT_VERSION,
    DEPLOYMENT_MANIFEST_NAME,
)
from promptreg.exceptions import DiscoveryError, RegistryError
from promptreg.fetcher import Downloader, Fetcher, private_token_auth, url_host
from promptreg.models import (
    Bundle,
    BundleDependency,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.parsing import parse_deployment_manifest
from promptreg.utils import parse_gitlab_url

logger = logging.getLogger(__name__)


def _bundle_link(release: dict[str, Any]) -> dict[str, Any] | None:
    links = (release.get("assets") or {}).get("links") or []
    for link in links:
        if not isinstance(link, dict):
            continue
        name = str(link.get("name", ""))
        if name.endswith(".zip") or "bundle" in name:
            return link
    return None


class GitLabAdapter:
    """Bundles published as GitLab release asset links.

    Bundle metadata comes from the deployment-manifest.yml committed at
    the release tag. Only an explicit token is used unless session or
    CLI providers are injected.
    """

    kind = SourceKind.GITLAB.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.api_base, self.project = parse_gitlab_url(source.url)
        self.auth = self.options.resolver(source)
        trusted = (url_host(self.api_base),)
        self.fetcher = Fetcher(
            self.auth,
            settings=self.options.http,
            auth_headers=private_token_auth,
        )
        self.downloader = Downloader(
            self.auth,
            settings=self.options.http,
            auth_headers=private_token_auth,
            trusted_domains=trusted,
        )

    @property
    def project_api(self) -> str:
        return f"{self.api_base}/projects/{self.project}"

    def _raw_manifest_url(self, ref: str) -> str:
        return (
            f"{self.project_api}/repository/files/{DEPLOYMENT_MANIFEST_NAME}/raw"
            f"?ref={ref}"
        )

    async def _release_bundle(self, release: dict[str, Any]) -> Bundle | None:
        link = _bundle_link(release)
        if link is None:
            return None
        tag = str(release["tag_name"])
        manifest_url = self._raw_manifest_url(tag)
        text = await self.downloader.download_text(manifest_url)
        manifest = parse_deployment_manifest(text, manifest_url)

        bundle = Bundle(
            id=str(manifest.get("id") or tag),
            name=str(manifest.get("name") or release.get("name") or tag),
            version=str(manifest.get("version") or tag),
            description=str(
                manifest.get("description") or release.get("description") or ""
            ),
            author=str(manifest.get("author") or "Unknown"),
            source_id=self.source.id,
            manifest_url=manifest_url,
            download_url=str(link.get("url") or ""),
            environments=list(manifest.get("environments") or []),
            tags=list(manifest.get("tags") or []),
            last_updated=str(release.get("released_at") or ""),
            size=str(manifest.get("size") or "Unknown"),
            dependencies=[
                BundleDependency.from_dict(d)
                for d in manifest.get("dependencies") or []
            ],
            license=str(manifest.get("license") or "Unknown"),
            repository=self.source.url,
        )
        if isinstance(manifest.get("prompts"), list):
            bundle.prompts = manifest["prompts"]
        if isinstance(manifest.get("mcpServers"), dict):
            bundle.mcp_servers = manifest["mcpServers"]
        return bundle

    async def fetch_bundles(self) -> list[Bundle]:
        try:
            releases = await self.fetcher.get_json(f"{self.project_api}/releases")
        except RegistryError as e:
            logger.error("%s: cannot list releases: %s", self.source.id, e)
            raise DiscoveryError(
                f"Failed to fetch bundles from GitLab source '{self.source.id}': {e}"
            ) from e
        if not isinstance(releases, list):
            return []

        bundles = []
        for release in releases:
            if not isinstance(release, dict):
                logger.warning(
                    "%s: skipping malformed release: %r", self.source.id, release
                )
                continue
            try:
                bundle = await self._release_bundle(release)
            except (RegistryError, KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "%s: no usable manifest for release %s: %s",
                    self.source.id,
                    release.get("tag_name"),
                    e,
                )
                continue
            if bundle is not None:
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
            project = await self.fetcher.get_json(self.project_api)
        except RegistryError as e:
            raise DiscoveryError(
                f"Failed to fetch GitLab metadata for '{self.source.id}': {e}"
            ) from e
        return SourceMetadata(
            name=project.get("name") or "Unknown",
            description=project.get("description") or "",
            bundle_count=0,
            last_updated=project.get("last_activity_at") or "",
            version=DEFAULT_VERSION,
        )

    async def validate(self) -> ValidationResult:
        try:
            await self.fetch_metadata()
        except RegistryError as e:
            return ValidationResult.failure(f"GitLab validation failed: {e}")
        return ValidationResult.ok()

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        return self._raw_manifest_url(version or DEFAULT_BRANCH)

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return f"{self.project_api}/repository/archive.zip?ref={version or 'latest'}"

    async def download_bundle(self, bundle: Bundle) -> bytes:
        return await self.downloader.download(bundle.download_url)


AdapterRegistry.register(GitLabAdapter.kind, GitLabAdapter)
