"""Protocol and shared collaborators for backend adapters.

Every backend kind implements the BundleAdapter protocol. Adapters hold
no shared base-class state: cross-backend helpers live in
promptreg.fetcher, promptreg.archive and promptreg.utils, and the
network/auth collaborators are passed in through AdapterOptions.
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from promptreg.auth import AuthResolver, TokenProvider, cli_token_provider, no_session
from promptreg.constants import DISCOVERY_CACHE_TTL
from promptreg.fetcher.client import HttpSettings
from promptreg.models import Bundle, Source, SourceMetadata, ValidationResult


@dataclass(frozen=True)
class AdapterOptions:
    """Injected collaborators shared by every adapter of a registry.

    Attributes:
        http: Timeout, User-Agent and transport for outbound requests
        session_provider: Host-session token provider; None means no host is attached
        cli_provider: CLI token provider; None means the backend's default CLI
        cache_ttl: Seconds a discovery result stays cached
    """

    http: HttpSettings = field(default_factory=HttpSettings)
    session_provider: TokenProvider | None = None
    cli_provider: TokenProvider | None = None
    cache_ttl: float = DISCOVERY_CACHE_TTL

    def resolver(
        self, source: Source, *, default_cli: TokenProvider | None = None
    ) -> AuthResolver:
        """Create the AuthResolver owned by one adapter."""
        return AuthResolver(
            source.token,
            session_provider=self.session_provider or no_session,
            cli_provider=self.cli_provider or default_cli,
            label=source.id,
        )

    def github_resolver(self, source: Source) -> AuthResolver:
        """Resolver with the `gh auth token` fallback."""
        return self.resolver(source, default_cli=cli_token_provider())


@runtime_checkable
class BundleAdapter(Protocol):
    """Protocol for backend adapters.

    Usage:
        adapter = create_adapter(source)
        bundles = await adapter.fetch_bundles()
        data = await adapter.download_bundle(bundles[0])
    """

    kind: str
    source: Source

    async def fetch_bundles(self) -> list[Bundle]:
        """List the bundles the source offers.

        Items that fail to parse are skipped; a source that cannot be
        listed at all raises DiscoveryError.
        """
        ...

    async def fetch_metadata(self) -> SourceMetadata:
        """Describe the source as a whole."""
        ...

    async def validate(self) -> ValidationResult:
        """Check that the source is reachable and offers bundles.

        Never raises for source problems; they are reported as errors.
        """
        ...

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        """Return the deployment manifest URL for a bundle."""
        ...

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        """Return the archive download URL for a bundle."""
        ...

    async def download_bundle(self, bundle: Bundle) -> bytes:
        """Return the bundle as ZIP bytes.

        Raises:
            RegistryError: If any part of the archive cannot be produced
        """
        ...
