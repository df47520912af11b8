"""Adapter registry mapping source kinds to adapter classes."""

from typing import TYPE_CHECKING

from promptreg.exceptions import UnsupportedSourceError

if TYPE_CHECKING:
    from promptreg.adapters.base import AdapterOptions, BundleAdapter
    from promptreg.models import Source


class AdapterRegistry:
    """Registry of adapter classes keyed by source kind.

    Usage:
        # Register adapters (done at import time by promptreg.adapters)
        AdapterRegistry.register("github", GitHubAdapter)

        # Build an adapter for a configured source
        adapter = AdapterRegistry.create(source)

        # Supported kinds
        kinds = AdapterRegistry.kinds()
    """

    _adapters: dict[str, type] = {}

    @classmethod
    def register(cls, kind: str, adapter_class: type) -> None:
        """Register an adapter class.

        Args:
            kind: Source kind it handles (e.g., "github")
            adapter_class: Class taking (source, options)
        """
        cls._adapters[kind] = adapter_class

    @classmethod
    def get(cls, kind: str) -> type:
        """Get the adapter class for a kind.

        Raises:
            UnsupportedSourceError: If no adapter is registered for the kind
        """
        if kind not in cls._adapters:
            available = ", ".join(sorted(cls._adapters)) if cls._adapters else "none"
            raise UnsupportedSourceError(
                f"Unsupported source type '{kind}'. Available: {available}"
            )
        return cls._adapters[kind]

    @classmethod
    def create(
        cls, source: "Source", options: "AdapterOptions | None" = None
    ) -> "BundleAdapter":
        """Instantiate the adapter for a source.

        Raises:
            UnsupportedSourceError: If the source kind is unknown
            InvalidSourceError: If the source URL does not fit the adapter
        """
        return cls.get(source.kind)(source, options)

    @classmethod
    def kinds(cls) -> list[str]:
        return list(cls._adapters)

    @classmethod
    def clear(cls) -> None:
        """Clear all registered adapters.

        Primarily useful for testing.
        """
        cls._adapters.clear()


def create_adapter(
    source: "Source", options: "AdapterOptions | None" = None
) -> "BundleAdapter":
    """Create the adapter for a source using the kind registry."""
    return AdapterRegistry.create(source, options)
