"""Value objects shared by every backend adapter."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from promptreg.constants import DEFAULT_VERSION
from promptreg.exceptions import ManifestParseError
from promptreg.utils import is_safe_relative_path


class SourceKind(str, Enum):
    """Backend kind tag carried by a Source."""

    GITHUB = "github"
    GITLAB = "gitlab"
    LOCAL = "local"
    AWESOME_COPILOT = "awesome-copilot"
    LOCAL_AWESOME_COPILOT = "local-awesome-copilot"
    SKILLS = "skills"
    LOCAL_SKILLS = "local-skills"


@dataclass(frozen=True)
class Source:
    """One configured backend instance.

    Attributes:
        id: Stable identifier, unique within a registry
        name: Display name
        kind: Backend kind tag (see SourceKind)
        url: Base URL: a repository URL, or a file:// URL / path for local sources
        token: Optional explicit credential
        enabled: Disabled sources are skipped by the CLI
        priority: Lower values are listed first
        config: Backend-specific options (e.g. branch, collectionsPath)
    """

    id: str
    name: str
    kind: str
    url: str
    token: str | None = None
    enabled: bool = True
    priority: int = 0
    config: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def option(self, key: str, default: Any = None) -> Any:
        """Return a backend option, falling back to default when unset or empty."""
        value = self.config.get(key)
        return value if value else default


@dataclass
class BundleDependency:
    """A dependency on another bundle."""

    bundle_id: str
    version_range: str = "*"
    optional: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BundleDependency":
        return cls(
            bundle_id=str(data.get("bundleId") or data.get("bundle_id") or ""),
            version_range=str(
                data.get("versionRange") or data.get("version_range") or "*"
            ),
            optional=bool(data.get("optional", False)),
        )


@dataclass
class Bundle:
    """Normalized descriptor of one installable bundle.

    id, source_id, manifest_url and download_url must be non-empty;
    construction fails otherwise so discovery skips the item.
    """

    id: str
    name: str
    version: str
    description: str
    author: str
    source_id: str
    manifest_url: str
    download_url: str
    environments: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    last_updated: str = ""
    size: str = ""
    dependencies: list[BundleDependency] = field(default_factory=list)
    license: str = "Unknown"
    repository: str | None = None
    homepage: str | None = None
    # Adapter-specific extras
    collection_file: str | None = None
    breakdown: dict[str, int] = field(default_factory=dict)
    prompts: list[dict[str, Any]] = field(default_factory=list)
    mcp_servers: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("id", "source_id", "manifest_url", "download_url"):
            if not getattr(self, name):
                raise ValueError(f"Bundle field '{name}' cannot be empty")


@dataclass
class ValidationResult:
    """Outcome of a source health check."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    bundles_found: int | None = None

    @classmethod
    def ok(
        cls, bundles_found: int | None = None, warnings: list[str] | None = None
    ) -> "ValidationResult":
        return cls(
            valid=True, warnings=list(warnings or []), bundles_found=bundles_found
        )

    @classmethod
    def failure(cls, *errors: str) -> "ValidationResult":
        return cls(valid=False, errors=list(errors), bundles_found=0)


@dataclass
class SourceMetadata:
    """Descriptive information about a whole source."""

    name: str
    description: str
    bundle_count: int
    last_updated: str
    version: str = DEFAULT_VERSION


class ItemKind(str, Enum):
    """Kinds of items a collection manifest can reference."""

    PROMPT = "prompt"
    INSTRUCTION = "instruction"
    CHAT_MODE = "chat-mode"
    AGENT = "agent"
    SKILL = "skill"


@dataclass
class CollectionItem:
    """One item referenced by a collection manifest."""

    path: str
    kind: str

    @property
    def filename(self) -> str:
        return self.path.rstrip("/").split("/")[-1] or "unknown"


@dataclass
class CollectionManifest:
    """A curated `*.collection.yml` file.

    Example:
        id: azure-cloud-development
        name: Azure & Cloud Development
        description: Azure tooling
        tags: [azure, cloud]
        items:
          - path: prompts/azure-resource-health.prompt.md
            kind: prompt
    """

    id: str
    name: str
    description: str
    items: list[CollectionItem] = field(default_factory=list)
    version: str | None = None
    author: str | None = None
    tags: list[str] = field(default_factory=list)
    display: dict[str, Any] = field(default_factory=dict)
    mcp_servers: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, origin: str = "<collection>") -> "CollectionManifest":
        """Create a CollectionManifest from parsed YAML.

        Raises:
            ManifestParseError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise ManifestParseError(f"{origin}: collection must be a mapping")
        for key in ("id", "name"):
            if not data.get(key):
                raise ManifestParseError(f"{origin}: missing required '{key}' field")

        raw_items = data.get("items") or []
        if not isinstance(raw_items, list):
            raise ManifestParseError(f"{origin}: 'items' must be a list")
        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict) or not raw.get("path"):
                raise ManifestParseError(f"{origin}: item {index} is missing 'path'")
            path = str(raw["path"])
            if not is_safe_relative_path(path):
                raise ManifestParseError(
                    f"{origin}: item {index} path escapes the repository: {path}"
                )
            kind = str(raw.get("kind") or "prompt")
            items.append(CollectionItem(path=path, kind=kind))

        # MCP servers may be declared as 'mcpServers' or nested under 'mcp.items'
        mcp_servers = data.get("mcpServers")
        if not mcp_servers and isinstance(data.get("mcp"), dict):
            mcp_servers = data["mcp"].get("items")

        tags = data.get("tags") or []
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description") or ""),
            items=items,
            version=str(data["version"]) if data.get("version") else None,
            author=data.get("author"),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            display=data.get("display") or {},
            mcp_servers=mcp_servers if isinstance(mcp_servers, dict) else {},
        )


@dataclass
class SkillFrontmatter:
    """Frontmatter of a SKILL.md file."""

    name: str = ""
    description: str = ""
    license: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedSkillFile:
    """A SKILL.md split into frontmatter and markdown body."""

    frontmatter: SkillFrontmatter
    content: str
    raw: str


@dataclass
class SkillItem:
    """A discovered skill directory."""

    id: str
    name: str
    description: str
    path: str
    files: list[str] = field(default_factory=list)
    license: str | None = None
    parsed: ParsedSkillFile | None = None
