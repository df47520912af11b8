"""Parsers for collection manifests, SKILL.md files and deployment manifests."""

import re
from typing import Any

import yaml

from promptreg.exceptions import ManifestParseError
from promptreg.models import CollectionManifest, ParsedSkillFile, SkillFrontmatter

_FRONTMATTER = re.compile(r"^---\s*\n([\s\S]*?)\n---\s*\n([\s\S]*)$")


def load_yaml(text: str, origin: str) -> Any:
    """Parse YAML, converting syntax errors into ManifestParseError."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestParseError(f"{origin}: invalid YAML: {e}") from e


def parse_collection_yaml(
    text: str, origin: str = "<collection>"
) -> CollectionManifest:
    """Parse the text of a `*.collection.yml` file.

    Raises:
        ManifestParseError: If the YAML is invalid or required fields are missing
    """
    return CollectionManifest.from_dict(load_yaml(text, origin), origin)


def parse_deployment_manifest(text: str, origin: str = "<manifest>") -> dict[str, Any]:
    """Parse a deployment-manifest.yml (or .json, which is valid YAML)."""
    data = load_yaml(text, origin)
    if not isinstance(data, dict):
        raise ManifestParseError(f"{origin}: deployment manifest must be a mapping")
    return data


def parse_skill_md(
    text: str, fallback_name: str = "", origin: str = "SKILL.md"
) -> ParsedSkillFile:
    """Split a SKILL.md into frontmatter and body.

    A file without a frontmatter block is accepted: its whole text is the
    body and the name falls back to `fallback_name`.

    Examples:
        >>> parsed = parse_skill_md("---\\nname: pdf\\n---\\n# PDF\\n")
        >>> parsed.frontmatter.name, parsed.content
        ('pdf', '# PDF\\n')
    """
    normalized = text.replace("\r\n", "\n")
    match = _FRONTMATTER.match(normalized)
    if not match:
        return ParsedSkillFile(
            frontmatter=SkillFrontmatter(
                name=fallback_name, description="No description"
            ),
            content=normalized,
            raw=text,
        )

    data = load_yaml(match.group(1), origin) or {}
    if not isinstance(data, dict):
        raise ManifestParseError(f"{origin}: frontmatter must be a mapping")

    extra = {
        k: v for k, v in data.items() if k not in ("name", "description", "license")
    }
    frontmatter = SkillFrontmatter(
        name=str(data.get("name") or fallback_name),
        description=str(data.get("description") or "No description"),
        license=str(data["license"]) if data.get("license") else None,
        extra=extra,
    )
    return ParsedSkillFile(frontmatter=frontmatter, content=match.group(2), raw=text)
