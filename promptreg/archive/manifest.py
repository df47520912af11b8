"""Deployment manifest synthesis.

Every produced archive carries a `deployment-manifest.yml` at its root:

    id: azure-cloud-development
    version: 1.0.0
    name: Azure & Cloud Development
    metadata:
      manifest_version: "1.0"
      description: ...
      author: github
      last_updated: 2025-01-01T00:00:00+00:00
      repository: {type: git, url: ..., directory: collections}
      license: MIT
      keywords: [azure, cloud]
    common:
      directories: [prompts]
      files: []
      include_patterns: ["**/*"]
      exclude_patterns: []
    bundle_settings:
      include_common_in_environment_bundles: true
      create_common_bundle: true
      compression: zip
      naming: {common_bundle: azure-cloud-development}
    prompts:
      - {id: ..., name: ..., description: ..., file: ..., type: prompt, tags: [...]}
    mcpServers: {...}   # only when the collection declares any
"""

import re
from datetime import datetime, timezone
from typing import Any

import yaml

from promptreg.constants import MANIFEST_VERSION, PROMPTS_SUBDIR, SKILLS_SUBDIR
from promptreg.models import CollectionItem, CollectionManifest, ItemKind, SkillItem
from promptreg.utils import title_case

KIND_TO_TYPE = {
    ItemKind.PROMPT.value: "prompt",
    ItemKind.INSTRUCTION.value: "instructions",
    ItemKind.CHAT_MODE.value: "chatmode",
    ItemKind.AGENT.value: "agent",
    ItemKind.SKILL.value: "skill",
}

_ITEM_SUFFIX = re.compile(r"\.(prompt|instructions|chatmode|agent)\.md$")
_SKILL_PATH = re.compile(r"skills/([^/]+)/SKILL\.md$")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def item_type(kind: str) -> str:
    """Map a collection item kind to a manifest prompt type (unknown → prompt).

    Examples:
        >>> item_type("chat-mode")
        'chatmode'
        >>> item_type("snippet")
        'prompt'
    """
    return KIND_TO_TYPE.get(kind, "prompt")


def item_id(item: CollectionItem) -> str:
    """Derive a prompt id from an item's filename.

    Examples:
        >>> item_id(CollectionItem("prompts/azure-resource-health.prompt.md", "prompt"))
        'azure-resource-health'
        >>> item_id(CollectionItem("skills/pdf-tools/SKILL.md", "skill"))
        'pdf-tools'
    """
    if item.kind == ItemKind.SKILL.value:
        match = _SKILL_PATH.search(item.path)
        if match:
            return match.group(1)
    return _ITEM_SUFFIX.sub("", item.filename)


def item_archive_path(item: CollectionItem) -> str:
    """Location of an item inside the archive.

    Skill files keep their repository path so sibling skill files stay
    together; everything else is flattened under prompts/.
    """
    if item.kind == ItemKind.SKILL.value:
        return item.path.lstrip("/")
    return f"{PROMPTS_SUBDIR}/{item.filename}"


def collection_item_to_prompt(
    item: CollectionItem, collection: CollectionManifest
) -> dict[str, Any]:
    identifier = item_id(item)
    origin = "Skill from" if item.kind == ItemKind.SKILL.value else "From"
    return {
        "id": identifier,
        "name": title_case(identifier.replace("-", " ")),
        "description": f"{origin} {collection.name}",
        "file": item_archive_path(item),
        "type": item_type(item.kind),
        "tags": list(collection.tags),
    }


def _manifest(
    *,
    bundle_id: str,
    version: str,
    name: str,
    description: str,
    author: str,
    repository: dict[str, str],
    license: str,
    keywords: list[str],
    directories: list[str],
    prompts: list[dict[str, Any]],
    last_updated: str | None = None,
    mcp_servers: dict[str, Any] | None = None,
    common_bundle: str | None = None,
) -> dict[str, Any]:
    manifest: dict[str, Any] = {
        "id": bundle_id,
        "version": version,
        "name": name,
        "metadata": {
            "manifest_version": MANIFEST_VERSION,
            "description": description,
            "author": author,
            "last_updated": last_updated or now_iso(),
            "repository": repository,
            "license": license,
            "keywords": list(keywords),
        },
        "common": {
            "directories": directories,
            "files": [],
            "include_patterns": ["**/*"],
            "exclude_patterns": [],
        },
        "bundle_settings": {
            "include_common_in_environment_bundles": True,
            "create_common_bundle": True,
            "compression": "zip",
            "naming": {"common_bundle": common_bundle or bundle_id},
        },
        "prompts": prompts,
    }
    if mcp_servers:
        manifest["mcpServers"] = mcp_servers
    return manifest


def build_collection_manifest(
    collection: CollectionManifest,
    *,
    version: str,
    author: str,
    repository_url: str,
    directory: str,
    repository_type: str = "git",
    license: str = "MIT",
    last_updated: str | None = None,
) -> dict[str, Any]:
    """Build the deployment manifest for a curated collection bundle."""
    directories = [PROMPTS_SUBDIR]
    if any(item.kind == ItemKind.SKILL.value for item in collection.items):
        directories.append(SKILLS_SUBDIR)
    return _manifest(
        bundle_id=collection.id,
        version=version,
        name=collection.name,
        description=collection.description,
        author=author,
        repository={
            "type": repository_type,
            "url": repository_url,
            "directory": directory,
        },
        license=license,
        keywords=collection.tags,
        directories=directories,
        prompts=[
            collection_item_to_prompt(item, collection) for item in collection.items
        ],
        last_updated=last_updated,
        mcp_servers=collection.mcp_servers,
    )


def build_skill_manifest(
    skill: SkillItem,
    *,
    bundle_id: str,
    version: str,
    author: str,
    repository_url: str,
    repository_type: str = "git",
    keywords: list[str] | None = None,
    last_updated: str | None = None,
) -> dict[str, Any]:
    """Build the deployment manifest for a single skill bundle."""
    keywords = list(keywords or [])
    skill_dir = f"{SKILLS_SUBDIR}/{skill.id}"
    return _manifest(
        bundle_id=bundle_id,
        version=version,
        name=skill.name,
        description=skill.description,
        author=author,
        repository={
            "type": repository_type,
            "url": repository_url,
            "directory": skill.path,
        },
        license=skill.license or "Unknown",
        keywords=keywords,
        directories=[skill_dir],
        prompts=[
            {
                "id": skill.id,
                "name": skill.name,
                "description": skill.description,
                "file": f"{skill_dir}/SKILL.md",
                "type": "skill",
                "tags": keywords,
            }
        ],
        last_updated=last_updated,
        common_bundle=skill.id,
    )


def dump_manifest(manifest: dict[str, Any]) -> str:
    """Serialize a manifest as YAML, preserving key order."""
    return yaml.safe_dump(
        manifest, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
