"""Deployment manifest synthesis and ZIP assembly."""

from promptreg.archive.builder import (
    ArchiveBuilder,
    BuildState,
    assemble_collection,
    repackage_directory,
)
from promptreg.archive.manifest import (
    build_collection_manifest,
    build_skill_manifest,
    collection_item_to_prompt,
    dump_manifest,
    item_archive_path,
)

__all__ = [
    "ArchiveBuilder",
    "BuildState",
    "assemble_collection",
    "build_collection_manifest",
    "build_skill_manifest",
    "collection_item_to_prompt",
    "dump_manifest",
    "item_archive_path",
    "repackage_directory",
]
