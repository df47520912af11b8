"""Skills read from a local `skills/` directory."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.registry import AdapterRegistry
from promptreg.adapters.skills import SKILL_TAGS, skill_bundle, skill_item
from promptreg.archive import build_skill_manifest, repackage_directory
from promptreg.constants import DEFAULT_VERSION, SKILL_MARKER, SKILLS_SUBDIR
from promptreg.exceptions import ArchiveError, DiscoveryError, RegistryError
from promptreg.models import (
    Bundle,
    SkillItem,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.parsing import parse_skill_md
from promptreg.utils import local_path_from_url, to_file_url

logger = logging.getLogger(__name__)

LOCAL_SKILL_TAGS = [*SKILL_TAGS, "local"]
LOCAL_AUTHOR = "Local"


class LocalSkillsAdapter:
    """Skills in `<root>/skills/<id>/SKILL.md`, packaged straight from disk."""

    kind = SourceKind.LOCAL_SKILLS.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.root = local_path_from_url(source.url)

    @property
    def skills_dir(self) -> Path:
        return self.root / SKILLS_SUBDIR

    @property
    def bundle_prefix(self) -> str:
        return f"local-skills-{self.root.name}-"

    def load_skill(self, skill_dir: Path) -> SkillItem | None:
        """Parse one skill directory; None when it has no SKILL.md."""
        skill_md = skill_dir / SKILL_MARKER
        if not skill_md.is_file():
            logger.debug(
                "%s: %s has no %s", self.source.id, skill_dir.name, SKILL_MARKER
            )
            return None
        parsed = parse_skill_md(
            skill_md.read_text(encoding="utf-8"),
            fallback_name=skill_dir.name,
            origin=str(skill_md),
        )
        files = sorted(p.name for p in skill_dir.iterdir() if p.is_file())
        path = f"{SKILLS_SUBDIR}/{skill_dir.name}"
        return skill_item(skill_dir.name, path, parsed, files)

    def scan_skills(self) -> list[SkillItem]:
        if not self.skills_dir.is_dir():
            raise DiscoveryError(
                f"Missing required 'skills' directory: {self.skills_dir}"
            )
        skills = []
        for skill_dir in sorted(p for p in self.skills_dir.iterdir() if p.is_dir()):
            try:
                skill = self.load_skill(skill_dir)
            except (RegistryError, OSError, UnicodeDecodeError) as e:
                logger.warning(
                    "%s: skipping skill %s: %s", self.source.id, skill_dir.name, e
                )
                continue
            if skill is not None:
                skills.append(skill)
        return skills

    def to_bundle(self, skill: SkillItem) -> Bundle:
        bundle_id = f"{self.bundle_prefix}{skill.id}"
        return skill_bundle(
            skill,
            bundle_id=bundle_id,
            source=self.source,
            author=LOCAL_AUTHOR,
            tags=LOCAL_SKILL_TAGS,
            manifest_url=self.get_manifest_url(bundle_id),
            download_url=self.get_download_url(bundle_id),
        )

    async def fetch_bundles(self) -> list[Bundle]:
        try:
            skills = await asyncio.to_thread(self.scan_skills)
        except DiscoveryError as e:
            logger.error("%s: %s", self.source.id, e)
            raise
        bundles = [self.to_bundle(skill) for skill in skills]
        logger.info("%s: found %d local skills", self.source.id, len(bundles))
        return bundles

    async def fetch_metadata(self) -> SourceMetadata:
        try:
            skills = await asyncio.to_thread(self.scan_skills)
            mtime = self.root.stat().st_mtime
        except (DiscoveryError, OSError) as e:
            raise DiscoveryError(
                "Failed to fetch local skills metadata for "
                f"'{self.source.id}': {e}"
            ) from e
        return SourceMetadata(
            name=self.root.name,
            description="Local Skills Repository",
            bundle_count=len(skills),
            last_updated=datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
        )

    async def validate(self) -> ValidationResult:
        if not self.root.is_dir():
            return ValidationResult.failure(f"Path is not a directory: {self.root}")
        try:
            skills = await asyncio.to_thread(self.scan_skills)
        except DiscoveryError as e:
            return ValidationResult.failure(str(e))
        warnings = []
        if not skills:
            warnings.append(
                "No valid skills found in skills/ directory "
                "(skills must have SKILL.md file)"
            )
        return ValidationResult.ok(bundles_found=len(skills), warnings=warnings)

    def skill_id(self, bundle_id: str) -> str:
        return bundle_id.removeprefix(self.bundle_prefix)

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        skill_dir = self.skills_dir / self.skill_id(bundle_id)
        return to_file_url(skill_dir / SKILL_MARKER)

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return to_file_url(self.skills_dir / self.skill_id(bundle_id))

    async def download_bundle(self, bundle: Bundle) -> bytes:
        skill_dir = self.skills_dir / self.skill_id(bundle.id)
        try:
            skill = self.load_skill(skill_dir)
        except OSError as e:
            raise ArchiveError(f"Cannot read skill {skill_dir}: {e}") from e
        if skill is None:
            raise ArchiveError(f"Skill not found: {skill_dir}")
        manifest = build_skill_manifest(
            skill,
            bundle_id=bundle.id,
            version=DEFAULT_VERSION,
            author=LOCAL_AUTHOR,
            repository_url=self.source.url,
            repository_type="local",
            keywords=LOCAL_SKILL_TAGS,
        )
        return await repackage_directory(
            skill_dir, manifest, prefix=skill.path, label=bundle.id
        )


AdapterRegistry.register(LocalSkillsAdapter.kind, LocalSkillsAdapter)
