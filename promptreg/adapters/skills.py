"""Skills repository backend (`skills/<id>/SKILL.md` on GitHub).

Each skill directory is one bundle. Downloads walk the directory
through the contents API and package it under `skills/<id>/`.
"""

import logging
from collections.abc import Iterable
from typing import Any

from promptreg.adapters.base import AdapterOptions
from promptreg.adapters.registry import AdapterRegistry
from promptreg.archive import ArchiveBuilder, build_skill_manifest
from promptreg.archive.manifest import now_iso
from promptreg.constants import (
    DEFAULT_BRANCH,
    DEFAULT_VERSION,
    SKILL_MARKER,
    SKILLS_SUBDIR,
)
from promptreg.exceptions import (
    ArchiveError,
    DiscoveryError,
    NotFoundError,
    RegistryError,
)
from promptreg.fetcher import GITHUB_TRUSTED_DOMAINS, Downloader, Fetcher
from promptreg.models import (
    Bundle,
    ParsedSkillFile,
    SkillItem,
    Source,
    SourceKind,
    SourceMetadata,
    ValidationResult,
)
from promptreg.parsing import parse_skill_md
from promptreg.utils import format_size, parse_github_url

logger = logging.getLogger(__name__)

SKILL_ENVIRONMENTS = ["claude", "vscode", "claude-code"]
SKILL_TAGS = ["skill", "anthropic"]
ESTIMATED_FILE_SIZE = 4096


def estimate_skill_size(files: Iterable[str]) -> str:
    """Rough bundle size from the number of files in a skill directory."""
    return format_size(len(list(files)) * ESTIMATED_FILE_SIZE)


def skill_item(
    skill_id: str, path: str, parsed: ParsedSkillFile, files: list[str]
) -> SkillItem:
    return SkillItem(
        id=skill_id,
        name=parsed.frontmatter.name or skill_id,
        description=parsed.frontmatter.description or "No description",
        path=path,
        files=files,
        license=parsed.frontmatter.license,
        parsed=parsed,
    )


def skill_bundle(
    skill: SkillItem,
    *,
    bundle_id: str,
    source: Source,
    author: str,
    tags: list[str],
    manifest_url: str,
    download_url: str,
    homepage: str | None = None,
    last_updated: str | None = None,
) -> Bundle:
    return Bundle(
        id=bundle_id,
        name=skill.name,
        version=DEFAULT_VERSION,
        description=skill.description,
        author=author,
        source_id=source.id,
        manifest_url=manifest_url,
        download_url=download_url,
        environments=list(SKILL_ENVIRONMENTS),
        tags=list(tags),
        last_updated=last_updated or now_iso(),
        size=estimate_skill_size(skill.files),
        license=skill.license or "Unknown",
        repository=source.url,
        homepage=homepage,
    )


class SkillsAdapter:
    """Skills hosted in a GitHub repository."""

    kind = SourceKind.SKILLS.value

    def __init__(self, source: Source, options: AdapterOptions | None = None):
        self.source = source
        self.options = options or AdapterOptions()
        self.owner, self.repo = parse_github_url(source.url)
        self.branch = source.option("branch", DEFAULT_BRANCH)
        self.auth = self.options.github_resolver(source)
        self.fetcher = Fetcher(self.auth, settings=self.options.http)
        self.downloader = Downloader(
            self.auth,
            settings=self.options.http,
            trusted_domains=GITHUB_TRUSTED_DOMAINS,
        )

    @property
    def bundle_prefix(self) -> str:
        return f"skills-{self.owner}-{self.repo}-"

    def contents_url(self, path: str) -> str:
        return (
            f"https://api.github.com/repos/{self.owner}/{self.repo}/contents/{path}"
            f"?ref={self.branch}"
        )

    async def _contents(self, path: str) -> list[dict[str, Any]]:
        entries = await self.fetcher.get_json(self.contents_url(path))
        if not isinstance(entries, list):
            raise DiscoveryError(
                f"'{path}' in {self.owner}/{self.repo} is not a directory"
            )
        return [entry for entry in entries if isinstance(entry, dict)]

    async def fetch_skill(self, skill_id: str) -> SkillItem | None:
        """Load one skill directory; None when it has no SKILL.md."""
        path = f"{SKILLS_SUBDIR}/{skill_id}"
        entries = await self._contents(path)
        skill_md = next(
            (
                e
                for e in entries
                if e.get("type") == "file" and e.get("name") == SKILL_MARKER
            ),
            None,
        )
        if skill_md is None or not skill_md.get("download_url"):
            logger.debug(
                "%s: skill %s has no %s", self.source.id, skill_id, SKILL_MARKER
            )
            return None
        text = await self.downloader.download_text(skill_md["download_url"])
        parsed = parse_skill_md(
            text, fallback_name=skill_id, origin=f"{path}/{SKILL_MARKER}"
        )
        files = [str(e["name"]) for e in entries if e.get("type") == "file"]
        return skill_item(skill_id, path, parsed, files)

    async def scan_skills(self) -> list[SkillItem]:
        entries = await self._contents(SKILLS_SUBDIR)
        skills = []
        for entry in entries:
            if entry.get("type") != "dir":
                continue
            try:
                skill = await self.fetch_skill(str(entry["name"]))
            except RegistryError as e:
                logger.warning(
                    "%s: skipping skill %s: %s", self.source.id, entry.get("name"), e
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
            author=self.owner,
            tags=SKILL_TAGS,
            manifest_url=self.get_manifest_url(bundle_id),
            download_url=self.get_download_url(bundle_id),
            homepage=(
                f"https://github.com/{self.owner}/{self.repo}/tree/"
                f"{self.branch}/{skill.path}"
            ),
        )

    async def fetch_bundles(self) -> list[Bundle]:
        try:
            skills = await self.scan_skills()
        except RegistryError as e:
            logger.error("%s: cannot scan skills: %s", self.source.id, e)
            raise DiscoveryError(
                f"Failed to fetch skills for source '{self.source.id}': {e}"
            ) from e
        bundles = []
        for skill in skills:
            try:
                bundles.append(self.to_bundle(skill))
            except ValueError as e:
                logger.warning("%s: skipping skill %s: %s", self.source.id, skill.id, e)
        logger.info("%s: found %d skills", self.source.id, len(bundles))
        return bundles

    async def fetch_metadata(self) -> SourceMetadata:
        try:
            skills = await self.scan_skills()
        except RegistryError as e:
            raise DiscoveryError(
                "Failed to fetch skills repository metadata for "
                f"'{self.source.id}': {e}"
            ) from e
        return SourceMetadata(
            name=f"{self.owner}/{self.repo}",
            description="Skills Repository",
            bundle_count=len(skills),
            last_updated=now_iso(),
        )

    async def validate(self) -> ValidationResult:
        try:
            await self.fetcher.get_json(
                f"https://api.github.com/repos/{self.owner}/{self.repo}"
            )
        except RegistryError as e:
            return ValidationResult.failure(f"GitHub validation failed: {e}")
        try:
            await self._contents(SKILLS_SUBDIR)
        except NotFoundError:
            return ValidationResult.failure(
                "Missing required 'skills' directory at repository root"
            )
        except RegistryError as e:
            return ValidationResult.failure(f"Failed to access skills directory: {e}")

        warnings = []
        try:
            skills = await self.scan_skills()
        except RegistryError as e:
            return ValidationResult.ok(
                bundles_found=0, warnings=[f"Failed to scan skills: {e}"]
            )
        if not skills:
            warnings.append(
                "No valid skills found in skills/ directory "
                "(skills must have SKILL.md file)"
            )
        return ValidationResult.ok(bundles_found=len(skills), warnings=warnings)

    def skill_id(self, bundle_id: str) -> str:
        return bundle_id.removeprefix(self.bundle_prefix)

    def get_manifest_url(self, bundle_id: str, version: str | None = None) -> str:
        return (
            f"https://raw.githubusercontent.com/{self.owner}/{self.repo}/{self.branch}/"
            f"{SKILLS_SUBDIR}/{self.skill_id(bundle_id)}/{SKILL_MARKER}"
        )

    def get_download_url(self, bundle_id: str, version: str | None = None) -> str:
        return (
            f"https://github.com/{self.owner}/{self.repo}/archive/refs/heads/"
            f"{self.branch}.zip"
        )

    async def _walk(self, path: str, prefix: str) -> list[tuple[str, str]]:
        """(download URL, archive path) for every file below a directory."""
        files = []
        for entry in await self._contents(path):
            name = str(entry.get("name", ""))
            if entry.get("type") == "file" and entry.get("download_url"):
                files.append((entry["download_url"], f"{prefix}/{name}"))
            elif entry.get("type") == "dir":
                files.extend(await self._walk(str(entry["path"]), f"{prefix}/{name}"))
        return files

    async def download_bundle(self, bundle: Bundle) -> bytes:
        skill_id = self.skill_id(bundle.id)
        skill = await self.fetch_skill(skill_id)
        if skill is None:
            raise ArchiveError(f"Skill not found: {skill_id}")

        manifest = build_skill_manifest(
            skill,
            bundle_id=bundle.id,
            version=DEFAULT_VERSION,
            author=self.owner,
            repository_url=self.source.url,
            keywords=SKILL_TAGS,
        )
        files = await self._walk(skill.path, f"{SKILLS_SUBDIR}/{skill.id}")
        builder = ArchiveBuilder(bundle.id)
        builder.write_manifest(manifest)
        for url, arcname in files:
            await builder.append_fetched(arcname, url, self.downloader.download)
        return await builder.finalize()


AdapterRegistry.register(SkillsAdapter.kind, SkillsAdapter)
