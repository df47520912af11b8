"""Tests for the skills repository adapter."""

import asyncio

import httpx
import pytest
import yaml

from conftest import make_source, zip_names, zip_read

from promptreg.adapters import SkillsAdapter
from promptreg.adapters.skills import estimate_skill_size
from promptreg.exceptions import ArchiveError, DiscoveryError

REPO_API = "https://api.github.com/repos/anthropics/skills"
RAW = "https://raw.githubusercontent.com/anthropics/skills/main"


def contents(path: str) -> str:
    return f"{REPO_API}/contents/{path}?ref=main"


def file_entry(path: str) -> dict:
    return {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "type": "file",
        "download_url": f"{RAW}/{path}",
    }


def dir_entry(path: str) -> dict:
    return {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "type": "dir",
        "download_url": None,
    }


SKILL_MD = (
    "---\nname: PDF Tools\ndescription: Work with PDF files\nlicense: MIT\n---\n"
    "# PDF\n"
)


@pytest.fixture
def adapter(options):
    source = make_source("skills", "https://github.com/anthropics/skills")
    return SkillsAdapter(source, options)


@pytest.fixture
def skills_repo(server):
    """Repository with one valid skill and one folder without SKILL.md."""
    server.json(REPO_API, {"name": "skills"})
    server.json(
        contents("skills"),
        [
            dir_entry("skills/pdf"),
            dir_entry("skills/empty"),
            file_entry("skills/README.md"),
        ],
    )
    server.json(
        contents("skills/pdf"),
        [
            file_entry("skills/pdf/SKILL.md"),
            file_entry("skills/pdf/reference.md"),
            dir_entry("skills/pdf/scripts"),
        ],
    )
    server.json(
        contents("skills/pdf/scripts"), [file_entry("skills/pdf/scripts/fill.py")]
    )
    server.json(contents("skills/empty"), [file_entry("skills/empty/notes.txt")])
    server.text(f"{RAW}/skills/pdf/SKILL.md", SKILL_MD)
    server.text(f"{RAW}/skills/pdf/reference.md", "# Reference")
    server.text(f"{RAW}/skills/pdf/scripts/fill.py", "print('fill')")
    return server


class TestFetchBundles:
    """Skill discovery."""

    def test_only_folders_with_skill_md(self, skills_repo, adapter):
        """Test that folders without SKILL.md are not bundles."""
        (bundle,) = asyncio.run(adapter.fetch_bundles())

        assert bundle.id == "skills-anthropics-skills-pdf"
        assert bundle.name == "PDF Tools"
        assert bundle.description == "Work with PDF files"
        assert bundle.license == "MIT"
        assert bundle.tags == ["skill", "anthropic"]
        assert bundle.environments == ["claude", "vscode", "claude-code"]
        assert bundle.size == estimate_skill_size(["SKILL.md", "reference.md"])
        assert bundle.manifest_url == f"{RAW}/skills/pdf/SKILL.md"
        assert bundle.homepage == (
            "https://github.com/anthropics/skills/tree/main/skills/pdf"
        )

    def test_undecodable_skill_md_skipped(self, skills_repo, adapter):
        """Test that a SKILL.md that is not UTF-8 skips only that skill."""
        skills_repo.json(
            contents("skills"),
            [
                dir_entry("skills/pdf"),
                dir_entry("skills/bad"),
                file_entry("skills/README.md"),
            ],
        )
        skills_repo.json(contents("skills/bad"), [file_entry("skills/bad/SKILL.md")])
        skills_repo.add(
            f"{RAW}/skills/bad/SKILL.md",
            httpx.Response(200, content=b"---\nname: \xff\xfe\n---\n"),
        )

        bundles = asyncio.run(adapter.fetch_bundles())

        assert [b.id for b in bundles] == ["skills-anthropics-skills-pdf"]

    def test_non_object_entries_ignored(self, skills_repo, adapter):
        """Test that null entries in a contents listing are ignored."""
        skills_repo.json(
            contents("skills"), [None, dir_entry("skills/pdf"), "skills/other"]
        )

        bundles = asyncio.run(adapter.fetch_bundles())

        assert [b.id for b in bundles] == ["skills-anthropics-skills-pdf"]

    def test_missing_skills_directory(self, server, adapter):
        """Test that a repository without skills/ raises DiscoveryError."""
        with pytest.raises(DiscoveryError):
            asyncio.run(adapter.fetch_bundles())


class TestValidate:
    """Source validation."""

    def test_valid(self, skills_repo, adapter):
        """Test a repository with one skill."""
        result = asyncio.run(adapter.validate())

        assert result.valid
        assert result.bundles_found == 1

    def test_missing_skills_directory(self, server, adapter):
        """Test the error for a repository without skills/."""
        server.json(REPO_API, {"name": "skills"})

        result = asyncio.run(adapter.validate())

        assert not result.valid
        assert result.errors == [
            "Missing required 'skills' directory at repository root"
        ]

    def test_no_skills_warns(self, server, adapter):
        """Test that an empty skills/ directory is valid with a warning."""
        server.json(REPO_API, {"name": "skills"})
        server.json(contents("skills"), [])

        result = asyncio.run(adapter.validate())

        assert result.valid
        assert "No valid skills found" in result.warnings[0]


class TestDownload:
    """Skill archive assembly."""

    def test_archive_contains_whole_skill_tree(self, skills_repo, adapter):
        """Test that nested files land under skills/<id>/."""
        (bundle,) = asyncio.run(adapter.fetch_bundles())

        data = asyncio.run(adapter.download_bundle(bundle))

        assert zip_names(data) == [
            "deployment-manifest.yml",
            "skills/pdf/SKILL.md",
            "skills/pdf/reference.md",
            "skills/pdf/scripts/fill.py",
        ]
        manifest = yaml.safe_load(zip_read(data, "deployment-manifest.yml"))
        assert manifest["id"] == "skills-anthropics-skills-pdf"
        assert manifest["prompts"][0]["file"] == "skills/pdf/SKILL.md"
        assert zip_read(data, "skills/pdf/scripts/fill.py") == "print('fill')"

    def test_missing_file_fails(self, skills_repo, adapter):
        """Test that an unreachable file fails the whole download."""
        (bundle,) = asyncio.run(adapter.fetch_bundles())
        skills_repo.add(f"{RAW}/skills/pdf/reference.md", httpx.Response(500))

        with pytest.raises(ArchiveError, match="skills/pdf/reference.md"):
            asyncio.run(adapter.download_bundle(bundle))
