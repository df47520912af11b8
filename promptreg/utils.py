"""Utility functions for promptreg."""

import posixpath
import re
from pathlib import Path
from urllib.parse import quote, urlparse

from promptreg.exceptions import InvalidSourceError

# HTTPS format: https://github.com/owner/repo(.git)
# SSH format: git@github.com:owner/repo(.git)
_GITHUB_URL_PATTERN = re.compile(r"github\.com[/:]([^/]+)/([^/#?]+)")


def parse_github_url(url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a GitHub repository URL.

    Raises:
        InvalidSourceError: If the URL is not a GitHub repository URL

    Examples:
        >>> parse_github_url("https://github.com/kasperjunge/agent-resources.git")
        ('kasperjunge', 'agent-resources')
        >>> parse_github_url("git@github.com:octo/prompts")
        ('octo', 'prompts')
    """
    cleaned = url.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    match = _GITHUB_URL_PATTERN.search(cleaned)
    if not match:
        raise InvalidSourceError(f"Invalid GitHub URL: {url}")
    return match.group(1), match.group(2)


def parse_gitlab_url(url: str) -> tuple[str, str]:
    """Extract (api_base, encoded project path) from a GitLab URL.

    Self-hosted instances keep their own host.

    Examples:
        >>> parse_gitlab_url("https://gitlab.com/group/sub/project.git")
        ('https://gitlab.com/api/v4', 'group%2Fsub%2Fproject')
        >>> parse_gitlab_url("https://git.example.org/team/prompts")
        ('https://git.example.org/api/v4', 'team%2Fprompts')
    """
    cleaned = url.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    parsed = urlparse(cleaned)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidSourceError(f"Invalid GitLab URL: {url}")
    project_path = parsed.path.strip("/")
    if project_path.count("/") < 1:
        raise InvalidSourceError(
            f"Invalid GitLab URL (expected <host>/<group>/<project>): {url}"
        )
    api_base = f"{parsed.scheme}://{parsed.netloc}/api/v4"
    return api_base, quote(project_path, safe="")


def is_local_url(url: str) -> bool:
    """Check whether a source URL names a local directory."""
    return (
        url.startswith("file://")
        or Path(url).is_absolute()
        or url.startswith("~/")
        or url.startswith("./")
    )


def local_path_from_url(url: str) -> Path:
    """Convert a file:// URL or filesystem path into a normalized Path.

    Raises:
        InvalidSourceError: If the URL is not a local path
    """
    if not is_local_url(url):
        raise InvalidSourceError(f"Invalid local path: {url}")
    raw = url[len("file://"):] if url.startswith("file://") else url
    return Path(raw).expanduser()


def to_file_url(path: Path) -> str:
    """Build the file:// URL used as manifest/download URL for local bundles."""
    return f"file://{path.resolve().as_posix()}"


def format_size(num_bytes: int) -> str:
    """Format a byte count for display.

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(2048)
        '2.0 KB'
        >>> format_size(5 * 1024 * 1024)
        '5.0 MB'
    """
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def title_case(text: str) -> str:
    """Capitalize each space-separated word, lower-casing the rest.

    Examples:
        >>> title_case("azure resource HEALTH")
        'Azure Resource Health'
    """
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


def directory_size(path: Path) -> int:
    """Sum the sizes of all files below a directory, ignoring unreadable ones."""
    total = 0
    for file_path in path.rglob("*"):
        try:
            if file_path.is_file():
                total += file_path.stat().st_size
        except OSError:
            continue
    return total


def is_safe_relative_path(path: str) -> bool:
    """Check that a repository-relative path stays below its root.

    Absolute paths and paths that climb out with `..` are rejected.

    Examples:
        >>> is_safe_relative_path("skills/pdf/SKILL.md")
        True
        >>> is_safe_relative_path("prompts/../../etc/passwd")
        False
        >>> is_safe_relative_path("/etc/passwd")
        False
    """
    normalized = posixpath.normpath(path.replace("\\", "/"))
    if not path or posixpath.isabs(normalized) or re.match(r"^[A-Za-z]:", normalized):
        return False
    return normalized != ".." and not normalized.startswith("../")
