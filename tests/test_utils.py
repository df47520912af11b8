"""Tests for URL and formatting helpers."""

from pathlib import Path

import pytest

from promptreg.exceptions import InvalidSourceError
from promptreg.utils import (
    format_size,
    is_local_url,
    local_path_from_url,
    parse_github_url,
    parse_gitlab_url,
    title_case,
    to_file_url,
)


class TestGitHubUrls:
    """GitHub repository URL parsing."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/octo/prompts",
            "https://github.com/octo/prompts.git",
            "https://github.com/octo/prompts/",
            "git@github.com:octo/prompts.git",
        ],
    )
    def test_parse(self, url):
        """Test the accepted URL forms."""
        assert parse_github_url(url) == ("octo", "prompts")

    def test_invalid(self):
        """Test that other hosts are rejected."""
        with pytest.raises(InvalidSourceError, match="Invalid GitHub URL"):
            parse_github_url("https://gitlab.com/octo/prompts")

    def test_ssh_without_suffix(self):
        """Test an SSH URL without the .git suffix."""
        assert parse_github_url("git@github.com:octo/prompts") == ("octo", "prompts")


class TestGitLabUrls:
    """GitLab project URL parsing."""

    def test_nested_groups(self):
        """Test that subgroups are encoded into the project id."""
        assert parse_gitlab_url("https://gitlab.com/a/b/c.git") == ("https://gitlab.com/api/v4", "a%2Fb%2Fc")

    @pytest.mark.parametrize("url", ["gitlab.com/a/b", "https://gitlab.com/only-group"])
    def test_invalid(self, url):
        """Test rejected URLs."""
        with pytest.raises(InvalidSourceError):
            parse_gitlab_url(url)


class TestLocalUrls:
    """Local path handling."""

    @pytest.mark.parametrize("url", ["file:///srv/x", "/srv/x", "~/x", "./x"])
    def test_is_local(self, url):
        """Test local URL forms."""
        assert is_local_url(url)

    def test_not_local(self):
        """Test that remote URLs are not local."""
        assert not is_local_url("https://github.com/octo/prompts")
        with pytest.raises(InvalidSourceError):
            local_path_from_url("https://github.com/octo/prompts")

    def test_file_url_round_trip(self, tmp_path):
        """Test that to_file_url output converts back to the same path."""
        assert local_path_from_url(to_file_url(tmp_path)) == tmp_path.resolve()

    def test_home_expanded(self):
        """Test that ~ expands to the home directory."""
        assert local_path_from_url("~/skills") == Path.home() / "skills"


class TestFormatting:
    """Display helpers."""

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 B"), (1023, "1023 B"), (1536, "1.5 KB"), (3 * 1024 * 1024, "3.0 MB")],
    )
    def test_format_size(self, size, expected):
        """Test size formatting."""
        assert format_size(size) == expected

    def test_title_case(self):
        """Test word capitalization."""
        assert title_case("azure resource HEALTH") == "Azure Resource Health"
