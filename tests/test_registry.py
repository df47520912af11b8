"""Tests for the adapter registry."""

import pytest

from conftest import make_source

from promptreg.adapters import (
    AdapterRegistry,
    AwesomeCopilotAdapter,
    BundleAdapter,
    GitHubAdapter,
    GitLabAdapter,
    LocalAdapter,
    LocalAwesomeCopilotAdapter,
    LocalSkillsAdapter,
    SkillsAdapter,
    create_adapter,
)
from promptreg.exceptions import InvalidSourceError, UnsupportedSourceError

SOURCES = [
    ("github", "https://github.com/octo/prompts", GitHubAdapter),
    ("gitlab", "https://gitlab.com/team/prompts", GitLabAdapter),
    ("local", "/tmp/bundles", LocalAdapter),
    (
        "awesome-copilot",
        "https://github.com/github/awesome-copilot",
        AwesomeCopilotAdapter,
    ),
    (
        "local-awesome-copilot",
        "file:///tmp/awesome-copilot",
        LocalAwesomeCopilotAdapter,
    ),
    ("skills", "https://github.com/anthropics/skills", SkillsAdapter),
    ("local-skills", "~/skills", LocalSkillsAdapter),
]


class TestAdapterRegistry:
    """Kind → adapter lookup."""

    def test_all_kinds_registered(self):
        """Test that importing promptreg.adapters registers every kind."""
        assert sorted(AdapterRegistry.kinds()) == sorted(kind for kind, _, _ in SOURCES)

    @pytest.mark.parametrize("kind,url,adapter_class", SOURCES)
    def test_create(self, kind, url, adapter_class, options):
        """Test that each kind builds its adapter, which satisfies the protocol."""
        adapter = create_adapter(make_source(kind, url), options)

        assert type(adapter) is adapter_class
        assert isinstance(adapter, BundleAdapter)
        assert adapter.kind == kind

    def test_unknown_kind(self, options):
        """Test that an unregistered kind raises UnsupportedSourceError."""
        with pytest.raises(UnsupportedSourceError, match="source type 'svn'"):
            create_adapter(make_source("svn", "https://svn.example.org/repo"), options)

    def test_url_mismatch(self, options):
        """Test that a local path given to a remote adapter is rejected."""
        with pytest.raises(InvalidSourceError):
            create_adapter(make_source("skills", "/tmp/skills"), options)

    def test_register_custom_kind(self, options):
        """Test registering an extra adapter class."""

        class EchoAdapter(LocalAdapter):
            kind = "echo"

        AdapterRegistry.register("echo", EchoAdapter)
        try:
            adapter = create_adapter(make_source("echo", "/tmp/x"), options)
            assert type(adapter) is EchoAdapter
        finally:
            AdapterRegistry._adapters.pop("echo")
