"""Tests for registry.toml handling."""

import pytest

from promptreg.config import (
    RegistryConfig,
    Settings,
    find_config,
    load_config,
    load_or_create_config,
    token_env_var,
)
from promptreg.exceptions import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigValidationError,
)
from promptreg.models import Source

GITHUB_SOURCE = '[sources.x]\ntype = "github"\nurl = "https://github.com/a/b"\n'

CONFIG_TOML = """\
[settings]
timeout = 10

[sources.awesome]
name = "Awesome Copilot"
type = "awesome-copilot"
url = "https://github.com/github/awesome-copilot"
config = { branch = "main", collectionsPath = "collections" }

[sources.team]
type = "github"
url = "https://github.com/acme/prompt-bundles"
priority = -1

[sources.old]
type = "local"
url = "/srv/bundles"
enabled = false
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "registry.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestLoad:
    """Loading registry.toml."""

    def test_load(self, config_path):
        """Test sources and settings."""
        config = RegistryConfig.load(config_path)

        assert config.settings.timeout == 10.0
        assert set(config.sources) == {"awesome", "team", "old"}
        awesome = config.sources["awesome"]
        assert awesome.name == "Awesome Copilot"
        assert awesome.kind == "awesome-copilot"
        assert awesome.option("collectionsPath") == "collections"
        assert config.sources["team"].name == "team"

    def test_missing_file(self, tmp_path):
        """Test ConfigNotFoundError."""
        with pytest.raises(ConfigNotFoundError):
            RegistryConfig.load(tmp_path / "registry.toml")

    def test_invalid_toml(self, tmp_path):
        """Test ConfigParseError."""
        path = tmp_path / "registry.toml"
        path.write_text("[sources.x\n")

        with pytest.raises(ConfigParseError):
            RegistryConfig.load(path)

    @pytest.mark.parametrize(
        "text,message",
        [
            ('[sources.x]\nurl = "https://x.org/a"\n', "missing required 'type'"),
            ('[sources.x]\ntype = "svn"\nurl = "x"\n', "invalid type 'svn'"),
            ("[settings]\ntimeout = 0\n", "must be a positive number"),
            ('[sources]\nx = "github"\n', "must be a table"),
            (GITHUB_SOURCE + 'priority = "high"\n', "priority must be an integer"),
            (GITHUB_SOURCE + 'enabled = "no"\n', "enabled must be true or false"),
        ],
    )
    def test_invalid_config(self, tmp_path, text, message):
        """Test ConfigValidationError for bad tables."""
        path = tmp_path / "registry.toml"
        path.write_text(text)

        with pytest.raises(ConfigValidationError, match=message):
            RegistryConfig.load(path)


class TestSaveAndEdit:
    """Round trips and edits."""

    def test_round_trip(self, config_path):
        """Test that save and load preserve sources."""
        config = RegistryConfig.load(config_path)
        config.add_source(
            Source(
                id="skills",
                name="skills",
                kind="skills",
                url="https://github.com/anthropics/skills",
            )
        )
        config.save()

        reloaded = RegistryConfig.load(config_path)

        assert set(reloaded.sources) == {"awesome", "team", "old", "skills"}
        assert reloaded.sources["old"].enabled is False
        assert reloaded.sources["team"].priority == -1
        assert reloaded.sources["awesome"].config == {
            "branch": "main",
            "collectionsPath": "collections",
        }
        assert reloaded.settings.timeout == 10.0

    def test_remove_source(self, config_path):
        """Test removing configured and unknown sources."""
        config = RegistryConfig.load(config_path)

        assert config.remove_source("team") is True
        assert config.remove_source("team") is False

    def test_settings_defaults_not_written(self):
        """Test that default settings serialize to nothing."""
        assert Settings().to_dict() == {}


class TestSources:
    """Source lookup."""

    def test_enabled_sources_in_priority_order(self, config_path):
        """Test ordering and that disabled sources are excluded."""
        config = RegistryConfig.load(config_path)

        assert [s.id for s in config.enabled_sources()] == ["team", "awesome"]

    def test_env_token_override(self, config_path, monkeypatch):
        """Test PROMPTREG_TOKEN_<ID>."""
        monkeypatch.setenv(token_env_var("team"), "  env-token ")
        config = RegistryConfig.load(config_path)

        assert config.get_source("team").token == "env-token"
        assert config.sources["team"].token is None

    def test_unknown_source(self, config_path):
        """Test ConfigValidationError for an unknown id."""
        with pytest.raises(ConfigValidationError, match="Unknown source 'nope'"):
            RegistryConfig.load(config_path).get_source("nope")


class TestFindConfig:
    """Locating registry.toml."""

    def test_walks_up(self, config_path):
        """Test that a parent directory's config is found."""
        nested = config_path.parent / "a" / "b"
        nested.mkdir(parents=True)

        assert find_config(nested) == config_path.resolve()

    def test_not_found(self, tmp_path, monkeypatch):
        """Test load_config without any registry.toml."""
        monkeypatch.chdir(tmp_path)
        if find_config(tmp_path) is not None:
            pytest.skip("a registry.toml exists above the temporary directory")

        with pytest.raises(ConfigNotFoundError):
            load_config()

    def test_load_or_create(self, tmp_path):
        """Test that a missing explicit path yields an empty config."""
        config = load_or_create_config(tmp_path / "new.toml")

        assert config.sources == {}
        assert config.path == tmp_path / "new.toml"
