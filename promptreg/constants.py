"""Centralized constants for the promptreg package."""

from promptreg import __version__

USER_AGENT = f"promptreg/{__version__}"

# Deployment manifest written at the root of every archive
DEPLOYMENT_MANIFEST_NAME = "deployment-manifest.yml"
MANIFEST_ASSET_NAMES = (
    "deployment-manifest.yml",
    "deployment-manifest.yaml",
    "deployment-manifest.json",
)
ARCHIVE_SUFFIXES = (".zip", ".tar.gz")
MANIFEST_VERSION = "1.0"

# Collection and skill file conventions
COLLECTION_SUFFIX = ".collection.yml"
SKILL_MARKER = "SKILL.md"
SKILLS_SUBDIR = "skills"
PROMPTS_SUBDIR = "prompts"

DEFAULT_BRANCH = "main"
DEFAULT_COLLECTIONS_PATH = "collections"
DEFAULT_VERSION = "1.0.0"

# Network bounds
DEFAULT_TIMEOUT = 30.0
MAX_AUTH_ATTEMPTS = 3
MAX_REDIRECTS = 10
REDIRECT_STATUSES = (301, 302, 303, 307, 308)

# Discovery
DISCOVERY_CACHE_TTL = 5 * 60
COLLECTION_BATCH_SIZE = 5
