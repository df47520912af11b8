"""Backend adapters.

Public exports:
- BundleAdapter: Protocol every backend implements
- AdapterOptions: Injected HTTP settings and auth providers
- AdapterRegistry / create_adapter: Source kind → adapter lookup
- One adapter class per source kind
"""

from promptreg.adapters.base import AdapterOptions, BundleAdapter
from promptreg.adapters.registry import AdapterRegistry, create_adapter

# Import adapters to trigger registration
from promptreg.adapters.github import GitHubAdapter
from promptreg.adapters.gitlab import GitLabAdapter
from promptreg.adapters.collection import AwesomeCopilotAdapter
from promptreg.adapters.local_collection import LocalAwesomeCopilotAdapter
from promptreg.adapters.local import LocalAdapter
from promptreg.adapters.skills import SkillsAdapter
from promptreg.adapters.local_skills import LocalSkillsAdapter

__all__ = [
    "AdapterOptions",
    "AdapterRegistry",
    "AwesomeCopilotAdapter",
    "BundleAdapter",
    "GitHubAdapter",
    "GitLabAdapter",
    "LocalAdapter",
    "LocalAwesomeCopilotAdapter",
    "LocalSkillsAdapter",
    "SkillsAdapter",
    "create_adapter",
]
