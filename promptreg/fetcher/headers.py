"""Header builders and trust-domain checks shared by every backend."""

from collections.abc import Callable, Iterable
from urllib.parse import urlparse

from promptreg.constants import USER_AGENT

AuthHeaderBuilder = Callable[[str], dict[str, str]]

# Hosts that may receive a GitHub credential. objects.githubusercontent.com
# (signed release-asset storage) is intentionally absent.
GITHUB_TRUSTED_DOMAINS = ("github.com", "raw.githubusercontent.com")

JSON_ACCEPT = "application/json"
BINARY_ACCEPT = "application/octet-stream"


def base_headers(user_agent: str = USER_AGENT) -> dict[str, str]:
    return {"User-Agent": user_agent}


def bearer_auth(token: str) -> dict[str, str]:
    """Authorization header for GitHub-style token auth."""
    return {"Authorization": f"Bearer {token}"}


def private_token_auth(token: str) -> dict[str, str]:
    """Header for GitLab personal/project access tokens."""
    return {"PRIVATE-TOKEN": token}


def url_host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def host_in_domains(url: str, domains: Iterable[str]) -> bool:
    """Check whether a URL's host equals or is a subdomain of a trusted domain.

    Examples:
        >>> host_in_domains("https://api.github.com/repos/a/b", GITHUB_TRUSTED_DOMAINS)
        True
        >>> host_in_domains("https://objects.githubusercontent.com/x", ["github.com"])
        False
        >>> host_in_domains("https://evilgithub.com/x", GITHUB_TRUSTED_DOMAINS)
        False
    """
    host = url_host(url)
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


def is_api_url(url: str) -> bool:
    """Check whether a URL targets a REST API rather than a content host.

    API endpoints answer with JSON metadata unless binary is requested.
    """
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    return host.startswith("api.") or "/api/" in parsed.path


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy headers with credential values shortened, for debug logging."""
    sanitized = dict(headers)
    for key in ("Authorization", "PRIVATE-TOKEN"):
        if key in sanitized:
            sanitized[key] = sanitized[key][:15] + "..."
    return sanitized
