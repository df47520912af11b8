"""HTTP access layer: JSON fetching and binary downloads."""

from promptreg.fetcher.client import Fetcher, HttpSettings
from promptreg.fetcher.download import Downloader
from promptreg.fetcher.headers import (
    GITHUB_TRUSTED_DOMAINS,
    bearer_auth,
    host_in_domains,
    is_api_url,
    private_token_auth,
    url_host,
)
from promptreg.fetcher.html import extract_page_text

__all__ = [
    "Downloader",
    "Fetcher",
    "GITHUB_TRUSTED_DOMAINS",
    "HttpSettings",
    "bearer_auth",
    "extract_page_text",
    "host_in_domains",
    "is_api_url",
    "private_token_auth",
    "url_host",
]
