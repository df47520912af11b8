"""Tests for binary downloads and redirect handling."""

import asyncio

import httpx
import pytest

from promptreg.auth import AuthResolver
from promptreg.exceptions import (
    DownloadError,
    MalformedResponseError,
    RedirectLimitError,
)
from promptreg.fetcher import (
    GITHUB_TRUSTED_DOMAINS,
    Downloader,
    host_in_domains,
    is_api_url,
)

START = "https://github.com/octo/prompts/releases/download/v1.0.0/bundle.zip"


def redirect(location: str, status: int = 302) -> httpx.Response:
    return httpx.Response(status, headers={"location": location})


def download(downloader: Downloader, url: str = START) -> bytes:
    return asyncio.run(downloader.download(url))


def github_downloader(http) -> Downloader:
    return Downloader(
        AuthResolver("tok"), settings=http, trusted_domains=GITHUB_TRUSTED_DOMAINS
    )


def chain(server, length: int) -> str:
    """Register `length` redirects ending in a 200 and return the first URL."""
    urls = [f"https://github.com/hop/{i}" for i in range(length + 1)]
    for current, following in zip(urls, urls[1:]):
        server.add(current, redirect(following))
    server.add(urls[-1], httpx.Response(200, content=b"PAYLOAD"))
    return urls[0]


class TestRedirects:
    """Manual redirect following."""

    def test_ten_redirects_allowed(self, server, http):
        """Test that a chain of exactly ten redirects succeeds."""
        start = chain(server, 10)

        downloader = Downloader(AuthResolver(None), settings=http)

        assert download(downloader, start) == b"PAYLOAD"
        assert len(server.requests) == 11

    def test_eleventh_redirect_fails(self, server, http):
        """Test that the eleventh redirect raises RedirectLimitError."""
        start = chain(server, 11)

        with pytest.raises(RedirectLimitError, match="exceeded 10 redirects"):
            download(Downloader(AuthResolver(None), settings=http), start)
        assert len(server.requests) == 11

    def test_relative_location(self, server, http):
        """Test that a relative Location is resolved against the current URL."""
        server.add(START, redirect("/assets/bundle.zip", 301))
        server.add(
            "https://github.com/assets/bundle.zip", httpx.Response(200, content=b"zip")
        )

        assert download(Downloader(AuthResolver(None), settings=http)) == b"zip"
        assert server.urls()[-1] == "https://github.com/assets/bundle.zip"

    def test_missing_location(self, server, http):
        """Test that a redirect without Location is an error."""
        server.add(START, httpx.Response(302))

        with pytest.raises(DownloadError, match="without Location"):
            download(Downloader(AuthResolver(None), settings=http))


class TestCredentialScope:
    """Credentials only reach trusted hosts."""

    def test_token_not_forwarded_to_asset_storage(self, server, http):
        """Test that the signed storage host never sees the token."""
        storage = "https://objects.githubusercontent.com/release-asset/123?sig=abc"
        server.add(START, redirect(storage))
        server.add(storage, httpx.Response(200, content=b"zip"))
        downloader = github_downloader(http)

        assert download(downloader) == b"zip"
        first, second = server.requests
        assert first.headers["Authorization"] == "Bearer tok"
        assert "Authorization" not in second.headers

    def test_token_sent_to_raw_content_host(self, server, http):
        """Test that raw.githubusercontent.com is trusted."""
        url = "https://raw.githubusercontent.com/octo/prompts/main/README.md"
        server.add(url, httpx.Response(200, content=b"# hi"))
        downloader = github_downloader(http)

        assert download(downloader, url) == b"# hi"
        assert server.requests[0].headers["Authorization"] == "Bearer tok"

    def test_untrusted_without_domains(self, server, http):
        """Test that an empty trust list sends no credential at all."""
        server.add(START, httpx.Response(200, content=b"zip"))

        download(Downloader(AuthResolver("tok"), settings=http))
        assert "Authorization" not in server.requests[0].headers

    def test_api_urls_request_binary(self, server, http):
        """Test that API asset URLs ask for octet-stream."""
        url = "https://api.github.com/repos/octo/prompts/releases/assets/1"
        server.add(url, httpx.Response(200, content=b"zip"))

        download(Downloader(AuthResolver(None), settings=http), url)
        assert server.requests[0].headers["Accept"] == "application/octet-stream"

    def test_domain_matching(self):
        """Test exact and subdomain matches."""
        assert host_in_domains("https://api.github.com/x", GITHUB_TRUSTED_DOMAINS)
        assert host_in_domains("https://GitHub.com/x", GITHUB_TRUSTED_DOMAINS)
        assert not host_in_domains("https://notgithub.com/x", GITHUB_TRUSTED_DOMAINS)
        assert not host_in_domains(
            "https://objects.githubusercontent.com/x", GITHUB_TRUSTED_DOMAINS
        )
        assert is_api_url("https://gitlab.example.org/api/v4/projects/1")
        assert not is_api_url("https://github.com/octo/prompts")


class TestFailures:
    """Failure statuses and local files."""

    def test_auth_failure_not_retried(self, server, http):
        """Test that a 401 download reports the auth method and is not retried."""
        server.add(START, httpx.Response(401))
        downloader = github_downloader(http)

        with pytest.raises(DownloadError) as exc_info:
            download(downloader)

        assert exc_info.value.status_code == 401
        assert exc_info.value.auth_method == "explicit"
        assert "auth: explicit" in str(exc_info.value)
        assert len(server.requests) == 1

    def test_file_url_reads_disk(self, tmp_path, server, http):
        """Test that file:// URLs never touch the network."""
        path = tmp_path / "bundle.zip"
        path.write_bytes(b"local zip")

        downloader = Downloader(AuthResolver(None), settings=http)

        assert download(downloader, f"file://{path}") == b"local zip"
        assert server.requests == []

    def test_missing_file_url(self, tmp_path, http):
        """Test that a missing local file raises DownloadError."""
        with pytest.raises(DownloadError):
            download(
                Downloader(AuthResolver(None), settings=http),
                f"file://{tmp_path}/absent.zip",
            )

    def test_download_text(self, server, http):
        """Test UTF-8 decoding."""
        server.add(START, httpx.Response(200, content="héllo".encode()))

        downloader = Downloader(AuthResolver(None), settings=http)

        assert asyncio.run(downloader.download_text(START)) == "héllo"

    def test_download_text_not_utf8(self, server, http):
        """Test that undecodable text raises MalformedResponseError."""
        server.add(START, httpx.Response(200, content=b"---\nname: \xff\xfe\n---\n"))
        downloader = Downloader(AuthResolver(None), settings=http)

        with pytest.raises(MalformedResponseError, match="not valid UTF-8"):
            asyncio.run(downloader.download_text(START))
