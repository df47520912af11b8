"""Binary downloads with bounded redirect following."""

import asyncio
import logging
from collections.abc import Iterable

import httpx

from promptreg.auth import AuthResolver
from promptreg.constants import MAX_REDIRECTS, REDIRECT_STATUSES
from promptreg.exceptions import (
    DownloadError,
    MalformedResponseError,
    NetworkError,
    RedirectLimitError,
)
from promptreg.fetcher.client import HttpSettings
from promptreg.fetcher.headers import (
    BINARY_ACCEPT,
    AuthHeaderBuilder,
    base_headers,
    bearer_auth,
    host_in_domains,
    is_api_url,
    sanitize_headers,
)
from promptreg.utils import local_path_from_url

logger = logging.getLogger(__name__)


class Downloader:
    """Retrieve archives and raw file contents.

    Redirects are followed manually so credentials are re-evaluated for
    every hop: a token is only sent to hosts inside `trusted_domains`.
    Unlike Fetcher, an auth failure is not retried; the caller gets the
    error together with the auth method that was in use.
    """

    def __init__(
        self,
        auth: AuthResolver,
        *,
        settings: HttpSettings | None = None,
        auth_headers: AuthHeaderBuilder = bearer_auth,
        trusted_domains: Iterable[str] = (),
        max_redirects: int = MAX_REDIRECTS,
    ):
        self.auth = auth
        self.settings = settings or HttpSettings()
        self._auth_headers = auth_headers
        self.trusted_domains = tuple(trusted_domains)
        self.max_redirects = max_redirects

    async def headers_for(self, url: str) -> dict[str, str]:
        """Build request headers for one hop."""
        headers = base_headers(self.settings.user_agent)
        if is_api_url(url):
            headers["Accept"] = BINARY_ACCEPT
        if host_in_domains(url, self.trusted_domains):
            token = await self.auth.resolve()
            if token:
                headers.update(self._auth_headers(token))
        return headers

    async def download(self, url: str) -> bytes:
        """Return the full body at `url`, following redirects.

        file:// URLs are read from disk without any network request.

        Raises:
            NetworkError: If a request fails below HTTP
            RedirectLimitError: If more than max_redirects redirects occur
            DownloadError: If the final response has a failure status
        """
        if url.startswith("file://"):
            path = local_path_from_url(url)
            try:
                return await asyncio.to_thread(path.read_bytes)
            except OSError as e:
                raise DownloadError(f"Cannot read {path}: {e}", url, 0) from e

        current = url
        depth = 0
        async with self.settings.client() as client:
            while True:
                headers = await self.headers_for(current)
                logger.debug(
                    "Downloading %s (redirect depth %d) %s",
                    current,
                    depth,
                    sanitize_headers(headers),
                )
                try:
                    response = await client.get(current, headers=headers)
                except httpx.RequestError as e:
                    raise NetworkError(f"Download of {current} failed: {e}") from e

                if response.status_code in REDIRECT_STATUSES:
                    location = response.headers.get("location")
                    if not location:
                        raise DownloadError(
                            f"Download of {current} failed: "
                            f"HTTP {response.status_code} without Location header",
                            current,
                            response.status_code,
                            auth_method=self.auth.method.value,
                        )
                    if depth >= self.max_redirects:
                        raise RedirectLimitError(
                            f"Download of {url} exceeded {self.max_redirects} "
                            f"redirects (last: {current})"
                        )
                    current = str(response.url.join(location))
                    depth += 1
                    continue

                if response.status_code >= 400:
                    raise DownloadError(
                        f"Download of {current} failed with "
                        f"HTTP {response.status_code} "
                        f"(auth: {self.auth.method.value})",
                        current,
                        response.status_code,
                        auth_method=self.auth.method.value,
                    )

                logger.debug(
                    "Downloaded %d bytes from %s", len(response.content), current
                )
                return response.content

    async def download_text(self, url: str) -> str:
        """Download a UTF-8 text file such as a collection manifest or SKILL.md."""
        data = await self.download(url)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedResponseError(f"{url} is not valid UTF-8 text: {e}") from e
