"""JSON fetcher with response classification and re-authentication."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from promptreg.auth import PROVIDER_ORDER, AuthMethod, AuthResolver
from promptreg.constants import DEFAULT_TIMEOUT, MAX_AUTH_ATTEMPTS, USER_AGENT
from promptreg.exceptions import (
    AuthenticationError,
    HtmlResponseError,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    UnexpectedContentTypeError,
)
from promptreg.fetcher.headers import (
    JSON_ACCEPT,
    AuthHeaderBuilder,
    base_headers,
    bearer_auth,
    sanitize_headers,
)
from promptreg.fetcher.html import extract_page_text

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass(frozen=True)
class HttpSettings:
    """Connection settings shared by the Fetcher and Downloader of an adapter.

    Attributes:
        timeout: Seconds allowed per request
        user_agent: Value of the User-Agent header
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT
    transport: httpx.AsyncBaseTransport | None = None

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=False,
        )


def media_type(response: httpx.Response) -> str:
    """Return the response's media type without parameters, lower-cased."""
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


def _is_json_type(content_type: str) -> bool:
    return content_type == "application/json" or content_type.endswith("+json")


def _tried(auth: AuthResolver) -> tuple[str, ...]:
    methods = set(auth.attempted)
    if auth.method is not AuthMethod.NONE:
        methods.add(auth.method)
    return tuple(m.value for m in PROVIDER_ORDER if m in methods)


def status_error(
    url: str, response: httpx.Response, auth: AuthResolver
) -> HttpStatusError:
    """Build the diagnostic exception for a failure status."""
    status = response.status_code
    tried = _tried(auth)
    tried_text = ", ".join(tried) if tried else "none"
    prefix = f"GET {url} failed with HTTP {status} {response.reason_phrase}".rstrip()
    kwargs = {"auth_method": auth.method.value, "attempted": tried}

    if status == 404:
        return NotFoundError(
            f"{prefix}: not found or not accessible, check authentication",
            url,
            status,
            **kwargs,
        )
    if status == 401:
        return AuthenticationError(
            f"{prefix}: authentication failed, token may be invalid or expired "
            f"(tried: {tried_text})",
            url,
            status,
            **kwargs,
        )
    if status == 403:
        return AuthenticationError(
            f"{prefix}: access forbidden, token may lack required scope "
            f"(tried: {tried_text})",
            url,
            status,
            **kwargs,
        )
    return HttpStatusError(prefix, url, status, **kwargs)


class Fetcher:
    """Perform authenticated GET requests against a JSON API.

    A 401/403 invalidates the current credential and repeats the request
    with the next provider in the chain, at most MAX_AUTH_ATTEMPTS times.
    Network failures are never retried.
    """

    def __init__(
        self,
        auth: AuthResolver,
        *,
        settings: HttpSettings | None = None,
        auth_headers: AuthHeaderBuilder = bearer_auth,
        extra_headers: dict[str, str] | None = None,
    ):
        self.auth = auth
        self.settings = settings or HttpSettings()
        self._auth_headers = auth_headers
        self._extra_headers = dict(extra_headers or {})

    async def _headers(self) -> tuple[dict[str, str], str | None]:
        headers = base_headers(self.settings.user_agent)
        headers["Accept"] = JSON_ACCEPT
        headers.update(self._extra_headers)
        token = await self.auth.resolve()
        if token:
            headers.update(self._auth_headers(token))
        return headers, token

    async def get_json(self, url: str) -> Any:
        """Fetch a URL and decode its JSON body.

        Args:
            url: API endpoint

        Returns:
            The decoded JSON document

        Raises:
            NetworkError: If the request fails below HTTP
            HtmlResponseError: If the server answered with an HTML page
            UnexpectedContentTypeError: If the body is neither JSON nor binary
            HttpStatusError: If the status signals failure after any retries
            MalformedResponseError: If the body is not valid JSON
        """
        retry_count = 0
        async with self.settings.client() as client:
            while True:
                headers, sent_token = await self._headers()
                logger.debug(
                    "GET %s (auth: %s) %s",
                    url,
                    self.auth.method.value,
                    sanitize_headers(headers),
                )
                try:
                    response = await client.get(url, headers=headers)
                except httpx.RequestError as e:
                    raise NetworkError(f"GET {url} failed: {e}") from e

                content_type = media_type(response)
                if content_type == "text/html":
                    page_text = extract_page_text(response.text)
                    raise HtmlResponseError(
                        f"GET {url} returned an HTML page instead of JSON "
                        f"(HTTP {response.status_code}): {page_text}",
                        url,
                        response.status_code,
                        page_text,
                    )
                if not (
                    _is_json_type(content_type)
                    or content_type == "application/octet-stream"
                ):
                    raise UnexpectedContentTypeError(
                        f"GET {url} returned unexpected content type "
                        f"'{content_type or 'unknown'}' (HTTP {response.status_code})"
                    )

                if response.status_code >= 400:
                    if (
                        response.status_code in AUTH_FAILURE_STATUSES
                        and retry_count < MAX_AUTH_ATTEMPTS
                        and len(self.auth.attempted) < MAX_AUTH_ATTEMPTS
                        and sent_token is not None
                    ):
                        # a concurrent request may have replaced the token already
                        if self.auth.state.token == sent_token:
                            self.auth.invalidate(
                                f"HTTP {response.status_code} from {url}"
                            )
                        retry_count += 1
                        logger.info(
                            "Retrying %s with next authentication method (attempt %d)",
                            url,
                            retry_count,
                        )
                        continue
                    raise status_error(url, response, self.auth)

                try:
                    return response.json()
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    raise MalformedResponseError(
                        f"GET {url} returned invalid JSON: {e}"
                    ) from e
