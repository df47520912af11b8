"""Shared exception classes for promptreg."""


class RegistryError(Exception):
    """Base exception for promptreg errors."""


class NetworkError(RegistryError):
    """Raised when a request fails below HTTP (DNS, refused connection, timeout)."""


class ResponseShapeError(RegistryError):
    """Raised when a response body is not what the endpoint should return."""


class HtmlResponseError(ResponseShapeError):
    """Raised when an API answers with an HTML page instead of data."""

    def __init__(self, message: str, url: str, status_code: int, page_text: str):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.page_text = page_text


class UnexpectedContentTypeError(ResponseShapeError):
    """Raised when a response is neither JSON nor binary."""


class MalformedResponseError(ResponseShapeError):
    """Raised when a JSON or YAML body cannot be parsed."""


class HttpStatusError(RegistryError):
    """Raised when an endpoint answers with a failure status code."""

    def __init__(
        self,
        message: str,
        url: str,
        status_code: int,
        auth_method: str = "none",
        attempted: tuple[str, ...] = (),
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.auth_method = auth_method
        self.attempted = attempted


class AuthenticationError(HttpStatusError):
    """Raised for 401/403 once re-authentication is exhausted."""


class NotFoundError(HttpStatusError):
    """Raised for 404. Private resources also report 404 on some providers."""


class DownloadError(HttpStatusError):
    """Raised when a binary download ends in a failure status."""


class RedirectLimitError(RegistryError):
    """Raised when a download keeps redirecting past the allowed depth."""


class ArchiveError(RegistryError):
    """Raised when a bundle archive cannot be produced completely."""


class DiscoveryError(RegistryError):
    """Raised when a whole source cannot be listed."""


class ManifestParseError(RegistryError):
    """Raised when a collection manifest or SKILL.md cannot be parsed."""


class InvalidSourceError(RegistryError):
    """Raised when a source URL does not fit the adapter it is given to."""


class UnsupportedSourceError(RegistryError):
    """Raised when no adapter is registered for a source kind."""


class ConfigError(RegistryError):
    """Base exception for registry.toml problems."""


class ConfigNotFoundError(ConfigError):
    """Raised when registry.toml is not found."""


class ConfigParseError(ConfigError):
    """Raised when registry.toml cannot be parsed."""


class ConfigValidationError(ConfigError):
    """Raised when registry.toml contains invalid configuration."""
