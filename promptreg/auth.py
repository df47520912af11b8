"""Credential resolution for backend adapters.

Each adapter owns one AuthResolver. Providers are tried in a fixed order:

| Order | Method   | Where the token comes from                     |
|-------|----------|------------------------------------------------|
| 1     | explicit | `token` on the Source (non-empty after strip)  |
| 2     | session  | an injected host-session provider               |
| 3     | cli      | an injected CLI provider (e.g. `gh auth token`) |

Concurrent `resolve()` calls share one in-flight resolution task, so
a burst of requests never triggers more than one resolution pass. When a
server rejects a credential the caller invalidates it; the provider that
produced it joins the attempted set and is skipped for the rest of the
resolver's life. Once every provider has been attempted the resolver
answers "no credential" without asking any provider.
"""

import asyncio
import logging
import subprocess
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from promptreg.constants import MAX_AUTH_ATTEMPTS

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]

GH_CLI_COMMAND = ("gh", "auth", "token")


class AuthMethod(str, Enum):
    """Which provider produced the current credential."""

    NONE = "none"
    EXPLICIT = "explicit"
    SESSION = "session"
    CLI = "cli"


PROVIDER_ORDER = (AuthMethod.EXPLICIT, AuthMethod.SESSION, AuthMethod.CLI)


@dataclass
class AuthState:
    """Mutable authentication bookkeeping owned by a single adapter.

    Attributes:
        token: Resolved credential, None until resolved or after invalidation
        method: Provider that produced `token`
        resolved: True once a pass finished, including a pass that found nothing
        attempted: Providers whose credentials were rejected by a server
        pending: The in-flight resolution shared by concurrent callers
    """

    token: str | None = None
    method: AuthMethod = AuthMethod.NONE
    resolved: bool = False
    attempted: set[AuthMethod] = field(default_factory=set)
    pending: "asyncio.Task[str | None] | None" = None

    @property
    def exhausted(self) -> bool:
        return len(self.attempted) >= MAX_AUTH_ATTEMPTS


def _token_preview(token: str) -> str:
    return f"{token[:8]}..."


def _run_cli_token(command: Sequence[str]) -> str | None:
    """Run a CLI that prints a token on stdout.

    Returns the stripped token, or None if the CLI is missing, fails or times out.
    """
    try:
        result = subprocess.run(
            list(command),
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def cli_token_provider(command: Sequence[str] = GH_CLI_COMMAND) -> TokenProvider:
    """Build a provider that reads a token from a local CLI.

    The process runs in a worker thread so the event loop keeps serving
    other requests while it executes.
    """
    frozen = tuple(command)

    async def provider() -> str | None:
        return await asyncio.to_thread(_run_cli_token, frozen)

    return provider


async def no_session() -> str | None:
    """Session provider used when no interactive host is attached."""
    return None


class AuthResolver:
    """Resolve a bearer credential with single-flight memoization.

    Usage:
        resolver = AuthResolver(source.token, cli_provider=cli_token_provider())
        token = await resolver.resolve()
        ...
        # server answered 401
        resolver.invalidate("HTTP 401")
        token = await resolver.resolve()  # next provider in the chain
    """

    def __init__(
        self,
        explicit_token: str | None = None,
        *,
        session_provider: TokenProvider | None = None,
        cli_provider: TokenProvider | None = None,
        label: str = "auth",
    ):
        self._explicit_token = explicit_token
        self._providers: dict[AuthMethod, TokenProvider | None] = {
            AuthMethod.EXPLICIT: self._explicit_provider,
            AuthMethod.SESSION: session_provider,
            AuthMethod.CLI: cli_provider,
        }
        self.label = label
        self.state = AuthState()

    @property
    def method(self) -> AuthMethod:
        return self.state.method

    @property
    def attempted(self) -> frozenset[AuthMethod]:
        return frozenset(self.state.attempted)

    def describe_attempted(self) -> str:
        """Render the attempted providers in chain order, for error messages."""
        names = [m.value for m in PROVIDER_ORDER if m in self.state.attempted]
        return ", ".join(names) if names else "none"

    async def _explicit_provider(self) -> str | None:
        if self._explicit_token and self._explicit_token.strip():
            return self._explicit_token.strip()
        return None

    async def resolve(self) -> str | None:
        """Return the current credential, resolving it at most once at a time.

        Returns:
            The token, or None when no provider yields one
        """
        state = self.state
        if state.token is not None:
            logger.debug(
                "%s: using cached token (method: %s)", self.label, state.method.value
            )
            return state.token
        if state.resolved:
            return None
        if state.pending is not None:
            logger.debug("%s: joining in-flight authentication", self.label)
            return await asyncio.shield(state.pending)
        if state.exhausted:
            logger.debug(
                "%s: all providers attempted (%s), continuing without credentials",
                self.label,
                self.describe_attempted(),
            )
            return None

        state.pending = asyncio.ensure_future(self._resolve_pass())
        return await asyncio.shield(state.pending)

    async def _resolve_pass(self) -> str | None:
        state = self.state
        logger.info("%s: attempting authentication", self.label)
        try:
            for method in PROVIDER_ORDER:
                if method in state.attempted:
                    continue
                provider = self._providers.get(method)
                if provider is None:
                    continue
                try:
                    token = await provider()
                except Exception as e:
                    logger.warning(
                        "%s: %s authentication failed: %s",
                        self.label,
                        method.value,
                        e,
                    )
                    continue
                if token and token.strip():
                    state.token = token.strip()
                    state.method = method
                    state.resolved = True
                    logger.info("%s: using %s authentication", self.label, method.value)
                    logger.debug(
                        "%s: token preview %s",
                        self.label,
                        _token_preview(state.token),
                    )
                    return state.token
                logger.debug(
                    "%s: %s provider returned no token", self.label, method.value
                )

            state.token = None
            state.method = AuthMethod.NONE
            state.resolved = True
            logger.warning(
                "%s: no authentication available; rate limits apply and private "
                "repositories are inaccessible",
                self.label,
            )
            return None
        finally:
            state.pending = None

    def invalidate(self, reason: str = "") -> None:
        """Discard a credential the server rejected.

        The provider that produced it is recorded as attempted so the next
        `resolve()` moves on to the following provider in the chain.
        """
        state = self.state
        if state.method is AuthMethod.NONE:
            return
        logger.info(
            "%s: invalidating %s credential%s",
            self.label,
            state.method.value,
            f" ({reason})" if reason else "",
        )
        state.attempted.add(state.method)
        state.token = None
        state.method = AuthMethod.NONE
        state.resolved = False
