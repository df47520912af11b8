"""Tests for credential resolution."""

import asyncio
import logging

from conftest import FakeProvider

from promptreg.auth import AuthMethod, AuthResolver, cli_token_provider


def resolve(resolver: AuthResolver):
    return asyncio.run(resolver.resolve())


class TestProviderOrder:
    """Providers are tried explicit → session → cli."""

    def test_explicit_token_wins(self):
        """Test that a configured token is used without asking other providers."""
        session, cli = FakeProvider("session-token"), FakeProvider("cli-token")
        resolver = AuthResolver(
            "explicit-token", session_provider=session, cli_provider=cli
        )

        assert resolve(resolver) == "explicit-token"
        assert resolver.method is AuthMethod.EXPLICIT
        assert session.calls == 0
        assert cli.calls == 0

    def test_blank_explicit_token_is_skipped(self):
        """Test that a whitespace-only token falls through to the session provider."""
        resolver = AuthResolver("   ", session_provider=FakeProvider("session-token"))

        assert resolve(resolver) == "session-token"
        assert resolver.method is AuthMethod.SESSION

    def test_cli_used_when_nothing_else_yields(self):
        """Test the CLI provider as last resort."""
        resolver = AuthResolver(
            None,
            session_provider=FakeProvider(None),
            cli_provider=FakeProvider(" cli-token\n"),
        )

        assert resolve(resolver) == "cli-token"
        assert resolver.method is AuthMethod.CLI

    def test_no_provider_yields(self):
        """Test that 'none' is recorded and cached."""
        session, cli = FakeProvider(), FakeProvider()
        resolver = AuthResolver(None, session_provider=session, cli_provider=cli)

        assert resolve(resolver) is None
        assert resolver.method is AuthMethod.NONE
        assert resolver.state.resolved is True

        assert resolve(resolver) is None
        assert session.calls == 1
        assert cli.calls == 1

    def test_cached_token_not_resolved_again(self):
        """Test that a resolved token is returned without calling providers again."""
        session = FakeProvider("session-token", "other")
        resolver = AuthResolver(None, session_provider=session)

        assert resolve(resolver) == "session-token"
        assert resolve(resolver) == "session-token"
        assert session.calls == 1

    def test_failing_provider_is_skipped(self, caplog):
        """Test that a provider raising does not stop the chain."""

        async def broken():
            raise RuntimeError("host unavailable")

        resolver = AuthResolver(
            None, session_provider=broken, cli_provider=FakeProvider("cli-token")
        )

        with caplog.at_level(logging.WARNING, logger="promptreg.auth"):
            assert resolve(resolver) == "cli-token"
        assert "host unavailable" in caplog.text

    def test_token_not_logged(self, caplog):
        """Test that only a short preview of the token reaches the logs."""
        resolver = AuthResolver("ghp_supersecretvalue1234567890")

        with caplog.at_level(logging.DEBUG, logger="promptreg.auth"):
            resolve(resolver)
        assert "ghp_supersecretvalue1234567890" not in caplog.text
        assert "ghp_supe..." in caplog.text


class TestSingleFlight:
    """Concurrent resolve() calls share one resolution."""

    def test_concurrent_callers_share_one_pass(self):
        """Test that parallel callers trigger one provider call and share its token."""
        session = FakeProvider("session-token", "second-token", delay=0.01)
        resolver = AuthResolver(None, session_provider=session)

        async def burst():
            return await asyncio.gather(*(resolver.resolve() for _ in range(10)))

        results = asyncio.run(burst())

        assert results == ["session-token"] * 10
        assert session.calls == 1
        assert resolver.state.pending is None

    def test_concurrent_callers_share_none(self):
        """Test that a pass finding nothing is also shared."""
        session, cli = FakeProvider(delay=0.01), FakeProvider()
        resolver = AuthResolver(None, session_provider=session, cli_provider=cli)

        async def burst():
            return await asyncio.gather(*(resolver.resolve() for _ in range(5)))

        assert asyncio.run(burst()) == [None] * 5
        assert session.calls == 1
        assert cli.calls == 1


class TestInvalidate:
    """Invalidation moves the chain to the next provider."""

    def test_invalidate_moves_to_next_provider(self):
        """Test that a rejected explicit token is followed by the session token."""
        resolver = AuthResolver(
            "bad-token", session_provider=FakeProvider("session-token")
        )

        assert resolve(resolver) == "bad-token"
        resolver.invalidate("HTTP 401")

        assert resolver.attempted == {AuthMethod.EXPLICIT}
        assert resolver.method is AuthMethod.NONE
        assert resolve(resolver) == "session-token"

    def test_invalidate_without_credential_is_noop(self):
        """Test that invalidating 'none' leaves the attempted set alone."""
        resolver = AuthResolver(None, session_provider=FakeProvider())
        resolve(resolver)

        resolver.invalidate("HTTP 401")

        assert resolver.attempted == frozenset()
        assert resolver.state.resolved is True

    def test_ceiling_stops_resolution(self):
        """Test that after three rejected providers no provider is asked again."""
        session, cli = FakeProvider("s1", "s2"), FakeProvider("c1", "c2")
        resolver = AuthResolver("e1", session_provider=session, cli_provider=cli)

        for expected in ("e1", "s1", "c1"):
            assert resolve(resolver) == expected
            resolver.invalidate("rejected")

        assert resolver.state.exhausted
        assert resolve(resolver) is None
        assert resolve(resolver) is None
        assert session.calls == 1
        assert cli.calls == 1

    def test_describe_attempted_in_chain_order(self):
        """Test the diagnostic rendering of attempted providers."""
        resolver = AuthResolver("e1", session_provider=FakeProvider("s1"))
        assert resolver.describe_attempted() == "none"

        resolve(resolver)
        resolver.invalidate()
        resolve(resolver)
        resolver.invalidate()

        assert resolver.describe_attempted() == "explicit, session"


class TestCliProvider:
    """The default CLI provider."""

    def test_missing_binary_yields_no_token(self):
        """Test that a missing CLI is treated as 'no token'."""
        provider = cli_token_provider(("promptreg-missing-binary", "auth", "token"))

        assert asyncio.run(provider()) is None
