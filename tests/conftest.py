"""Test configuration and fixtures."""

import asyncio
import io
import zipfile
from pathlib import Path

import httpx
import pytest

from promptreg.adapters import AdapterOptions
from promptreg.fetcher import HttpSettings
from promptreg.models import Source


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "network: tests that make real network requests")


class FakeProvider:
    """Token provider returning queued tokens and counting its calls."""

    def __init__(self, *tokens: str | None, delay: float = 0.0):
        self.tokens = list(tokens)
        self.delay = delay
        self.calls = 0

    async def __call__(self) -> str | None:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.tokens:
            return self.tokens.pop(0)
        return None


class FakeServer:
    """Route table behind an httpx.MockTransport.

    Each URL maps to a queue of responses; the last one repeats. Unknown
    URLs answer 404 with a JSON body, like the GitHub API.
    """

    def __init__(self):
        self.routes: dict[str, list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, *responses) -> None:
        self.routes[url] = list(responses)

    def json(self, url: str, data, status: int = 200) -> None:
        self.add(url, httpx.Response(status, json=data))

    def text(self, url: str, body: str, status: int = 200) -> None:
        self.add(url, httpx.Response(status, text=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(str(request.url))
        if not queue:
            return httpx.Response(404, json={"message": "Not Found"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            return response(request)
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=response.content,
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def http(server: FakeServer) -> HttpSettings:
    return HttpSettings(timeout=5.0, transport=server.transport)


@pytest.fixture
def options(http: HttpSettings) -> AdapterOptions:
    """Adapter options with deterministic providers that never find a token."""
    return AdapterOptions(
        http=http, session_provider=FakeProvider(), cli_provider=FakeProvider()
    )


def make_source(
    kind: str, url: str, source_id: str = "test-source", **kwargs
) -> Source:
    name = kwargs.pop("name", source_id)
    return Source(id=source_id, name=name, kind=kind, url=url, **kwargs)


def zip_names(data: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return archive.namelist()


def zip_read(data: bytes, name: str) -> str:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return archive.read(name).decode("utf-8")


def write_skill(
    root: Path,
    skill_id: str,
    name: str | None = None,
    description: str = "A test skill",
) -> Path:
    """Create skills/<id>/SKILL.md under root."""
    skill_dir = root / "skills" / skill_id
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(
        f"---\nname: {name or skill_id}\ndescription: {description}\n---\n\n"
        f"# {skill_id}\n\nInstructions.\n"
    )
    return skill_dir
