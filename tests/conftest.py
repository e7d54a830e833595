"""Shared fixtures: settings, snapshots, and fake GitHub / LLM transports."""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import openai
import pytest

from gitwise.config import Settings
from gitwise.normalizer import ResponseNormalizer
from gitwise.schemas import Commit, Contributor, FileEntry, RawAnalysisResult, RepositorySnapshot
from gitwise.store import create_store

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return Settings(
        github_token="gh-test-token",
        analysis_api_key="analysis-test-key",
        chat_api_key="chat-test-key",
        analysis_base_url="https://llm.test/v1",
        chat_base_url="https://chat.test/v1",
        database_url="sqlite://",
    )


@pytest.fixture
def store():
    return create_store("sqlite://")


class Clock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def snapshot():
    return RepositorySnapshot(
        owner="octo",
        name="hello",
        description="A friendly greeting service",
        stars=42,
        forks=7,
        languages={"Python": 9000, "Shell": 500, "Dockerfile": 120},
        commits=[
            Commit(sha="abc1234", message="Add greeting endpoint", author="Mona", date="2026-10-01T10:00:00Z"),
            Commit(sha="def5678", message="Fix typo in README", author="Hubot", date="2026-09-30T09:00:00Z"),
        ],
        contributors=[
            Contributor(login="hubot", contributions=12),
            Contributor(login="mona", contributions=80),
        ],
        file_tree=[
            FileEntry(name="src", path="src", type="dir"),
            FileEntry(name="README.md", path="README.md", type="file"),
            FileEntry(name="pyproject.toml", path="pyproject.toml", type="file"),
            FileEntry(name="main.py", path="main.py", type="file"),
            FileEntry(name="package-lock.json", path="package-lock.json", type="file"),
        ],
    )


def _github_routes(owner: str = "octo", repo: str = "hello") -> dict:
    base = f"/repos/{owner}/{repo}"
    commits = [
        {
            "sha": f"{i:07d}deadbeef",
            "commit": {
                "message": f"Commit number {i}\n\nLonger body",
                "author": {"name": f"dev{i}", "date": f"2026-10-{i + 1:02d}T00:00:00Z"},
            },
            "author": {"avatar_url": f"https://avatars.test/{i}"},
        }
        for i in range(12)
    ]
    return {
        base: {"description": "A friendly greeting service", "stargazers_count": 42, "forks_count": 7},
        f"{base}/commits": commits,
        f"{base}/contributors": [
            {"login": "mona", "avatar_url": "https://avatars.test/mona", "contributions": 80},
            {"login": "hubot", "avatar_url": "https://avatars.test/hubot", "contributions": 12},
        ],
        f"{base}/languages": {"Python": 9000, "Shell": 500},
        f"{base}/contents": [
            {"name": "README.md", "path": "README.md", "type": "file"},
            {"name": "src", "path": "src", "type": "dir"},
            {"name": "pyproject.toml", "path": "pyproject.toml", "type": "file"},
            {"name": "link", "path": "link", "type": "symlink"},
        ],
    }


@pytest.fixture
def github_api():
    """Factory for a fake GitHub API. Returns (client, recorded requests)."""

    def make(overrides: dict | None = None):
        routes = _github_routes()
        routes.update(overrides or {})
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            result = routes.get(request.url.path)
            if result is None:
                return httpx.Response(404, json={"message": "Not Found"})
            if isinstance(result, Exception):
                raise result
            if isinstance(result, httpx.Response):
                return result
            return httpx.Response(200, json=result)

        client = httpx.AsyncClient(
            base_url="https://api.github.com",
            transport=httpx.MockTransport(handler),
        )
        return client, calls

    return make


def completion_body(content: str) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


@pytest.fixture
def llm_api():
    """Factory for an OpenAI-compatible fake. ``reply`` is text, an httpx.Response or an exception."""

    def make(reply, base_url: str = "https://llm.test/v1"):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if isinstance(reply, Exception):
                raise reply
            if isinstance(reply, httpx.Response):
                return reply
            return httpx.Response(200, json=completion_body(reply))

        client = openai.AsyncOpenAI(
            api_key="test-key",
            base_url=base_url,
            max_retries=0,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        return client, calls

    return make


@pytest.fixture
def record(settings, snapshot):
    """A normalized record for octo/hello, fetched at NOW."""
    raw = RawAnalysisResult(
        payload={
            "functionalSummary": "A service that greets people over HTTP.",
            "targetAudienceAndUse": "Developers learning web APIs.",
            "techStack": ["Python", "FastAPI"],
            "codeHealthScore": {"score": 72, "justification": "Steady commits."},
            "improvements": ["Add tests", {"title": "CI", "description": "Add a workflow", "fileReference": "pyproject.toml"}],
            "riskAssessment": [{"issue": "No auth", "severity": "High", "fileReference": "main.py", "reason": "Open endpoints"}],
            "architectureAssessment": {"pattern": "Monolith", "strengths": ["Small"], "weaknesses": ["No layers"]},
        }
    )
    return ResponseNormalizer(settings).normalize(raw, snapshot, "https://github.com/octo/hello", NOW)


@pytest.fixture
def hanging_llm():
    """An OpenAI-compatible client whose endpoint never answers in time."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=completion_body("{}"))

    return openai.AsyncOpenAI(
        api_key="test-key",
        base_url="https://llm.test/v1",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
