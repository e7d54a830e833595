"""Tests for the repository chat context and error mapping."""

import asyncio
import json
from dataclasses import replace

import httpx
import pytest

from gitwise.chat import ChatContextCompiler, create_chat_client
from gitwise.errors import (
    AuthError,
    ChatError,
    ChatTimeoutError,
    ConfigurationError,
    NotAnalyzedError,
    QuotaExceededError,
    ValidationError,
)
from gitwise.schemas import Commit, Contributor, FileEntry

URL = "https://github.com/octo/hello"


@pytest.fixture
def analyzed(store, record):
    return store.upsert(record)


class TestChatContext:
    def test_contains_record_fields(self, settings, store, analyzed):
        context = ChatContextCompiler(settings, store, None).compile_context(analyzed)

        assert "**Name**: octo/hello" in context
        assert "A service that greets people over HTTP." in context
        assert "Developers learning web APIs." in context
        assert "**Tech Stack**: Python, FastAPI" in context
        assert "**Code Health Score**: 72/100" in context
        assert "- [High] No auth (File: main.py)" in context
        assert "CI: Add a workflow (File: pyproject.toml)" in context

    def test_contributors_ranked_by_contributions(self, settings, store, analyzed):
        context = ChatContextCompiler(settings, store, None).compile_context(analyzed)
        assert context.index("1. mona: 80 commits") < context.index("2. hubot: 12 commits")

    def test_lists_are_capped(self, settings, store, record):
        big = record.model_copy(
            update={
                "file_tree": [FileEntry(name=f"f{i}.py", path=f"f{i}.py", type="file") for i in range(60)],
                "contributors": [Contributor(login=f"user{i}", contributions=i) for i in range(20)],
                "recent_commits": [Commit(sha=f"{i:07d}", message=f"change {i}") for i in range(20)],
            }
        )
        context = ChatContextCompiler(settings, store, None).compile_context(big)

        assert "- f49.py" in context
        assert "- f50.py" not in context
        assert "user19" in context
        assert "user4:" not in context
        assert '"change 14"' in context
        assert '"change 15"' not in context

    def test_empty_sections_have_placeholders(self, settings, store, record):
        bare = record.model_copy(
            update={"file_tree": [], "contributors": [], "recent_commits": [], "risk_assessment": None}
        )
        context = ChatContextCompiler(settings, store, None).compile_context(bare)
        assert "No file structure available." in context
        assert "No contributor data available." in context
        assert "No recent commits found." in context
        assert "No specific risks identified." in context


class TestChat:
    def test_reply(self, settings, store, analyzed, llm_api):
        client, calls = llm_api("Mona has the most commits.", base_url="https://chat.test/v1")
        chat = ChatContextCompiler(settings, store, client)

        reply = asyncio.run(chat.chat(URL, "Who commits most?"))

        assert reply == "Mona has the most commits."
        assert len(calls) == 1
        sent = json.loads(calls[0].content)
        assert sent["model"] == settings.chat_model
        assert [m["role"] for m in sent["messages"]] == ["system", "user"]
        assert "octo/hello" in sent["messages"][0]["content"]
        assert sent["messages"][1]["content"] == "Who commits most?"

    def test_model_override(self, settings, store, analyzed, llm_api):
        client, calls = llm_api("ok")
        asyncio.run(ChatContextCompiler(settings, store, client).chat(URL, "hi", model="openai/gpt-4o"))
        assert json.loads(calls[0].content)["model"] == "openai/gpt-4o"

    def test_not_analyzed(self, settings, store, llm_api):
        client, calls = llm_api("unused")
        with pytest.raises(NotAnalyzedError):
            asyncio.run(ChatContextCompiler(settings, store, client).chat(URL, "hi"))
        assert calls == []

    def test_missing_credentials(self, settings, store, analyzed):
        with pytest.raises(ConfigurationError):
            asyncio.run(ChatContextCompiler(settings, store, None).chat(URL, "hi"))

    @pytest.mark.parametrize("message", ["", "   ", None])
    def test_message_required(self, settings, store, analyzed, llm_api, message):
        client, _ = llm_api("unused")
        with pytest.raises(ValidationError):
            asyncio.run(ChatContextCompiler(settings, store, client).chat(URL, message))

    @pytest.mark.parametrize(
        "reply, error",
        [
            (httpx.Response(401, json={"error": {"message": "bad key"}}), AuthError),
            (httpx.Response(429, json={"error": {"message": "quota"}}), QuotaExceededError),
            (httpx.ReadTimeout("timed out"), ChatTimeoutError),
            (httpx.Response(500, json={"error": {"message": "boom"}}), ChatError),
        ],
    )
    def test_upstream_errors_surface(self, settings, store, analyzed, llm_api, reply, error):
        client, calls = llm_api(reply)
        with pytest.raises(error):
            asyncio.run(ChatContextCompiler(settings, store, client).chat(URL, "hi"))
        assert len(calls) == 1

    def test_timeout_is_a_timeout_error(self):
        assert issubclass(ChatTimeoutError, TimeoutError)

    def test_empty_choices(self, settings, store, analyzed, llm_api):
        body = {"id": "x", "object": "chat.completion", "created": 0, "model": "m", "choices": []}
        client, _ = llm_api(httpx.Response(200, json=body))
        with pytest.raises(ChatError, match="No response"):
            asyncio.run(ChatContextCompiler(settings, store, client).chat(URL, "hi"))


class TestCreateChatClient:
    def test_headers(self, settings):
        client = create_chat_client(settings)
        assert client.default_headers["HTTP-Referer"] == settings.client_url
        assert client.default_headers["X-Title"] == settings.chat_title
        assert client.max_retries == 0

    def test_no_key(self, settings):
        assert create_chat_client(replace(settings, chat_api_key="")) is None
