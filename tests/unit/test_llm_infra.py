"""Unit tests for backend resolution, request shapes and error descriptions."""

import json

import httpx
import pytest

from deckstream.application.models import ChatRequest, ImageInput
from deckstream.domain.entities.conversation import HistoryMessage
from deckstream.infra.config.settings import Settings
from deckstream.infra.llm.backends import (
    BackendConfig,
    BackendType,
    build_endpoint,
    build_headers,
    detect_backend,
    resolve_backend,
)
from deckstream.infra.llm.errors import (
    CONNECTION_FAILED,
    NETWORK_ERROR,
    TIMEOUT_ERROR,
    describe_exception,
    describe_http_error,
)
from deckstream.infra.llm.request_builder import (
    build_request,
    dedupe_consecutive_user_messages,
)


def backend(kind: BackendType, model: str = "test-model") -> BackendConfig:
    endpoint = {
        BackendType.OPENAI: "https://api.example.com/v1/chat/completions",
        BackendType.OLLAMA: "http://localhost:11434/api/chat",
        BackendType.GEMINI: "https://generativelanguage.googleapis.com/v1beta/models/test-model",
    }[kind]
    return BackendConfig(type=kind, endpoint=endpoint, model=model, headers=build_headers(kind, "k"))


class TestBackends:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("http://localhost:11434", BackendType.OLLAMA),
            ("https://my-ollama.internal/api", BackendType.OLLAMA),
            ("https://generativelanguage.googleapis.com", BackendType.GEMINI),
            ("https://api.openai.com/v1", BackendType.OPENAI),
            ("", BackendType.OPENAI),
        ],
    )
    def test_detect_backend(self, url, expected):
        assert detect_backend(url) == expected

    @pytest.mark.parametrize(
        "kind,url,expected",
        [
            (BackendType.OLLAMA, "http://localhost:11434/", "http://localhost:11434/api/chat"),
            (BackendType.OLLAMA, "http://localhost:11434/api", "http://localhost:11434/api/chat"),
            (BackendType.OPENAI, "https://api.openai.com/v1/", "https://api.openai.com/v1/chat/completions"),
            (
                BackendType.OPENAI,
                "https://api.openai.com/v1/chat/completions",
                "https://api.openai.com/v1/chat/completions",
            ),
            (
                BackendType.GEMINI,
                "https://generativelanguage.googleapis.com",
                "https://generativelanguage.googleapis.com/v1beta/models/m",
            ),
        ],
    )
    def test_build_endpoint(self, kind, url, expected):
        assert build_endpoint(kind, url, "m") == expected

    def test_auth_headers(self):
        assert build_headers(BackendType.OPENAI, "k")["Authorization"] == "Bearer k"
        assert build_headers(BackendType.GEMINI, "k")["x-goog-api-key"] == "k"
        assert "Authorization" not in build_headers(BackendType.OLLAMA, "k")
        assert build_headers(BackendType.OPENAI, "") == {"Content-Type": "application/json"}

    def test_resolve_from_settings(self):
        settings = Settings(_env_file=None, API_URL="http://localhost:11434", API_KEY="", MODEL="")

        resolved = resolve_backend(settings=settings)

        assert resolved.type == BackendType.OLLAMA
        assert resolved.model == "llama3.2"
        assert resolved.endpoint == "http://localhost:11434/api/chat"
        assert resolved.streams

    def test_resolve_explicit_type_uses_family_defaults(self):
        settings = Settings(_env_file=None, API_KEY="", MODEL="")

        resolved = resolve_backend(api_url="", api_type="gemini", settings=settings)

        assert resolved.type == BackendType.GEMINI
        assert resolved.endpoint.endswith("/v1beta/models/gemini-2.5-flash")
        assert not resolved.streams


class TestChatRequestBody:
    def test_openai_messages(self):
        request = ChatRequest(
            prompt="Make a deck",
            model="ignored",
            system_prompt="SYS",
            history=(HistoryMessage("user", "hi"), HistoryMessage("assistant", "hello")),
        )

        prepared = build_request(backend(BackendType.OPENAI), request)

        assert prepared.stream
        assert prepared.headers["Authorization"] == "Bearer k"
        assert prepared.body["model"] == "test-model"
        assert prepared.body["max_tokens"] == 65535
        assert prepared.body["messages"] == [
            {"role": "system", "content": "SYS"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "Make a deck"},
        ]

    def test_repeated_user_turn_is_collapsed(self):
        request = ChatRequest(prompt="again", model="m", history=(HistoryMessage("user", "again"),))
        messages = build_request(backend(BackendType.OPENAI), request).body["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]

    def test_retrieval_round_adds_no_user_turn(self):
        request = ChatRequest(
            prompt="",
            model="m",
            history=(HistoryMessage("assistant", '{"a":"info"}'), HistoryMessage("user", "data")),
        )
        messages = build_request(backend(BackendType.OLLAMA), request).body["messages"]
        assert messages[-1] == {"role": "user", "content": "data"}
        assert len(messages) == 3

    def test_openai_images(self):
        request = ChatRequest(prompt="look", model="m", images=(ImageInput("QUJD", "image/png"),))
        last = build_request(backend(BackendType.OPENAI), request).body["messages"][-1]
        assert last["content"][0] == {"type": "text", "text": "look"}
        assert last["content"][1]["image_url"]["url"] == "data:image/png;base64,QUJD"

    def test_ollama_images(self):
        request = ChatRequest(prompt="look", model="m", images=(ImageInput("QUJD"),))
        last = build_request(backend(BackendType.OLLAMA), request).body["messages"][-1]
        assert last == {"role": "user", "content": "look", "images": ["QUJD"]}

    def test_dedupe_keeps_different_turns(self):
        messages = [{"role": "user", "content": "a"}, {"role": "user", "content": "b"}]
        assert dedupe_consecutive_user_messages(messages) == messages


class TestGeminiRequestBody:
    def test_single_turn(self):
        request = ChatRequest(prompt="Make a deck", model="m", system_prompt="SYS", max_tokens=100)

        prepared = build_request(backend(BackendType.GEMINI), request)

        assert not prepared.stream
        assert prepared.url.endswith("/models/test-model:generateContent")
        assert prepared.body["contents"] == [
            {
                "role": "user",
                "parts": [{"text": '"""\nSYSTEM PROMPT: SYS\n"""'}, {"text": "Make a deck"}],
            }
        ]
        assert prepared.body["generationConfig"] == {"temperature": 0.0, "maxOutputTokens": 100}

    def test_history_roles_and_system_part(self):
        request = ChatRequest(
            prompt="next",
            model="m",
            system_prompt="SYS",
            history=(HistoryMessage("user", "first"), HistoryMessage("assistant", "reply")),
            images=(ImageInput("QUJD", "image/png"),),
        )

        contents = build_request(backend(BackendType.GEMINI), request).body["contents"]

        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[0]["parts"][0]["text"].startswith('"""\nSYSTEM PROMPT: SYS')
        assert contents[0]["parts"][1] == {"text": "first"}
        assert contents[2]["parts"][1] == {
            "inline_data": {"mime_type": "image/png", "data": "QUJD"}
        }

    def test_history_starting_with_model_gets_system_turn(self):
        request = ChatRequest(
            prompt="",
            model="m",
            system_prompt="SYS",
            history=(HistoryMessage("assistant", "summary"), HistoryMessage("user", "data")),
        )

        contents = build_request(backend(BackendType.GEMINI), request).body["contents"]

        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert contents[-1]["parts"] == [{"text": "data"}]


class TestHttpErrors:
    @pytest.mark.parametrize(
        "status,message",
        [
            (401, "Invalid API key (401 Unauthorized)"),
            (403, "Access denied (403 Forbidden)"),
            (404, "Endpoint not found (404). Check your API URL."),
            (429, "Rate limited (429). Try again later."),
            (500, "Server error (500)"),
            (503, "Server error (503)"),
        ],
    )
    def test_status_table(self, status, message):
        error = describe_http_error(status)
        assert error.message == message
        assert error.status_code == status

    def test_retry_after_header(self):
        error = describe_http_error(429, "", {"Retry-After": "7"})
        assert error.message == "Rate limited (429). Try again in 7s."
        assert error.retry_after == 7

    def test_gemini_retry_info(self):
        body = json.dumps(
            {
                "error": {
                    "code": 429,
                    "details": [
                        {"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "12.3s"}
                    ],
                }
            }
        )
        assert describe_http_error(429, body).message == "Rate limited (429). Try again in 13s."

    def test_backend_message_for_other_status(self):
        body = json.dumps({"error": {"message": "model not supported"}})
        assert describe_http_error(400, body).message == "model not supported"

    def test_other_status_without_message(self):
        assert describe_http_error(400, "not json").message == CONNECTION_FAILED

    def test_network_failures(self):
        assert describe_exception(httpx.ConnectError("refused")).message == NETWORK_ERROR
        assert describe_exception(httpx.ReadTimeout("slow")).message == TIMEOUT_ERROR
        assert describe_exception(httpx.ConnectTimeout("slow")).message == TIMEOUT_ERROR
