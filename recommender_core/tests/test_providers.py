import json

import httpx
import pytest

from recommender_core.domain.exceptions import ApiError, ExternalServiceError, NetworkError
from recommender_core.domain.models import ChatMessage, ChatRequest
from recommender_core.providers import create_provider
from recommender_core.providers.openai_compat import OpenAICompatibleClient
from recommender_core.providers.registry import GROQ_CONFIG, get_provider_config
from recommender_core.tools.capabilities import default_tool_defs
from recommender_core.tools.definitions import ToolCall


def _install_client(monkeypatch, status_code=200, body=None, error=None, sent=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = json.dumps(body) if body is not None else ""

        def json(self):
            if body is None:
                raise ValueError("no json")
            return body

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None):
            if sent is not None:
                sent.update({"url": url, "json": json, "headers": headers})
            if error is not None:
                raise error
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)


def _req(**kw):
    return ChatRequest(
        provider="groq",
        model="recommender-chat",
        messages=[ChatMessage(role="user", content="hi")],
        **kw,
    )


def test_parse_tool_calls_keeps_raw_arguments(monkeypatch):
    body = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {"name": "search_products", "arguments": '{"query": "keyboard"}'},
                        }
                    ],
                },
                "finish_reason": "tool_calls",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }
    _install_client(monkeypatch, body=body)
    res = OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123").chat(_req())
    msg = res.choices[0].message
    assert msg.content == ""
    assert msg.tool_calls == [ToolCall(id="call_1", name="search_products", arguments='{"query": "keyboard"}')]
    assert res.usage.total_tokens == 15


def test_payload_contains_tools_and_tool_messages(monkeypatch):
    sent = {}
    _install_client(monkeypatch, body={"choices": [{"message": {"role": "assistant", "content": "ok"}}]}, sent=sent)
    call = ToolCall(id="call_1", name="search_stores", arguments='{"query": "books"}')
    req = ChatRequest(
        provider="groq",
        model="recommender-chat",
        messages=[
            ChatMessage(role="user", content="bookstores?"),
            ChatMessage(role="assistant", content="", tool_calls=[call]),
            ChatMessage(role="tool", content='{"storeIds": [5]}', tool_call_id="call_1", name="search_stores"),
        ],
        temperature=0.4,
        tools=default_tool_defs(),
    )
    OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123", base_url="http://llm.local/v1").chat(req)

    assert sent["url"] == "http://llm.local/v1/chat/completions"
    assert sent["headers"]["Authorization"] == "Bearer gsk_test_key_123"
    payload = sent["json"]
    assert payload["model"] == "llama-3.3-70b-versatile"
    assert payload["temperature"] == 0.4
    assert payload["tool_choice"] == "auto"
    assert payload["tools"][0]["function"]["name"] == "search_products"
    assistant, tool = payload["messages"][1], payload["messages"][2]
    assert "content" not in assistant
    assert assistant["tool_calls"][0]["function"]["arguments"] == '{"query": "books"}'
    assert tool == {"role": "tool", "content": '{"storeIds": [5]}', "tool_call_id": "call_1", "name": "search_stores"}


def test_http_error_carries_upstream_status(monkeypatch):
    _install_client(monkeypatch, status_code=400, body={"error": {"code": "tool_use_failed"}})
    with pytest.raises(ApiError) as exc:
        OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123").chat(_req())
    assert exc.value.upstream_status == 400
    assert "tool_use_failed" in exc.value.message


def test_network_error(monkeypatch):
    _install_client(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError):
        OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123").chat(_req())


def test_non_json_body(monkeypatch):
    _install_client(monkeypatch, body=None)
    with pytest.raises(ExternalServiceError):
        OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123").chat(_req())


@pytest.mark.parametrize(
    "body",
    [
        [1, 2],
        {"choices": "x"},
        {"choices": ["x"]},
        {"choices": [{"message": {"role": "assistant", "tool_calls": "oops"}}]},
        {"choices": [{"message": {"role": "assistant", "tool_calls": ["oops"]}}]},
    ],
)
def test_malformed_body_shape(monkeypatch, body):
    _install_client(monkeypatch, body=body)
    with pytest.raises(ExternalServiceError) as exc:
        OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123").chat(_req())
    assert exc.value.upstream_status == 200


def test_unknown_logical_model():
    req = ChatRequest(provider="groq", model="no-such-model", messages=[ChatMessage(role="user", content="hi")])
    with pytest.raises(ExternalServiceError) as exc:
        OpenAICompatibleClient(GROQ_CONFIG, api_key="gsk_test_key_123").chat(req)
    assert exc.value.code == "UNKNOWN_MODEL"


def test_missing_api_key():
    with pytest.raises(ExternalServiceError) as exc:
        OpenAICompatibleClient(GROQ_CONFIG, api_key=None).chat(_req())
    assert exc.value.code == "MISSING_API_KEY"


def test_registry_and_factory():
    assert get_provider_config("GROQ") is GROQ_CONFIG
    with pytest.raises(KeyError):
        get_provider_config("unknown")
    assert create_provider("groq").name == "groq"
    assert create_provider("openai").name == "openai"
