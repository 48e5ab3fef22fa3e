# tests/unit/test_llm_client.py
"""
Transport tests: the OpenAI SDK is replaced by a stub exposing
`responses.create(**kwargs)`, so nothing leaves the process.
"""

import httpx
import openai
import pytest

from usecase_registry.config import DEFAULT_MODEL
from usecase_registry.llm_client import (
    ModelCallError,
    ModelFactory,
    ResponsesClient,
    extract_output_text,
)
from usecase_registry.turn_orchestrator import TurnOrchestrator

_REQ = httpx.Request("POST", "https://api.openai.com/v1/responses")


class _FakeResponse:
    def __init__(self, data, output_text=None):
        self._data = data
        self.output_text = output_text

    def model_dump(self):
        return dict(self._data)


class _FakeResponses:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


class _FakeOpenAI:
    def __init__(self, result=None, error=None):
        self.responses = _FakeResponses(result=result, error=error)


@pytest.fixture(autouse=True)
def _clean_model_env(monkeypatch):
    monkeypatch.delenv("OPENAI_MODEL", raising=False)


# ----------------------------- text recovery -----------------------------

def test_extract_output_text_prefers_output_text():
    assert extract_output_text({"output_text": "hello", "output": []}) == "hello"


def test_extract_output_text_from_output_items():
    data = {
        "output": [
            {"type": "reasoning", "summary": []},
            {"content": [{"type": "output_text", "text": "part one"}, {"text": {"value": "part two"}}]},
        ]
    }
    assert extract_output_text(data) == "part one\npart two"


def test_extract_output_text_from_chat_choices():
    assert extract_output_text({"choices": [{"message": {"content": "chat reply"}}]}) == "chat reply"
    data = {"choices": [{"message": {"content": [{"text": "a"}, {"text": "b"}]}}]}
    assert extract_output_text(data) == "a\nb"


@pytest.mark.parametrize("data", [None, "text", {}, {"output": "nope"}, {"choices": []}])
def test_extract_output_text_unknown_shapes_are_empty(data):
    assert extract_output_text(data) == ""


# ----------------------------- ResponsesClient -----------------------------

def test_complete_sends_deterministic_request():
    data = {"output_text": "ok", "usage": {"input_tokens": 10, "output_tokens": 5}}
    fake = _FakeOpenAI(result=_FakeResponse(data, output_text="ok"))
    client = ResponsesClient(fake)

    reply = client.complete("PROMPT")

    assert fake.responses.kwargs == {
        "model": DEFAULT_MODEL,
        "input": "PROMPT",
        "temperature": 0,
        "store": False,
    }
    assert reply.text == "ok"
    assert reply.model == DEFAULT_MODEL
    assert reply.tokens == {"in": 10, "out": 5}


def test_complete_model_override_and_env_model(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "gpt-env")
    fake = _FakeOpenAI(result=_FakeResponse({"output_text": "x"}, output_text="x"))
    client = ResponsesClient(fake)
    assert client.model_name == "gpt-env"

    client.complete("p", model_name="gpt-turn")
    assert fake.responses.kwargs["model"] == "gpt-turn"


def test_complete_falls_back_to_output_items_when_output_text_blank():
    data = {"output": [{"content": [{"text": "from items"}]}]}
    fake = _FakeOpenAI(result=_FakeResponse(data, output_text=""))
    assert ResponsesClient(fake).complete("p").text == "from items"


@pytest.mark.parametrize(
    "error, kind, status",
    [
        (openai.APITimeoutError(request=_REQ), "timeout", None),
        (openai.APIConnectionError(request=_REQ), "connection", None),
        (
            openai.APIStatusError("rate limited", response=httpx.Response(429, request=_REQ), body=None),
            "http",
            429,
        ),
    ],
)
def test_sdk_errors_become_model_call_errors(error, kind, status):
    client = ResponsesClient(_FakeOpenAI(error=error))
    with pytest.raises(ModelCallError) as ei:
        client.complete("p")
    assert ei.value.kind == kind
    assert ei.value.status == status


def test_http_error_message_names_upstream():
    err = openai.APIStatusError("server exploded", response=httpx.Response(500, request=_REQ), body=None)
    with pytest.raises(ModelCallError) as ei:
        ResponsesClient(_FakeOpenAI(error=err)).complete("p")
    assert str(ei.value).startswith("OpenAI error:")


def test_missing_api_key_is_a_config_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ModelCallError) as ei:
        ResponsesClient()
    assert ei.value.kind == "config"


def test_orchestrator_surfaces_missing_key_as_500(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    ModelFactory.get.cache_clear()
    res = TurnOrchestrator().handle_turn("hello")
    assert res.ok is False
    assert res.status == 500
    assert res.error["code"] == "CONFIG_MISSING"
