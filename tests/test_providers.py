"""
Unit Tests for provider clients

Wire format and reply extraction per provider, exercised against
httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from dispatch.errors import ProviderUnconfigured, TransportError
from dispatch.providers import (
    ChatTurn,
    GeminiClient,
    GroqClient,
    OpenAIClient,
    OpenRouterClient,
    ProviderSpec,
    create_client,
    to_gemini_schema,
)

SCHEMA = {
    "type": "object",
    "properties": {"title": {"type": "string"}, "items": {"type": "array", "items": {"type": "number"}}},
    "required": ["title"],
}


class Recorder:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, status: int = 200, payload=None, text: str = None):
        self.status = status
        self.payload = payload
        self.text = text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.payload)

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


def run_generate(client_cls, handler, spec=None, **kwargs):
    spec = spec or ProviderSpec(name=client_cls.BINDING, credential="key-123", model="model-x")

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = client_cls(spec, http_client=http)
            return await client.generate(**kwargs)

    return asyncio.run(go())


def gemini_reply(*texts):
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


def chat_reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestGeminiClient:
    """Tests for the Gemini wire format."""

    def test_generate_when_schema_given_then_sent_natively(self):
        handler = Recorder(payload=gemini_reply('{"title": "x"}'))

        text = run_generate(GeminiClient, handler, prompt="Make a test", schema=SCHEMA)

        request = handler.requests[0]
        assert text == '{"title": "x"}'
        assert request.url.path.endswith("/models/model-x:generateContent")
        assert request.headers["x-goog-api-key"] == "key-123"
        config = handler.body["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"]["type"] == "OBJECT"
        assert config["responseSchema"]["properties"]["items"]["items"]["type"] == "NUMBER"
        assert handler.body["contents"][-1] == {"role": "user", "parts": [{"text": "Make a test"}]}

    def test_generate_when_system_and_history_then_mapped(self):
        handler = Recorder(payload=gemini_reply("Sure!"))
        history = [ChatTurn("user", "hi"), ChatTurn("model", "hello")]

        run_generate(GeminiClient, handler, prompt="explain", system_prompt="Be kind.", history=history)

        body = handler.body
        assert body["systemInstruction"] == {"parts": [{"text": "Be kind."}]}
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]

    def test_generate_when_extra_config_then_merged_into_generation_config(self):
        handler = Recorder(payload=gemini_reply("{}"))

        run_generate(
            GeminiClient,
            handler,
            prompt="p",
            schema=SCHEMA,
            model="gemini-2.5-pro",
            extra_config={"thinkingConfig": {"thinkingBudget": 8192}},
        )

        assert handler.requests[0].url.path.endswith("/models/gemini-2.5-pro:generateContent")
        assert handler.body["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 8192}

    def test_generate_when_multiple_parts_then_joined(self):
        handler = Recorder(payload=gemini_reply('{"a":', " 1}"))
        assert run_generate(GeminiClient, handler, prompt="p") == '{"a": 1}'

    def test_generate_when_no_candidates_then_transport_error(self):
        handler = Recorder(payload={"promptFeedback": {"blockReason": "SAFETY"}})
        with pytest.raises(TransportError, match="SAFETY"):
            run_generate(GeminiClient, handler, prompt="p")

    def test_generate_when_null_text_part_then_skipped(self):
        handler = Recorder(payload={"candidates": [{"content": {"parts": [{"text": None}, {"text": "ok"}]}}]})
        assert run_generate(GeminiClient, handler, prompt="p") == "ok"

    @pytest.mark.parametrize(
        "payload",
        [
            {"candidates": ["not an object"]},
            {"candidates": [{"content": "text"}]},
            {"candidates": [{"content": {"parts": [{"text": None}]}}]},
            {"candidates": {"0": {}}},
        ],
    )
    def test_generate_when_reply_malformed_then_transport_error(self, payload):
        with pytest.raises(TransportError):
            run_generate(GeminiClient, Recorder(payload=payload), prompt="p")

    def test_to_gemini_schema_when_nested_then_all_types_upper(self):
        converted = to_gemini_schema(SCHEMA)
        assert converted["type"] == "OBJECT"
        assert converted["properties"]["title"]["type"] == "STRING"
        assert converted["required"] == ["title"]


class TestOpenAICompatibleClients:
    """Tests for Groq, OpenAI and OpenRouter."""

    @pytest.mark.parametrize(
        "client_cls,host",
        [(GroqClient, "api.groq.com"), (OpenAIClient, "api.openai.com"), (OpenRouterClient, "openrouter.ai")],
    )
    def test_generate_when_schema_given_then_prompt_suffix_and_json_mode(self, client_cls, host):
        handler = Recorder(payload=chat_reply('{"title": "x"}'))

        text = run_generate(client_cls, handler, prompt="Make a test", schema=SCHEMA)

        request = handler.requests[0]
        assert text == '{"title": "x"}'
        assert request.url.host == host
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["authorization"] == "Bearer key-123"
        body = handler.body
        assert body["model"] == "model-x"
        assert body["response_format"] == {"type": "json_object"}
        prompt = body["messages"][-1]["content"]
        assert prompt.startswith("Make a test")
        assert "raw JSON object" in prompt
        assert json.dumps(SCHEMA) in prompt

    def test_generate_when_no_schema_then_plain_prompt(self):
        handler = Recorder(payload=chat_reply("Hello"))

        run_generate(GroqClient, handler, prompt="Say hi")

        assert "response_format" not in handler.body
        assert handler.body["messages"] == [{"role": "user", "content": "Say hi"}]

    def test_generate_when_history_then_model_maps_to_assistant(self):
        handler = Recorder(payload=chat_reply("ok"))
        history = [ChatTurn.from_dict({"role": "user", "parts": [{"text": "q"}]}), ChatTurn("model", "a")]

        run_generate(OpenAIClient, handler, prompt="next", system_prompt="Tutor", history=history)

        assert [m["role"] for m in handler.body["messages"]] == ["system", "user", "assistant", "user"]

    def test_generate_when_openrouter_then_attribution_headers(self):
        handler = Recorder(payload=chat_reply("ok"))
        run_generate(OpenRouterClient, handler, prompt="p")
        assert handler.requests[0].headers["x-title"] == "SmarTest"

    def test_generate_when_empty_choices_then_transport_error(self):
        handler = Recorder(payload={"choices": []})
        with pytest.raises(TransportError, match="no choices"):
            run_generate(GroqClient, handler, prompt="p")

    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": ["not an object"]},
            {"choices": [{"message": "hello"}]},
            {"choices": [{"message": {"content": None}}]},
            {"choices": [{"message": {"content": ["a", "b"]}}]},
        ],
    )
    def test_generate_when_reply_malformed_then_transport_error(self, payload):
        with pytest.raises(TransportError):
            run_generate(OpenAIClient, Recorder(payload=payload), prompt="p")


class TestTransportFailures:
    """Tests for failure mapping shared by all clients."""

    def test_generate_when_non_2xx_then_status_and_body_kept(self):
        handler = Recorder(status=503, text="overloaded")

        with pytest.raises(TransportError) as exc_info:
            run_generate(OpenAIClient, handler, prompt="p")

        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "overloaded"
        assert exc_info.value.retryable is True

    def test_generate_when_401_then_not_retryable(self):
        handler = Recorder(status=401, payload={"error": "bad key"})
        with pytest.raises(TransportError) as exc_info:
            run_generate(GroqClient, handler, prompt="p")
        assert exc_info.value.retryable is False

    def test_generate_when_non_json_body_then_transport_error(self):
        handler = Recorder(status=200, text="<html>gateway</html>")
        with pytest.raises(TransportError, match="non-JSON"):
            run_generate(GeminiClient, handler, prompt="p")

    def test_generate_when_connection_fails_then_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError, match="connection error"):
            run_generate(GroqClient, handler, prompt="p")

    def test_generate_when_no_credential_then_unconfigured(self):
        handler = Recorder(payload=chat_reply("never"))
        spec = ProviderSpec(name="groq", credential="", model="m")

        with pytest.raises(ProviderUnconfigured):
            run_generate(GroqClient, handler, spec=spec, prompt="p")

        assert handler.requests == []


class TestFactory:
    def test_create_client_when_known_name_then_specific_class(self):
        assert isinstance(create_client(ProviderSpec(name="gemini")), GeminiClient)
        assert isinstance(create_client(ProviderSpec(name="openrouter")), OpenRouterClient)

    def test_chat_turn_when_assistant_role_then_model(self):
        assert ChatTurn.from_dict({"role": "assistant", "content": "x"}) == ChatTurn("model", "x")
