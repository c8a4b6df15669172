from unittest.mock import MagicMock

import httpx
import openai
import pytest

from stock_news.errors import ProviderError, ResponseFormatError
from stock_news.llm import ChatClient, parse_json_response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_completion(content):
    """Mimics the shape of an OpenAI chat completion response."""
    completion = MagicMock()
    completion.choices = [MagicMock()]
    completion.choices[0].message.content = content
    return completion


def make_client(content='{"ok": true}', **kwargs) -> tuple:
    sdk = MagicMock()
    sdk.chat.completions.create.return_value = make_completion(content)
    return ChatClient("test-key", "test-model", client=sdk, **kwargs), sdk


OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


# ---------------------------------------------------------------------------
# parse_json_response
# ---------------------------------------------------------------------------

class TestParseJsonResponse:
    def test_parses_plain_json(self):
        assert parse_json_response('{"sentiment": "positive"}') == {"sentiment": "positive"}

    def test_strips_markdown_fences(self):
        assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_extracts_object_from_surrounding_prose(self):
        assert parse_json_response('Here you go: {"a": 1} Thanks!') == {"a": 1}

    def test_empty_content_raises(self):
        with pytest.raises(ResponseFormatError):
            parse_json_response("")

    def test_none_content_raises(self):
        with pytest.raises(ResponseFormatError):
            parse_json_response(None)

    def test_no_object_raises(self):
        with pytest.raises(ResponseFormatError):
            parse_json_response("I cannot help with that")

    def test_invalid_json_raises(self):
        with pytest.raises(ResponseFormatError):
            parse_json_response('{"a": 1,,}')

    def test_response_format_error_is_a_provider_error(self):
        with pytest.raises(ProviderError):
            parse_json_response("nope")


# ---------------------------------------------------------------------------
# ChatClient.complete_json
# ---------------------------------------------------------------------------

class TestChatClient:
    def test_returns_parsed_json(self):
        client, _ = make_client('{"weights": []}')
        assert client.complete_json("system", "prompt") == {"weights": []}

    def test_requests_json_object_format(self):
        client, sdk = make_client()
        client.complete_json("system", "prompt")

        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["messages"][1] == {"role": "user", "content": "prompt"}

    def test_temperature_override(self):
        client, sdk = make_client(temperature=0.3)
        client.complete_json("s", "p", temperature=0.7)
        assert sdk.chat.completions.create.call_args.kwargs["temperature"] == 0.7

    def test_max_tokens_only_sent_when_given(self):
        client, sdk = make_client()
        client.complete_json("s", "p")
        assert "max_tokens" not in sdk.chat.completions.create.call_args.kwargs

        client.complete_json("s", "p", max_tokens=200)
        assert sdk.chat.completions.create.call_args.kwargs["max_tokens"] == 200

    def test_timeout_becomes_provider_error(self):
        client, sdk = make_client()
        sdk.chat.completions.create.side_effect = openai.APITimeoutError(request=OPENAI_REQUEST)

        with pytest.raises(ProviderError) as exc_info:
            client.complete_json("s", "p")
        assert exc_info.value.provider == "openai"

    def test_connection_error_becomes_provider_error(self):
        client, sdk = make_client()
        sdk.chat.completions.create.side_effect = openai.APIConnectionError(request=OPENAI_REQUEST)

        with pytest.raises(ProviderError):
            client.complete_json("s", "p")

    def test_malformed_content_raises_format_error(self):
        client, _ = make_client("not json at all")
        with pytest.raises(ResponseFormatError):
            client.complete_json("s", "p")

    def test_no_choices_raises_format_error(self):
        client, sdk = make_client()
        sdk.chat.completions.create.return_value = MagicMock(choices=[])
        with pytest.raises(ResponseFormatError):
            client.complete_json("s", "p")

    def test_missing_api_key_raises_provider_error(self):
        client = ChatClient(None, "test-model")
        with pytest.raises(ProviderError):
            client.complete_json("s", "p")

    def test_sdk_client_has_retries_disabled(self):
        client = ChatClient("test-key", "test-model")
        assert client._get_client().max_retries == 0

    def test_failing_call_hits_the_api_once(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

        sdk = ChatClient("test-key", "test-model")._get_client().with_options(
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        client = ChatClient("test-key", "test-model", client=sdk)

        with pytest.raises(ProviderError) as exc_info:
            client.complete_json("s", "p")

        assert calls == ["/v1/chat/completions"]
        assert exc_info.value.status_code == 429

    def test_limiter_acquired_before_each_call(self):
        limiter = MagicMock()
        client, sdk = make_client(limiter=limiter)
        client.complete_json("s", "p")
        client.complete_json("s", "p")
        assert limiter.acquire.call_count == 2

    def test_close_closes_sdk_client(self):
        client, sdk = make_client()
        client.close()
        sdk.close.assert_called_once()
