import json
import logging
import re
from typing import Optional

from openai import OpenAI, OpenAIError

from stock_news.errors import ProviderError, ResponseFormatError
from stock_news.ratelimit import TokenBucket

logger = logging.getLogger(__name__)

PROVIDER = "openai"


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_json_response(content: Optional[str]) -> dict:
    """
    Parse the JSON object out of a chat completion.

    Tolerates markdown code fences and leading/trailing prose around the object.
    Raises ResponseFormatError if no JSON object can be recovered.
    """
    if not content or not content.strip():
        raise ResponseFormatError(PROVIDER, "empty response")

    text = content.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text)

    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        raise ResponseFormatError(PROVIDER, "no JSON object found in response")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ResponseFormatError(PROVIDER, f"invalid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ResponseFormatError(PROVIDER, "response is not a JSON object")
    return parsed


# ---------------------------------------------------------------------------
# Chat client
# ---------------------------------------------------------------------------

class ChatClient:
    """
    Thin wrapper around the OpenAI chat-completions API that always asks for a
    JSON object back.

    The SDK client is created on first use so the service can start without a key;
    calls made without one raise ProviderError. The SDK's built-in retries are
    disabled, so a failed call raises on the first attempt. An optional TokenBucket
    throttles every call made through this client.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        temperature: float = 0.3,
        limiter: Optional[TokenBucket] = None,
        client=None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.limiter = limiter
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise ProviderError(PROVIDER, "OPENAI_API_KEY is not configured")
            self._client = OpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    def complete_json(
        self,
        system: str,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> dict:
        """
        Send a system + user message pair and return the parsed JSON object.

        Raises:
            ProviderError: the API call failed (HTTP error, timeout, no key)
            ResponseFormatError: the reply was not a JSON object
        """
        client = self._get_client()

        if self.limiter is not None:
            self.limiter.acquire()

        kwargs = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature if temperature is None else temperature,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.info(f"Calling OpenAI with model={self.model}")
        try:
            response = client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            status = getattr(e, "status_code", None)
            logger.error(f"OpenAI request failed: {e}")
            raise ProviderError(PROVIDER, str(e), status_code=status) from e

        if not response.choices:
            raise ResponseFormatError(PROVIDER, "response contained no choices")

        return parse_json_response(response.choices[0].message.content)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
