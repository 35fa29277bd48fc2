# backend/services/model_client.py
"""
Model Client Service

Thin adapter over the OpenAI-compatible chat completions API (OpenAI or
OpenRouter via OPENAI_BASE_URL).

- open_stream(): streaming completion for coaching turns. Returns a
  ModelStream that yields text fragments and collects tool calls.
- complete_json(): one-shot JSON-mode completion for resume structuring.

Any SDK failure is re-raised as ModelServiceError.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from openai import AsyncOpenAI, OpenAIError

import config
from errors import ModelServiceError
from models import ChatMessage

logger = logging.getLogger(__name__)


MessageLike = Union[ChatMessage, Dict[str, str]]


class ModelStream:
    """
    Async iterator over the text fragments of one streamed completion.

    After iteration finishes:
    - final_text: full message content if the provider sent one outside the
      deltas ("" otherwise)
    - tool_calls: [{"name": str, "arguments": str}, ...] in call order
    """

    def __init__(self, raw_stream: Any):
        self._raw = raw_stream
        self._iterator = None
        self._tool_calls: Dict[int, Dict[str, str]] = {}
        self._closed = False
        self.final_text = ""

    def __aiter__(self) -> "ModelStream":
        return self

    async def __anext__(self) -> str:
        if self._iterator is None:
            self._iterator = self._raw.__aiter__()

        while True:
            try:
                chunk = await self._iterator.__anext__()
            except OpenAIError as e:
                logger.error(f"Model stream failed: {e}")
                raise ModelServiceError(str(e)) from e

            text = self._consume(chunk)
            if text:
                return text

    def _consume(self, chunk: Any) -> str:
        choices = getattr(chunk, "choices", None) or []
        if not choices:
            return ""
        choice = choices[0]

        # Some OpenAI-compatible providers put the whole message on the last chunk
        message = getattr(choice, "message", None)
        content = getattr(message, "content", None) if message is not None else None
        if isinstance(content, str) and content:
            self.final_text = content

        delta = getattr(choice, "delta", None)
        if delta is None:
            return ""

        for call in getattr(delta, "tool_calls", None) or []:
            entry = self._tool_calls.setdefault(call.index, {"name": "", "arguments": ""})
            function = getattr(call, "function", None)
            if function is None:
                continue
            if function.name:
                entry["name"] = entry["name"] or function.name
            if function.arguments:
                entry["arguments"] += function.arguments

        return delta.content or ""

    @property
    def tool_calls(self) -> List[Dict[str, str]]:
        return [self._tool_calls[idx] for idx in sorted(self._tool_calls)]

    async def aclose(self) -> None:
        """Release the upstream HTTP connection. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        close = getattr(self._raw, "close", None)
        if close is not None:
            await close()
        logger.debug("Model stream closed")


class ModelClient:
    """
    Wrapper around AsyncOpenAI. The SDK client is created on first use so the
    app can boot without credentials.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = config.CHAT_MODEL,
        temperature: float = config.CHAT_TEMPERATURE,
        client: Optional[AsyncOpenAI] = None
    ):
        self.api_key = api_key or config.OPENAI_API_KEY
        self.base_url = base_url or config.OPENAI_BASE_URL
        self.model = model
        self.temperature = temperature
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise ModelServiceError("OPENAI_API_KEY is not set")
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
            logger.info(f"Model client created (model={self.model}, base_url={self.base_url or 'default'})")
        return self._client

    @staticmethod
    def _to_payload(messages: Sequence[MessageLike]) -> List[Dict[str, str]]:
        payload = []
        for m in messages:
            if isinstance(m, ChatMessage):
                payload.append({"role": m.role, "content": m.content})
            else:
                payload.append({"role": m["role"], "content": m["content"]})
        return payload

    async def open_stream(
        self,
        instructions: str,
        messages: Sequence[MessageLike],
        tools: Optional[List[Dict[str, Any]]] = None
    ) -> ModelStream:
        """
        Start a streamed completion.

        Args:
            instructions: System prompt
            messages: Conversation, oldest first, ending with the user's turn
            tools: Optional function definitions

        Returns:
            ModelStream positioned before the first fragment

        Raises:
            ModelServiceError: connection, auth or request failure
        """
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [{"role": "system", "content": instructions}] + self._to_payload(messages),
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools

        logger.info(f"Opening model stream: {len(messages)} messages, tools={bool(tools)}")
        try:
            raw = await self.client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"Model request failed: {e}")
            raise ModelServiceError(str(e)) from e

        return ModelStream(raw)

    async def complete_json(self, system: str, user: str, model: Optional[str] = None) -> str:
        """
        One-shot completion in JSON mode. Returns the raw message content.

        Raises:
            ModelServiceError: on any SDK failure
        """
        try:
            resp = await self.client.chat.completions.create(
                model=model or self.model,
                temperature=0.1,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except OpenAIError as e:
            logger.error(f"JSON completion failed: {e}")
            raise ModelServiceError(str(e)) from e

        return resp.choices[0].message.content or ""


# Singleton instance for shared use
_model_client_instance: Optional[ModelClient] = None


def get_model_client() -> ModelClient:
    """Get or create the shared ModelClient."""
    global _model_client_instance

    if _model_client_instance is None:
        _model_client_instance = ModelClient()

    return _model_client_instance


def reset_model_client():
    """Reset the singleton instance (useful for testing)."""
    global _model_client_instance
    _model_client_instance = None
    logger.info("ModelClient singleton reset")
