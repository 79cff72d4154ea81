"""
Chat completion client for OpenAI-compatible endpoints.

The SDK is synchronous; calls are moved to a worker thread so a batch of
chunk analyses can be awaited together.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .errors import UpstreamApiError
from .keys import KeyPool, mask_key
from .settings import THINKING_TOKEN_BUDGET

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.artemox.com/v1"
DEFAULT_MODEL = "deepseek-reasoner"
DEFAULT_TIMEOUT = 60.0


@dataclass
class ChatRequest:
    """One model call."""
    operation: str
    user_prompt: str
    system_instruction: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 4096
    response_format: str = "json_object"
    thinking_budget: int = THINKING_TOKEN_BUDGET


@dataclass
class ChatResponse:
    """Normalized model answer."""
    content: str
    reasoning: str = ""
    usage: Optional[Dict[str, Any]] = None
    finish_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason is not None and self.finish_reason != "stop"


def estimate_tokens(text: str) -> int:
    """Rough token estimate, four characters per token."""
    return math.ceil(len(text or "") / 4)


def supports_thinking(model: str) -> bool:
    name = (model or "").lower()
    return "reasoner" in name or "r1" in name


class ChatClient:
    """
    Sends chat requests with a caller-supplied credential.

    Args:
        base_url: OpenAI-compatible API root
        model: model name sent with every request
        timeout: per-request timeout in seconds
        client_factory: builds an SDK client for (base_url, api_key, timeout)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self._client_factory = client_factory or self._default_factory
        self._client_cache: Dict[str, Any] = {}

    @staticmethod
    def _default_factory(base_url: str, api_key: str, timeout: float):
        # the pipeline owns retries
        return OpenAI(base_url=base_url, api_key=api_key, timeout=timeout, max_retries=0)

    def _client_for(self, credential: str):
        if credential not in self._client_cache:
            self._client_cache[credential] = self._client_factory(self.base_url, credential, self.timeout)
        return self._client_cache[credential]

    def build_params(self, request: ChatRequest) -> Dict[str, Any]:
        messages = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        messages.append({"role": "user", "content": request.user_prompt})

        params: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": False,
        }
        if request.response_format == "json_object":
            params["response_format"] = {"type": "json_object"}
        if supports_thinking(self.model) and request.thinking_budget:
            params["extra_body"] = {
                "thinking": {"type": "enabled", "budget_tokens": request.thinking_budget}
            }
        return params

    def send_sync(self, credential: str, request: ChatRequest) -> ChatResponse:
        """Blocking call. Raises UpstreamApiError on any transport or API failure."""
        client = self._client_for(credential)
        try:
            resp = client.chat.completions.create(**self.build_params(request))
        except APIStatusError as e:
            code = getattr(e, "code", None) or getattr(e, "type", None)
            message = getattr(e, "message", None) or f"API responded with status {e.status_code}"
            raise UpstreamApiError(message, status=e.status_code, code=code) from e
        except APITimeoutError as e:
            raise UpstreamApiError(f"Request timed out after {self.timeout}s", code="timeout") from e
        except APIConnectionError as e:
            raise UpstreamApiError(f"Network connection failed: {e}", code="connection_error") from e

        if not resp.choices:
            logger.warning(f"[CLIENT] {request.operation}: response without choices")
            return ChatResponse(content="")

        choice = resp.choices[0]
        message = choice.message
        usage = resp.usage.model_dump() if getattr(resp, "usage", None) is not None else None
        response = ChatResponse(
            content=(message.content or "") if message else "",
            reasoning=getattr(message, "reasoning_content", None) or "",
            usage=usage,
            finish_reason=choice.finish_reason,
        )
        log_token_usage(request, response, credential)
        return response

    async def send(self, credential: str, request: ChatRequest) -> ChatResponse:
        return await asyncio.to_thread(self.send_sync, credential, request)


def log_token_usage(request: ChatRequest, response: ChatResponse, credential: str = "") -> None:
    """Log reported token usage, or an estimate when the provider sends none."""
    usage = response.usage or {}
    prompt_tokens = usage.get("prompt_tokens")
    completion_tokens = usage.get("completion_tokens")
    if prompt_tokens is None:
        prompt_tokens = estimate_tokens((request.system_instruction or "") + request.user_prompt)
    if completion_tokens is None:
        completion_tokens = estimate_tokens(response.content)
    details = usage.get("completion_tokens_details") or {}
    reasoning_tokens = usage.get("reasoning_tokens") or details.get("reasoning_tokens") or 0
    who = f" via {mask_key(credential)}" if credential else ""
    logger.info(
        f"[TOKENS] {request.operation}{who}: in={prompt_tokens} out={completion_tokens} "
        f"reasoning={reasoning_tokens} finish={response.finish_reason}"
    )


class ModelGateway:
    """
    One credential draw plus one send.

    On UpstreamApiError the pool classifies the failure and the verdict is
    attached to the error as `retry_recommended` before it is re-raised.
    """

    def __init__(self, pool: KeyPool, client):
        self.pool = pool
        self.client = client

    async def request(self, request: ChatRequest) -> ChatResponse:
        key = self.pool.get_next_key()
        try:
            return await self.client.send(key, request)
        except UpstreamApiError as error:
            error.retry_recommended = self.pool.handle_upstream_error(key, error)
            raise
