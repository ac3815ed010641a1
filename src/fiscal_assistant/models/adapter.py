"""Thin OpenAI chat-completions adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from openai import APITimeoutError, OpenAI, OpenAIError

from fiscal_assistant.config import settings
from fiscal_assistant.errors import ModelAdapterError


@dataclass
class ChatMessage:
    role: str  # "system"|"user"|"assistant"
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ToolCall:
    name: str
    arguments: str  # raw JSON text as produced by the model


@dataclass
class ModelReply:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


def _usage(resp: Any) -> dict[str, int]:
    usage = getattr(resp, "usage", None)
    if usage is None:
        return {}
    return {
        "prompt_tokens": int(getattr(usage, "prompt_tokens", 0) or 0),
        "completion_tokens": int(getattr(usage, "completion_tokens", 0) or 0),
        "total_tokens": int(getattr(usage, "total_tokens", 0) or 0),
    }


class OpenAIAdapter:
    def __init__(self, client: OpenAI) -> None:
        self.client = client

    def _create(self, **kwargs: Any) -> Any:
        try:
            return self.client.chat.completions.create(**kwargs)
        except APITimeoutError as exc:
            raise ModelAdapterError("timeout", str(exc)) from exc
        except OpenAIError as exc:
            raise ModelAdapterError("transport", str(exc)) from exc

    def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tools: list[dict[str, Any]] | None = None,
        timeout: float | None = None,
    ) -> tuple[ModelReply, dict[str, int]]:
        kwargs: dict[str, Any] = {
            "model": model or settings.LLM_MODEL,
            "messages": [m.as_dict() for m in messages],
            "max_tokens": max_tokens or settings.MAX_OUTPUT_TOKENS,
            "temperature": settings.TEMPERATURE if temperature is None else temperature,
            "timeout": timeout or settings.LLM_TIMEOUT_S,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        resp = self._create(**kwargs)

        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise ModelAdapterError("malformed", "reply without choices")
        message = choices[0].message
        calls = [
            ToolCall(name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (getattr(message, "tool_calls", None) or [])
        ]
        return ModelReply(text=(message.content or "").strip(), tool_calls=calls), _usage(resp)


@dataclass
class _ClientCache:
    adapter: OpenAIAdapter | None = None


_CLIENT_CACHE = _ClientCache()


def get_openai() -> OpenAIAdapter:
    if not settings.OPENAI_API_KEY:
        raise ModelAdapterError("not_configured", "OPENAI_API_KEY is not set")
    if _CLIENT_CACHE.adapter is None:
        base_url = settings.OPENAI_BASE_URL or "https://api.openai.com/v1"
        _CLIENT_CACHE.adapter = OpenAIAdapter(
            OpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=base_url,
                organization=settings.OPENAI_ORG,
            )
        )
    return _CLIENT_CACHE.adapter
