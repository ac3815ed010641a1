"""Delegation of an utterance to the external model.

The operations offered to the model are generated from the intent catalog,
so the deterministic and delegated paths share one source of truth.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import Any, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

from fiscal_assistant.config import settings
from fiscal_assistant.errors import ModelAdapterError
from fiscal_assistant.models.adapter import ChatMessage, ModelReply, get_openai

from .catalog import INTENT_CATALOG, RULES_BY_OPERATION, IntentRule, ParamSpec
from .types import IntentTag, Turn

CLARIFICATION_OPERATION = "ask_clarification"

_SYSTEM_PROMPT = (
    "Você é um assistente fiscal que ajuda empresas brasileiras (MEI e Simples "
    "Nacional) a emitir notas fiscais de serviço (NFS-e) e acompanhar suas "
    "obrigações fiscais. Responda em português do Brasil, de forma concisa.\n"
    "DATA ATUAL: {today}\n"
    "{company}"
    "REGRAS:\n"
    '- Valores: "R$ 1.500,00", "1500 reais" e "mil e quinhentos" valem 1500.00; "2k" vale 2000.00.\n'
    "- Clientes: use o nome citado; peça CPF/CNPJ quando não houver cadastro.\n"
    "- Períodos: hoje, ontem, semana, mes, mes_passado, ano.\n"
    "- Quando a intenção corresponder a uma das funções disponíveis, chame a função.\n"
    "- Se faltar informação essencial, chame ask_clarification.\n"
    "- Nunca mostre erros técnicos ao usuário."
)

_JSON_TYPES = {"string": str, "number": float, "integer": int}


class ChatAdapter(Protocol):
    def chat(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tools: list[dict[str, Any]] | None = None,
        timeout: float | None = None,
    ) -> tuple[ModelReply, dict[str, int]]: ...


@dataclass
class ModelProposal:
    """What the model asked for: an operation call, or plain text."""

    operation: str | None = None
    intent: IntentTag | None = None
    arguments: dict[str, Any] = field(default_factory=dict)
    text: str = ""
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def is_text(self) -> bool:
        return self.operation is None


def _param_schema(param: ParamSpec) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": param.type, "description": param.description}
    if param.enum:
        schema["enum"] = list(param.enum)
    return schema


def _tool(name: str, description: str, params: Sequence[ParamSpec]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": {p.name: _param_schema(p) for p in params},
                "required": [p.name for p in params if p.required],
            },
        },
    }


def build_tool_catalog(rules: Sequence[IntentRule] = INTENT_CATALOG) -> list[dict[str, Any]]:
    """OpenAI ``tools`` payload derived from the intent catalog."""
    tools = [
        _tool(rule.operation, rule.operation_description, rule.params)
        for rule in rules
        if rule.operation
    ]
    tools.append(
        {
            "type": "function",
            "function": {
                "name": CLARIFICATION_OPERATION,
                "description": "Pedir esclarecimento quando a intenção não está clara.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "missing_info": {
                            "type": "string",
                            "description": "O que está faltando ou não está claro",
                        },
                        "suggestions": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Sugestões do que o usuário pode querer",
                        },
                    },
                    "required": ["missing_info"],
                },
            },
        }
    )
    return tools


class _ClarificationArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    missing_info: str
    suggestions: list[str] = []


@lru_cache(maxsize=None)
def arguments_model(operation: str) -> type[BaseModel]:
    """Pydantic model validating the arguments of ``operation``."""
    if operation == CLARIFICATION_OPERATION:
        return _ClarificationArgs
    rule = RULES_BY_OPERATION[operation]
    fields: dict[str, Any] = {}
    for p in rule.params:
        py_type = _JSON_TYPES.get(p.type, str)
        if p.required:
            fields[p.name] = (py_type, ...)
        else:
            fields[p.name] = (py_type | None, None)
    return create_model(
        f"{operation.title().replace('_', '')}Args",
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


def build_messages(
    text: str,
    history: Sequence[Turn] = (),
    company_context: str = "",
    today: date | None = None,
) -> list[ChatMessage]:
    system = _SYSTEM_PROMPT.format(
        today=(today or date.today()).strftime("%d/%m/%Y"),
        company=f"{company_context}\n" if company_context else "",
    )
    messages = [ChatMessage(role="system", content=system)]
    for turn in list(history)[-settings.HISTORY_WINDOW :]:
        if turn.role in {"user", "assistant"} and turn.content:
            messages.append(ChatMessage(role=turn.role, content=turn.content))
    messages.append(ChatMessage(role="user", content=text))
    return messages


def parse_reply(reply: ModelReply) -> ModelProposal:
    """Turn a model reply into a proposal.

    Raises ``ModelAdapterError("malformed")`` for unknown operations and
    arguments that are not valid JSON or fail validation.
    """
    if not reply.tool_calls:
        if not reply.text:
            raise ModelAdapterError("malformed", "empty reply")
        return ModelProposal(text=reply.text)

    call = reply.tool_calls[0]
    if call.name != CLARIFICATION_OPERATION and call.name not in RULES_BY_OPERATION:
        raise ModelAdapterError("malformed", f"unknown operation {call.name!r}")
    try:
        raw_args = json.loads(call.arguments or "{}")
    except json.JSONDecodeError as exc:
        raise ModelAdapterError("malformed", "arguments are not JSON") from exc
    if not isinstance(raw_args, dict):
        raise ModelAdapterError("malformed", "arguments are not an object")
    try:
        args = arguments_model(call.name).model_validate(raw_args)
    except ValidationError as exc:
        raise ModelAdapterError("malformed", str(exc)) from exc

    rule = RULES_BY_OPERATION.get(call.name)
    return ModelProposal(
        operation=call.name,
        intent=rule.intent if rule else None,
        arguments=args.model_dump(exclude_none=True),
        text=reply.text,
    )


def propose(
    text: str,
    history: Sequence[Turn] = (),
    company_context: str = "",
    adapter: ChatAdapter | None = None,
    timeout: float | None = None,
) -> ModelProposal:
    """Ask the model what to do with ``text``.

    Transport and format problems raise ``ModelAdapterError``; a reply with
    no applicable operation comes back as a text-only proposal.
    """
    messages = build_messages(text, history, company_context)
    client = adapter or get_openai()
    reply, usage = client.chat(
        messages=messages,
        model=settings.LLM_MODEL,
        max_tokens=settings.MAX_OUTPUT_TOKENS,
        temperature=settings.TEMPERATURE,
        tools=build_tool_catalog(),
        timeout=timeout or settings.LLM_TIMEOUT_S,
    )
    proposal = parse_reply(reply)
    proposal.usage = usage
    return proposal
