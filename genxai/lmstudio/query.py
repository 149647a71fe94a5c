from __future__ import annotations

import base64
import logging
import mimetypes
from pathlib import Path
from typing import Any, Sequence

from genxai.audit.ledger import AuditLedger
from genxai.config import Settings, load_settings
from genxai.errors import GenXAIError, ServiceError
from genxai.tools.definitions import function_definitions_for_api
from genxai.tools.dispatch import ConfirmFn, invoke_command_from_tool_call
from genxai.tools.model import ExposedCmdlet
from genxai.tools.policy import RateLimiter

from .client import LMStudioClient

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS = "You are a helpful assistant."


def image_data_url(path: str | Path) -> str:
    path_obj = Path(path).expanduser()
    if not path_obj.is_file():
        raise FileNotFoundError(f"Attachment not found: {path_obj}")
    mime = mimetypes.guess_type(path_obj.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path_obj.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def build_messages(query: str, instructions: str = "", attachments: Sequence[str | Path] = ()) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": instructions or DEFAULT_INSTRUCTIONS}]
    if not attachments:
        messages.append({"role": "user", "content": query})
        return messages

    content: list[dict[str, Any]] = [{"type": "text", "text": query}]
    for attachment in attachments:
        content.append({"type": "image_url", "image_url": {"url": image_data_url(attachment)}})
    messages.append({"role": "user", "content": content})
    return messages


def _first_message(response: dict[str, Any]) -> dict[str, Any]:
    choices = response.get("choices") or []
    if not choices:
        raise ServiceError(LMStudioClient.service_name, "response contained no choices")
    return choices[0].get("message") or {}


def invoke_llm_query(
    query: str,
    instructions: str = "",
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    attachments: Sequence[str | Path] = (),
    functions: list[dict[str, Any]] | None = None,
    exposed: list[ExposedCmdlet] | None = None,
    confirm: ConfirmFn | None = None,
    max_tool_rounds: int = 8,
    client: LMStudioClient | None = None,
    settings: Settings | None = None,
    ledger: AuditLedger | None = None,
    rate_limiter: RateLimiter | None = None,
) -> str:
    settings = settings or load_settings()
    client = client or LMStudioClient.from_settings(settings)
    model = model if model is not None else settings.lmstudio.model
    temperature = temperature if temperature is not None else settings.lmstudio.temperature
    max_tokens = max_tokens if max_tokens is not None else settings.lmstudio.max_tokens

    functions = functions or []
    exposed = exposed or []
    tools = function_definitions_for_api(functions) if functions else None
    messages = build_messages(query, instructions, attachments)

    rounds = 0
    while True:
        response = client.chat(messages, model=model, temperature=temperature, max_tokens=max_tokens, tools=tools)
        message = _first_message(response)
        tool_calls = message.get("tool_calls") or []
        if not tool_calls:
            return str(message.get("content") or "").strip()

        rounds += 1
        if rounds > max_tool_rounds:
            raise GenXAIError(f"LLM requested more than {max_tool_rounds} rounds of tool calls")

        messages.append({"role": "assistant", "content": message.get("content") or "", "tool_calls": tool_calls})
        for tool_call in tool_calls:
            result = invoke_command_from_tool_call(
                tool_call,
                functions,
                exposed,
                confirm=confirm,
                rate_limiter=rate_limiter,
                ledger=ledger,
            )
            if result.command_exposed:
                content = result.output or ""
            else:
                content = f"Tool call rejected: {result.reason}"
            logger.debug("Tool call %s -> %s", result.name, content[:200])
            messages.append({"role": "tool", "tool_call_id": tool_call.get("id", ""), "content": content})
