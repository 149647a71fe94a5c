from __future__ import annotations

import dataclasses
import inspect
import json
import logging
from pathlib import Path
from typing import Any, Callable

from genxai.audit.ledger import AuditLedger

from .model import ExposedCmdlet, ExposedToolCallInvocationResult
from .policy import RateLimiter, param_allowed

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[ExposedCmdlet, dict[str, Any]], bool]


def _parse_arguments(raw: Any) -> dict[str, Any] | None:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _find_function(functions: list[dict[str, Any]], name: str) -> dict[str, Any] | None:
    for item in functions:
        function = item.get("function", item)
        if function.get("name") == name:
            return function
    return None


def _accepted_params(callback: Callable) -> set[str] | None:
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        return None
    names: set[str] = set()
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            return None
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        names.add(param.name)
    return names


def filter_arguments(unfiltered: dict[str, Any], cmdlet: ExposedCmdlet, callback: Callable) -> dict[str, Any]:
    accepted = _accepted_params(callback)
    filtered: dict[str, Any] = {}
    for key, value in unfiltered.items():
        if key in cmdlet.forced_params:
            logger.debug("Ignoring LLM value for forced parameter %s", key)
            continue
        if not param_allowed(key, cmdlet.allowed_params):
            logger.debug("Dropping parameter %s: not allowed for %s", key, cmdlet.name)
            continue
        if accepted is not None and key not in accepted:
            logger.debug("Dropping parameter %s: not accepted by %s", key, cmdlet.name)
            continue
        filtered[key] = value
    filtered.update(cmdlet.forced_params)
    return filtered


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, tuple)):
        return list(value)
    return str(value)


def format_output(value: Any, as_text: bool) -> str:
    if as_text:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (list, tuple)):
            return "\n".join(str(item) for item in value)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return json.dumps(dataclasses.asdict(value), default=_jsonable)
        return str(value)
    return json.dumps(value, default=_jsonable)


def confirmation_view(cmdlet: ExposedCmdlet, arguments: dict[str, Any]) -> dict[str, Any]:
    hidden = {name.lower() for name in cmdlet.dont_show_during_confirmation}
    return {k: v for k, v in arguments.items() if k.lower() not in hidden}


def _record(ledger: AuditLedger | None, result: ExposedToolCallInvocationResult) -> None:
    if ledger is not None:
        ledger.record_tool_call(result)


def invoke_command_from_tool_call(
    tool_call: dict[str, Any],
    functions: list[dict[str, Any]],
    exposed: list[ExposedCmdlet],
    force_as_text: bool = False,
    confirm: ConfirmFn | None = None,
    rate_limiter: RateLimiter | None = None,
    ledger: AuditLedger | None = None,
) -> ExposedToolCallInvocationResult:
    call = tool_call.get("function", {}) or {}
    name = str(call.get("name", ""))
    call_id = str(tool_call.get("id", ""))

    def blocked(reason: str, rule_id: str, **extra: Any) -> ExposedToolCallInvocationResult:
        logger.info("Tool call %s blocked: %s", name or "<unnamed>", reason)
        result = ExposedToolCallInvocationResult(
            command_exposed=False,
            reason=reason,
            output=None,
            rule_id=rule_id,
            tool_call_id=call_id,
            name=name,
            **extra,
        )
        _record(ledger, result)
        return result

    unfiltered = _parse_arguments(call.get("arguments"))
    if unfiltered is None:
        return blocked("Invalid arguments", "tool_bad_arguments")

    function = _find_function(functions, name)
    if function is None:
        return blocked("Function not found", "tool_not_found", unfiltered_arguments=unfiltered)

    cmdlet = next((item for item in exposed if item.name == name), None)
    if cmdlet is None:
        return blocked("Command not exposed", "tool_not_exposed", unfiltered_arguments=unfiltered)

    callback = function.get("callback")
    if not callable(callback):
        return blocked("Function has no callback", "tool_no_callback", unfiltered_arguments=unfiltered, exposed_cmdlet=cmdlet)

    if rate_limiter is not None:
        decision = rate_limiter.check(name)
        if not decision.allowed:
            return blocked(
                decision.reason,
                decision.rule_id,
                unfiltered_arguments=unfiltered,
                exposed_cmdlet=cmdlet,
            )

    filtered = filter_arguments(unfiltered, cmdlet, callback)

    if cmdlet.confirm:
        if confirm is None:
            return blocked(
                "Confirmation required but no confirmation handler available",
                "tool_confirm_unavailable",
                filtered_arguments=filtered,
                unfiltered_arguments=unfiltered,
                exposed_cmdlet=cmdlet,
            )
        if not confirm(cmdlet, confirmation_view(cmdlet, filtered)):
            return blocked(
                "User declined execution",
                "tool_user_declined",
                filtered_arguments=filtered,
                unfiltered_arguments=unfiltered,
                exposed_cmdlet=cmdlet,
            )

    logger.debug("Invoking %s with %s", name, filtered)
    error: str | None = None
    try:
        value = callback(**filtered)
        output = format_output(value, as_text=cmdlet.output_text or force_as_text)
    except Exception as exc:  # the LLM receives the failure as the tool output
        logger.warning("Tool call %s failed: %s", name, exc)
        error = f"{type(exc).__name__}: {exc}"
        output = f"Error: {exc}"

    result = ExposedToolCallInvocationResult(
        command_exposed=True,
        reason=None,
        output=output,
        filtered_arguments=filtered,
        unfiltered_arguments=unfiltered,
        exposed_cmdlet=cmdlet,
        error=error,
        rule_id="tool_allow",
        tool_call_id=call_id,
        name=name,
    )
    _record(ledger, result)
    return result
