from __future__ import annotations

import inspect
import logging
import types
import typing
from typing import Any, Callable, Iterable, Mapping

from genxai.errors import ToolDefinitionError

from .model import ExposedCmdlet
from .policy import param_allowed

logger = logging.getLogger(__name__)

_LLM_TYPES: dict[Any, str] = {
    bool: "boolean",
    str: "string",
    int: "number",
    float: "number",
}


def python_type_to_llm_type(annotation: Any) -> str:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        candidates = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(candidates) == 1:
            return python_type_to_llm_type(candidates[0])
        return "object"
    if origin is typing.Literal:
        values = typing.get_args(annotation)
        if values and all(isinstance(v, str) for v in values):
            return "string"
        return "object"
    result = _LLM_TYPES.get(annotation, "object")
    logger.debug("Converted %r to LLM type %s", annotation, result)
    return result


def _literal_choices(annotation: Any) -> list[str]:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        for arg in typing.get_args(annotation):
            choices = _literal_choices(arg)
            if choices:
                return choices
        return []
    if origin is typing.Literal:
        return [v for v in typing.get_args(annotation) if isinstance(v, str)]
    return []


def _param_docs(doc: str) -> dict[str, str]:
    out: dict[str, str] = {}
    in_args = False
    for raw in doc.splitlines():
        line = raw.strip()
        if line in {"Args:", "Arguments:", "Parameters:"}:
            in_args = True
            continue
        if not in_args:
            continue
        if not line:
            break
        name, sep, text = line.partition(":")
        if sep and name.strip().isidentifier():
            out[name.strip()] = text.strip()
    return out


def _summary(doc: str, fallback: str) -> str:
    for line in doc.strip().splitlines():
        if line.strip():
            return line.strip()
    return fallback


def _as_named(callables: Iterable[Callable] | Mapping[str, Callable]) -> list[tuple[str, Callable]]:
    if isinstance(callables, Mapping):
        return list(callables.items())
    return [(getattr(fn, "__name__", str(fn)), fn) for fn in callables]


def convert_to_function_definition(
    callables: Iterable[Callable] | Mapping[str, Callable],
    exposed: list[ExposedCmdlet],
) -> list[dict[str, Any]]:
    exposed_by_name = {cmdlet.name: cmdlet for cmdlet in exposed}
    functions: list[dict[str, Any]] = []

    for name, fn in _as_named(callables):
        cmdlet = exposed_by_name.get(name)
        if cmdlet is None:
            logger.debug("Skipping %s: not exposed", name)
            continue
        if not callable(fn):
            raise ToolDefinitionError(f"Exposed command is not callable: {name}")

        try:
            signature = inspect.signature(fn)
            hints = typing.get_type_hints(fn)
        except (TypeError, ValueError, NameError) as exc:
            raise ToolDefinitionError(f"Cannot inspect command {name}: {exc}") from exc

        doc = inspect.getdoc(fn) or ""
        param_docs = _param_docs(doc)
        properties: dict[str, dict[str, Any]] = {}
        required: list[str] = []

        for param in signature.parameters.values():
            if param.kind in {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}:
                continue
            if param.name in cmdlet.forced_params:
                continue
            if not param_allowed(param.name, cmdlet.allowed_params):
                continue
            annotation = hints.get(param.name, str)
            prop: dict[str, Any] = {
                "type": python_type_to_llm_type(annotation),
                "description": param_docs.get(param.name, param.name.replace("_", " ")),
            }
            choices = _literal_choices(annotation)
            if choices:
                prop["enum"] = choices
            properties[param.name] = prop
            if param.default is inspect.Parameter.empty:
                required.append(param.name)

        functions.append(
            {
                "type": "function",
                "function": {
                    "name": name,
                    "description": cmdlet.description or _summary(doc, name),
                    "parameters": {
                        "type": "object",
                        "properties": properties,
                        "required": required,
                    },
                    "callback": fn,
                },
            }
        )

    return functions


def function_definitions_for_api(functions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for item in functions:
        function = {k: v for k, v in item["function"].items() if k != "callback"}
        out.append({"type": "function", "function": function})
    return out
