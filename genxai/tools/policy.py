from __future__ import annotations

import fnmatch
import time
from dataclasses import dataclass
from pathlib import Path

import yaml

from genxai.errors import ToolDefinitionError

from .model import ExposedCmdlet, RateLimitRule, ToolPolicy


@dataclass(slots=True)
class Decision:
    allowed: bool
    reason: str
    rule_id: str


class TokenBucket:
    def __init__(self, capacity: int, refill_per_sec: float):
        self.capacity = float(capacity)
        self.tokens = float(capacity)
        self.refill_per_sec = refill_per_sec
        self.last_ts = time.monotonic()

    def consume(self, count: float = 1.0) -> bool:
        now = time.monotonic()
        elapsed = now - self.last_ts
        self.last_ts = now
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_per_sec)
        if self.tokens < count:
            return False
        self.tokens -= count
        return True


class RateLimiter:
    def __init__(self, rules: list[RateLimitRule]):
        self.buckets = {
            rule.command: TokenBucket(capacity=rule.capacity, refill_per_sec=rule.refill_per_sec)
            for rule in rules
        }

    def check(self, command: str) -> Decision:
        bucket = self.buckets.get(command) or self.buckets.get("*")
        if bucket is None:
            return Decision(True, "no rate limit configured", "rate_default_allow")
        if bucket.consume(1):
            return Decision(True, "within rate limit", "rate_allow")
        return Decision(False, "rate limit exceeded", "rate_limit_block")


def param_allowed(name: str, allowed_params: list[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern.lower()) for pattern in allowed_params)


def _ensure_list(value: object, field_name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ToolDefinitionError(f"{field_name} must be a list")
    return value


def _ensure_dict(value: object, field_name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ToolDefinitionError(f"{field_name} must be a mapping")
    return value


def load_tool_policy(data: dict | None) -> ToolPolicy:
    data = data or {}
    if not isinstance(data, dict):
        raise ToolDefinitionError("tools must be a mapping")

    exposed: list[ExposedCmdlet] = []
    seen: set[str] = set()
    for idx, item in enumerate(_ensure_list(data.get("commands"), "tools.commands")):
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict) or not item.get("name"):
            raise ToolDefinitionError(f"Invalid exposed command at index {idx}")
        name = str(item["name"])
        if name in seen:
            raise ToolDefinitionError(f"Command exposed twice: {name}")
        seen.add(name)
        exposed.append(
            ExposedCmdlet(
                name=name,
                description=str(item.get("description", "")),
                allowed_params=[str(v) for v in _ensure_list(item.get("allowed_params"), f"tools.commands[{idx}].allowed_params")],
                forced_params=dict(_ensure_dict(item.get("forced_params"), f"tools.commands[{idx}].forced_params")),
                dont_show_during_confirmation=[
                    str(v)
                    for v in _ensure_list(
                        item.get("dont_show_during_confirmation"),
                        f"tools.commands[{idx}].dont_show_during_confirmation",
                    )
                ],
                output_text=bool(item.get("output_text", True)),
                confirm=bool(item.get("confirm", True)),
            )
        )

    rate_limits: list[RateLimitRule] = []
    for idx, item in enumerate(_ensure_list(data.get("rate_limits"), "tools.rate_limits")):
        if not isinstance(item, dict) or "command" not in item:
            raise ToolDefinitionError(f"Invalid rate limit at index {idx}")
        rate_limits.append(
            RateLimitRule(
                command=str(item["command"]),
                capacity=int(item.get("capacity", 10)),
                refill_per_sec=float(item.get("refill_per_sec", 1.0)),
            )
        )

    return ToolPolicy(exposed=exposed, rate_limits=rate_limits)


def load_tool_policy_file(path: str | Path) -> ToolPolicy:
    path_obj = Path(path)
    if not path_obj.exists():
        raise ToolDefinitionError(f"Tool policy file not found: {path_obj}")
    data = yaml.safe_load(path_obj.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ToolDefinitionError("Tool policy must be a mapping")
    return load_tool_policy(data.get("tools", data))
