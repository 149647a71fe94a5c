from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ExposedCmdlet:
    name: str
    description: str = ""
    allowed_params: list[str] = field(default_factory=list)
    forced_params: dict[str, Any] = field(default_factory=dict)
    dont_show_during_confirmation: list[str] = field(default_factory=list)
    output_text: bool = True
    confirm: bool = True


@dataclass(slots=True)
class RateLimitRule:
    command: str
    capacity: int = 10
    refill_per_sec: float = 1.0


@dataclass(slots=True)
class ToolPolicy:
    exposed: list[ExposedCmdlet] = field(default_factory=list)
    rate_limits: list[RateLimitRule] = field(default_factory=list)

    def find(self, name: str) -> ExposedCmdlet | None:
        for cmdlet in self.exposed:
            if cmdlet.name == name:
                return cmdlet
        return None


@dataclass(slots=True)
class ExposedToolCallInvocationResult:
    command_exposed: bool
    reason: str | None
    output: str | None
    filtered_arguments: dict[str, Any] = field(default_factory=dict)
    unfiltered_arguments: dict[str, Any] = field(default_factory=dict)
    exposed_cmdlet: ExposedCmdlet | None = None
    error: str | None = None
    rule_id: str = ""
    tool_call_id: str = ""
    name: str = ""
