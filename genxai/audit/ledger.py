from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from genxai.config import Settings, load_settings

if TYPE_CHECKING:
    from genxai.tools.model import ExposedToolCallInvocationResult

logger = logging.getLogger(__name__)


class AuditLedger:
    """Append-only JSONL record of tool-call dispatch decisions."""

    def __init__(self, audit_dir: str | Path):
        self.audit_dir = Path(audit_dir).expanduser()
        self.audit_dir.mkdir(parents=True, exist_ok=True)
        self.ledger_path = self.audit_dir / "ledger.jsonl"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AuditLedger":
        return cls((settings or load_settings()).audit_dir)

    def new_request_id(self) -> str:
        return uuid.uuid4().hex

    def write_event(self, event: dict[str, Any]) -> None:
        payload = {"timestamp": datetime.now(timezone.utc).isoformat(), **event}
        with self.ledger_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, sort_keys=True, default=str) + "\n")

    def record_tool_call(self, result: "ExposedToolCallInvocationResult") -> None:
        self.write_event(
            {
                "request_id": result.tool_call_id or self.new_request_id(),
                "command": result.name,
                "decision": "ALLOW" if result.command_exposed else "BLOCK",
                "reason": result.reason or "invoked",
                "rule_id": result.rule_id,
                "filtered_arguments": result.filtered_arguments,
                "unfiltered_arguments": result.unfiltered_arguments,
                "error": result.error,
            }
        )

    def events(self, command: str | None = None) -> Iterator[dict[str, Any]]:
        if not self.ledger_path.exists():
            return
        with self.ledger_path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping corrupt ledger line %d in %s", lineno, self.ledger_path)
                    continue
                if command is None or event.get("command") == command:
                    yield event

    def tail(self, n: int = 20, command: str | None = None) -> list[dict[str, Any]]:
        if n <= 0:
            return []
        return list(deque(self.events(command), maxlen=n))
