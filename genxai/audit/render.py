from __future__ import annotations

from collections import Counter

from .ledger import AuditLedger

TITLE = "# GenXAI Tool Call Report"


def render_markdown_report(ledger: AuditLedger, limit: int = 500, recent: int = 20) -> str:
    events = ledger.tail(limit)
    if not events:
        return f"{TITLE}\n\nNo tool calls recorded."

    allowed = [event for event in events if event.get("decision") == "ALLOW"]
    blocked = [event for event in events if event.get("decision") == "BLOCK"]
    failed = [event for event in allowed if event.get("error")]
    commands = Counter(event.get("command") or "<unnamed>" for event in events)
    block_rules = Counter(event.get("rule_id") or "unknown" for event in blocked)

    lines = [
        TITLE,
        "",
        "## Summary",
        f"- Tool calls: {len(events)}",
        f"- Invoked: {len(allowed)}",
        f"- Blocked: {len(blocked)}",
        f"- Failed invocations: {len(failed)}",
        "",
        "## Commands",
    ]
    lines += [f"- {command}: {count}" for command, count in commands.most_common()]

    if block_rules:
        lines += ["", "## Block Rules"]
        lines += [f"- {rule}: {count}" for rule, count in block_rules.most_common()]

    if failed:
        lines += ["", "## Failures"]
        lines += [f"- `{event.get('command')}`: {event.get('error')}" for event in failed[-recent:]]

    lines += ["", "## Recent Calls"]
    for event in events[-recent:]:
        lines.append(
            f"- `{event.get('request_id', '-')}` `{event.get('command') or '<unnamed>'}` "
            f"{event.get('decision', 'UNKNOWN')}: {event.get('reason', '')}"
        )
    return "\n".join(lines) + "\n"
