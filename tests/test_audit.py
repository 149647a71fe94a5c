import json
from pathlib import Path

from genxai.audit.ledger import AuditLedger
from genxai.audit.render import render_markdown_report
from genxai.tools.model import ExposedToolCallInvocationResult


def _result(name, exposed=True, reason=None, error=None, rule_id="", call_id=""):
    return ExposedToolCallInvocationResult(
        command_exposed=exposed,
        reason=reason,
        output=None,
        filtered_arguments={"a": 1},
        unfiltered_arguments={"a": 1, "secret": "x"},
        error=error,
        rule_id=rule_id,
        tool_call_id=call_id,
        name=name,
    )


def test_record_tool_call_writes_decision(tmp_path: Path):
    ledger = AuditLedger(tmp_path / "audit")
    ledger.record_tool_call(_result("Get-CpuCore", call_id="call-1"))
    ledger.record_tool_call(_result("Remove-Item", exposed=False, reason="Function not found", rule_id="tool.not_found"))

    allowed, blocked = ledger.tail()
    assert allowed["request_id"] == "call-1"
    assert allowed["decision"] == "ALLOW"
    assert allowed["reason"] == "invoked"
    assert allowed["unfiltered_arguments"] == {"a": 1, "secret": "x"}
    assert "timestamp" in allowed
    assert blocked["decision"] == "BLOCK"
    assert blocked["rule_id"] == "tool.not_found"
    assert len(blocked["request_id"]) == 32


def test_tail_filters_and_skips_corrupt_lines(tmp_path: Path):
    ledger = AuditLedger(tmp_path)
    for n in range(5):
        ledger.write_event({"command": "a" if n % 2 == 0 else "b", "n": n})
    with ledger.ledger_path.open("a", encoding="utf-8") as fh:
        fh.write("{not json\n\n")
    ledger.write_event({"command": "a", "n": 5})

    assert [e["n"] for e in ledger.tail(2)] == [4, 5]
    assert [e["n"] for e in ledger.tail(10, command="a")] == [0, 2, 4, 5]
    assert ledger.tail(0) == []
    assert AuditLedger(tmp_path / "empty").tail() == []


def test_report_summarizes_calls(tmp_path: Path):
    ledger = AuditLedger(tmp_path)
    assert render_markdown_report(ledger) == "# GenXAI Tool Call Report\n\nNo tool calls recorded."

    ledger.record_tool_call(_result("Get-CpuCore", call_id="c1"))
    ledger.record_tool_call(_result("Get-CpuCore", call_id="c2", error="boom"))
    ledger.record_tool_call(_result("Remove-Item", exposed=False, reason="Function not found", rule_id="tool.not_found"))

    report = render_markdown_report(ledger)
    assert "- Tool calls: 3" in report
    assert "- Invoked: 2" in report
    assert "- Blocked: 1" in report
    assert "- Failed invocations: 1" in report
    assert "- Get-CpuCore: 2" in report
    assert "- tool.not_found: 1" in report
    assert "- `Get-CpuCore`: boom" in report
    assert "`c1` `Get-CpuCore` ALLOW: invoked" in report
    assert report.endswith("\n")


def test_ledger_lines_are_sorted_json(tmp_path: Path):
    ledger = AuditLedger(tmp_path)
    ledger.write_event({"zeta": 1, "alpha": Path("/x")})
    line = ledger.ledger_path.read_text().splitlines()[0]
    assert list(json.loads(line)) == ["alpha", "timestamp", "zeta"]
    assert json.loads(line)["alpha"] == str(Path("/x"))
