"""JSON and markdown artifacts for a policy scan."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, TextIO

from forkguard.policy.types import ScanReport

SCAN_JSON_FILENAME = "FORKGUARD_SCAN.json"
SCAN_MARKDOWN_FILENAME = "FORKGUARD_SCAN.md"


def report_to_dict(report: ScanReport) -> dict[str, Any]:
    return {
        "schema_version": "1.0",
        "root": str(report.root),
        "status": "passed" if report.clean else "failed",
        "exit_code": report.exit_code,
        "summary": {
            "findings": len(report.findings),
            "failed": report.count("fail"),
            "warnings": report.count("warn"),
        },
        "rules": [
            {
                "id": rule.rule_id,
                "title": rule.title,
                "passed": rule.passed,
                "findings": [asdict(finding) for finding in rule.findings],
            }
            for rule in report.rules
        ],
    }


def write_scan_report(report: ScanReport, out_dir: Path) -> tuple[Path, Path]:
    """Write FORKGUARD_SCAN.json and FORKGUARD_SCAN.md into ``out_dir``."""
    out_dir.mkdir(parents=True, exist_ok=True)

    json_path = out_dir / SCAN_JSON_FILENAME
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(report_to_dict(report), f, indent=2, sort_keys=True)
        f.write("\n")

    md_path = out_dir / SCAN_MARKDOWN_FILENAME
    with open(md_path, "w", encoding="utf-8") as f:
        _write_markdown_report(f, report)

    return json_path, md_path


def _write_markdown_report(f: TextIO, report: ScanReport) -> None:
    f.write("# Fork Security Guard Report\n\n")

    status_emoji = "✅" if report.clean else "❌"
    status = "passed" if report.clean else "failed"
    f.write(f"**Status**: {status_emoji} {status.upper()}\n\n")
    f.write(f"**Root**: `{report.root}`\n\n")

    f.write("## Summary\n\n")
    f.write(f"- Rules passed: {sum(1 for rule in report.rules if rule.passed)}\n")
    f.write(f"- Failed: {report.count('fail')}\n")
    f.write(f"- Warnings: {report.count('warn')}\n\n")

    f.write("## Rules\n\n")
    for rule in report.rules:
        symbol = "✅" if rule.passed else "❌"
        f.write(f"### {symbol} {rule.title}\n\n")
        if rule.passed:
            f.write(f"{rule.pass_message}\n\n")
            continue
        for finding in rule.findings:
            marker = "⚠️" if finding.severity == "warn" else "❌"
            f.write(f"- {marker} `{finding.location}`: {finding.message}\n")
        f.write("\n")

    f.write("## Exit Code\n\n")
    if report.clean:
        f.write("0 (clean)\n")
    else:
        f.write("1 (findings detected)\n")
