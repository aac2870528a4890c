"""Tests for scan report artifacts."""

from __future__ import annotations

import json

from forkguard.policy.report import SCAN_JSON_FILENAME, SCAN_MARKDOWN_FILENAME, write_scan_report
from forkguard.policy.scanner import scan


def test_write_scan_report_for_findings(make_tree, tmp_path) -> None:
    root = make_tree(
        {
            "extensions/nostr/index.ts": "",
            "extensions/beacon/src/poll.ts": "setInterval(x, 1);\n",
        }
    )
    json_path, md_path = write_scan_report(scan(root), tmp_path / "out")

    assert json_path.name == SCAN_JSON_FILENAME
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["status"] == "failed"
    assert payload["exit_code"] == 1
    assert payload["summary"] == {"findings": 2, "failed": 1, "warnings": 1}
    assert [rule["id"] for rule in payload["rules"]][0] == "banned-directory"
    assert payload["rules"][0]["findings"][0]["location"] == "extensions/nostr"

    assert md_path.name == SCAN_MARKDOWN_FILENAME
    markdown = md_path.read_text(encoding="utf-8")
    assert "FAILED" in markdown
    assert "`extensions/nostr`" in markdown
    assert "1 (findings detected)" in markdown


def test_write_scan_report_clean(make_tree, tmp_path) -> None:
    root = make_tree({"README.md": "# fork\n"})
    json_path, md_path = write_scan_report(scan(root), tmp_path / "out")
    assert json.loads(json_path.read_text(encoding="utf-8"))["status"] == "passed"
    assert "0 (clean)" in md_path.read_text(encoding="utf-8")
