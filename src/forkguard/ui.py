"""Console rendering shared by the sync and scan commands."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from forkguard.policy.types import Finding, ScanReport

console = Console()

PASS_MARK = "[green]✓[/green]"
FAIL_MARK = "[red]✗[/red]"
WARN_MARK = "[yellow]![/yellow]"


def heading(title: str, out: Console | None = None) -> None:
    (out or console).print(f"\n[bold]── {escape(title)} ──[/bold]")


def finding_line(finding: Finding) -> str:
    mark = FAIL_MARK if finding.severity == "fail" else WARN_MARK
    return f"  {mark} {escape(finding.message)}"


def render_scan_report(report: ScanReport, out: Console | None = None) -> None:
    """Print one section per rule followed by the summary line."""
    target = out or console
    for rule in report.rules:
        heading(rule.title, target)
        if rule.passed:
            target.print(f"  {PASS_MARK} {escape(rule.pass_message)}")
            continue
        for finding in rule.findings:
            target.print(finding_line(finding))

    target.print()
    if report.clean:
        target.print("[bold green]Security guard: all clear.[/bold green]")
    else:
        total = len(report.findings)
        target.print(f"[bold red]Security guard found {total} issue(s).[/bold red]")
