"""
Output formatting for DNS speed test results.

Provides multiple output formats:
- JSON: Machine-readable ranking and summary
- CSV: Spreadsheet-compatible ranking
- Human-readable: Rich terminal table and summary
"""

import csv
import json
from io import StringIO
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import SpeedTestReport
from .resolvers import lookup_by_ip


def _label(ip: str) -> str:
    resolver = lookup_by_ip(ip)
    return resolver.description if resolver and resolver.description else ""


class JSONOutput:
    """JSON output formatter."""

    @staticmethod
    def format(report: SpeedTestReport, indent: int = 2) -> str:
        """
        Format a speed test report as JSON.

        Args:
            report: SpeedTestReport to format
            indent: JSON indentation level

        Returns:
            JSON string
        """
        summary = report.summary
        data = {
            "metadata": {
                "started_at": summary.started_at.isoformat(),
                "completed_at": summary.completed_at.isoformat(),
                "duration_seconds": summary.duration_seconds,
                "tested": summary.tested,
                "reachable": summary.reachable,
                "unreachable": summary.unreachable,
                "dropped": summary.dropped,
            },
            "rtt_ms": {
                "min": round(summary.min_rtt, 3),
                "median": round(summary.median_rtt, 3),
                "p95": round(summary.p95_rtt, 3),
                "max": round(summary.max_rtt, 3),
                "avg": round(summary.avg_rtt, 3),
            },
            "servers": [
                {"ip": result.ip, "rtt": round(result.rtt, 3)}
                for result in report.ranked
            ],
        }

        return json.dumps(data, indent=indent)

    @staticmethod
    def save(report: SpeedTestReport, path: Path) -> None:
        """Save a speed test report to a JSON file."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(JSONOutput.format(report))


class CSVOutput:
    """CSV output formatter."""

    @staticmethod
    def format(report: SpeedTestReport) -> str:
        """
        Format the ranking as CSV.

        Args:
            report: SpeedTestReport to format

        Returns:
            CSV string with one row per reachable server
        """
        output = StringIO()
        writer = csv.writer(output)

        writer.writerow(["rank", "ip", "rtt_ms", "resolver"])

        for rank, result in enumerate(report.ranked, start=1):
            writer.writerow([
                rank,
                result.ip,
                round(result.rtt, 3),
                _label(result.ip),
            ])

        return output.getvalue()

    @staticmethod
    def save(report: SpeedTestReport, path: Path) -> None:
        """Save the ranking to a CSV file."""
        with open(path, "w", newline="", encoding="utf-8") as f:
            f.write(CSVOutput.format(report))


class RichConsoleOutput:
    """Rich library console output with colors and tables."""

    @staticmethod
    def print(
        report: SpeedTestReport,
        top: int = 2,
        console: Optional[Console] = None,
    ) -> None:
        """
        Print the fastest servers and a run summary.

        Args:
            report: SpeedTestReport to print
            top: Number of fastest servers to list
            console: Console to print to (default: stdout)
        """
        console = console or Console()
        summary = report.summary

        console.print()
        console.print(Panel.fit(
            "[bold blue]DNS SPEED TEST RESULTS[/bold blue]",
            border_style="blue",
        ))
        console.print()

        console.print(f"  [dim]Duration:[/dim] {summary.duration_seconds:.1f}s")
        console.print(f"  [dim]Tested:[/dim] {summary.tested} | "
                      f"[dim]Reachable:[/dim] {summary.reachable} "
                      f"({summary.reachable_rate:.1f}%) | "
                      f"[dim]Unreachable:[/dim] {summary.unreachable} | "
                      f"[dim]Dropped:[/dim] {summary.dropped}")
        if summary.reachable:
            console.print(f"  [dim]RTT:[/dim] min={summary.min_rtt:.1f}ms, "
                          f"median={summary.median_rtt:.1f}ms, "
                          f"p95={summary.p95_rtt:.1f}ms, "
                          f"max={summary.max_rtt:.1f}ms")
        console.print()

        fastest = report.top(top)
        if not fastest:
            console.print(Panel(
                "[bold yellow]No DNS server replied - cannot recommend one[/bold yellow]",
                border_style="yellow",
            ))
            console.print()
            return

        table = Table(
            title="Fastest DNS Servers",
            box=box.ROUNDED,
            header_style="bold magenta",
        )

        table.add_column("#", justify="right", style="dim")
        table.add_column("IP", style="cyan")
        table.add_column("RTT (ms)", justify="right", style="green")
        table.add_column("Resolver")

        for rank, result in enumerate(fastest, start=1):
            table.add_row(
                str(rank),
                result.ip,
                f"{result.rtt:.1f}",
                _label(result.ip),
            )

        console.print(table)
        console.print()
