from __future__ import annotations
import argparse
import logging
import os
from pathlib import Path
from rich.console import Console
from rich.table import Table
from slopless_action import github as gh
from slopless_action.config import Config, resolve_config
from slopless_action.errors import ConfigurationError, SloplessError, UpstreamError
from slopless_action.render import render_failure_summary, render_job_summary, render_report, write_report
from slopless_action.report import SEVERITIES, ScanResult, SeverityCounts, count_severities
from slopless_action.scanners.hosted import scan_hosted
from slopless_action.scanners.local import scan_local
from slopless_action.utils import configure_logging

console = Console()
log = logging.getLogger("slopless_action")

MAX_LOGGED_BODY = 2000


def _env_path(name: str) -> Path | None:
    raw = os.environ.get(name)
    return Path(raw) if raw else None


def _print_counts(cfg: Config, counts: SeverityCounts, report_path: Path) -> None:
    console.print(f"[bold]Scanned:[/bold] {cfg.scan_path}  [bold]Mode:[/bold] {cfg.mode}")

    t = Table(title="Slopless findings")
    t.add_column("Severity", style="bold")
    t.add_column("Count", justify="right")
    for sev in SEVERITIES:
        t.add_row(sev.capitalize(), str(counts.bucket(sev)))
    t.add_row("Total", str(counts.total), style="bold")

    console.print(t)
    console.print(f"[bold]Report saved:[/bold] {report_path}")


def _scan(cfg: Config) -> ScanResult:
    with gh.group("Slopless Security Scan"):
        console.print(f"Scanning: {cfg.scan_path}")
        if cfg.mode == "local":
            return scan_local(cfg)
        return scan_hosted(cfg)


def _publish_failure(output: Path | None, summary: Path | None, message: str) -> None:
    log.error(message)
    gh.error(message)
    try:
        gh.write_failure_outputs(output)
        gh.append_summary(summary, render_failure_summary(message))
    except OSError as e:
        log.error("Could not write step outputs: %s", e)
        gh.error(f"Could not write step outputs: {e}")


def _fail(cfg: Config, message: str) -> int:
    # report= is empty on failure; a report left by an earlier run must go
    try:
        cfg.report_path.unlink(missing_ok=True)
    except OSError as e:
        log.warning("Could not remove stale report %s: %s", cfg.report_path, e)
    _publish_failure(cfg.github_output, cfg.step_summary, message)
    return 1


def run_scan(cfg: Config) -> int:
    """
    Scan, then publish counts, the markdown report and the job summary.
    Returns the process status: 1 when the scan could not complete or its
    results could not be published, 0 otherwise. Findings are reported
    through the exit_code output.
    """
    try:
        result = _scan(cfg)
    except UpstreamError as e:
        log.error("Scan API response body: %s", e.body_text[:MAX_LOGGED_BODY] or "(empty)")
        return _fail(cfg, str(e))
    except SloplessError as e:
        return _fail(cfg, str(e))

    counts = count_severities(result.findings)
    markdown = render_report(result, counts)
    try:
        report_path = write_report(cfg.report_path, markdown)
    except OSError as e:
        return _fail(cfg, f"Could not write report to {cfg.report_path}: {e}")

    try:
        gh.write_outputs(cfg.github_output, counts, report_path)
        gh.append_summary(cfg.step_summary, render_job_summary(counts, markdown))
    except OSError as e:
        log.error("Could not write step outputs: %s", e)
        gh.error(f"Could not write step outputs: {e}")
        return 1

    _print_counts(cfg, counts, report_path)
    if counts.total == 0:
        gh.notice("No vulnerabilities found")
    else:
        gh.warning(f"Found {counts.total} vulnerabilities ({counts.critical} critical, {counts.high} high)")
    return 0



def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="slopless-action", description="Slopless security scan for GitHub Actions")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("scan", help="Scan the workspace and publish the results")
    s.add_argument("path", nargs="?", default=None, help="Directory to scan (default: SCAN_PATH or the workspace)")
    s.add_argument("--mode", choices=["api", "local"], default=None, help="Hosted API or local unslop binary")
    s.add_argument("--api-url", default=None, help="Scan API base URL")
    s.add_argument("--config", dest="config_path", default=None, help="Path to a .slopless.yml file")
    s.add_argument("--no-auto-fix", action="store_true", help="Ask the scanner not to generate fixes")
    s.add_argument("--no-cross-validate", action="store_true", help="Skip cross-validation of findings")
    s.add_argument("--parallel-candidates", type=int, default=None, help="Candidate fan-out hint for the API")
    s.add_argument("--run-polish", action="store_true", help="Enable the API polish pass")
    s.add_argument("--verbose", action="store_true", help="Debug logging")
    return p


def main(argv: list[str] | None = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)

    if args.cmd == "scan":
        configure_logging(args.verbose)
        try:
            cfg = resolve_config(args)
        except ConfigurationError as e:
            # no Config to read the sinks from, but the outputs must still be defined
            _publish_failure(
                _env_path("GITHUB_OUTPUT"),
                _env_path("GITHUB_STEP_SUMMARY"),
                f"Config error: {e}",
            )
            raise SystemExit(2)
        raise SystemExit(run_scan(cfg))
