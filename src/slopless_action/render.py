from __future__ import annotations

from pathlib import Path

from slopless_action.report import SEVERITIES, Finding, ScanResult, SeverityCounts

REPORT_TITLE = "# Slopless Security Report"
SUMMARY_TITLE = "## Slopless Security Scan Results"
NO_FINDINGS = "No vulnerabilities found."


def summary_table_lines(counts: SeverityCounts) -> list[str]:
    lines = [
        "| Severity | Count |",
        "|----------|-------|",
    ]
    for sev in SEVERITIES:
        lines.append(f"| {sev.capitalize()} | {counts.bucket(sev)} |")
    lines.append(f"| Total | {counts.total} |")
    return lines


def _fenced_block(text: str) -> list[str]:
    longest = 0
    run = 0
    for ch in text:
        if ch == "`":
            run += 1
            longest = max(longest, run)
        else:
            run = 0
    fence = "`" * max(3, longest + 1)
    return [fence, text.rstrip("\n"), fence]


def _location(f: Finding) -> str:
    line = "?" if f.line_number is None else str(f.line_number)
    return f"{f.file_path or 'unknown'}:{line}"


def _finding_lines(index: int, f: Finding) -> list[str]:
    severity = f.severity.strip().upper() or "UNKNOWN"
    title = f.title.strip() or "Untitled finding"
    lines = [
        f"### {index}. [{severity}] {title}",
        "",
        f"**Location:** `{_location(f)}`",
        "",
    ]
    if f.cwe_id:
        lines.extend([f"**CWE:** {f.cwe_id}", ""])
    if f.description:
        lines.extend([f.description.strip(), ""])
    if f.code_snippet:
        lines.extend([*_fenced_block(f.code_snippet), ""])
    if f.recommendation:
        lines.extend([f"**Recommendation:** {f.recommendation.strip()}", ""])
    lines.extend(["---", ""])
    return lines


def render_report(result: ScanResult, counts: SeverityCounts) -> str:
    """Render the full markdown report. Same input, same bytes."""
    lines = [
        REPORT_TITLE,
        "",
        "## Summary",
        "",
        *summary_table_lines(counts),
        "",
        "## Vulnerabilities",
        "",
    ]
    if counts.total == 0:
        lines.append(NO_FINDINGS)
    else:
        for i, f in enumerate(result.findings, start=1):
            lines.extend(_finding_lines(i, f))

    return "\n".join(lines).rstrip() + "\n"


def write_report(path: Path, markdown: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(markdown, encoding="utf-8")
    return path


def render_job_summary(counts: SeverityCounts, report_body: str) -> str:
    lines = [SUMMARY_TITLE, "", *summary_table_lines(counts), ""]
    if counts.total > 0:
        lines.extend([
            "<details><summary>Full Report</summary>",
            "",
            report_body.rstrip(),
            "",
            "</details>",
            "",
        ])
    return "\n".join(lines)


def render_failure_summary(message: str) -> str:
    return "\n".join([SUMMARY_TITLE, "", f"**Scan failed:** {message}", ""])
