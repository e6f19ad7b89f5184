from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from slopless_action.errors import ParseError, ScanFailedError
from slopless_action.utils import FALSE_VALUES

log = logging.getLogger("slopless_action")

SEVERITIES = ("critical", "high", "medium", "low", "warning", "info")


@dataclass
class Finding:
    title: str
    severity: str
    file_path: str = "unknown"
    line_number: int | None = None
    cwe_id: str | None = None
    description: str | None = None
    code_snippet: str | None = None
    recommendation: str | None = None


@dataclass
class ScanResult:
    success: bool = True
    error: str | None = None
    findings: list[Finding] = field(default_factory=list)


@dataclass
class SeverityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    warning: int = 0
    info: int = 0
    # every finding, including unknown severities that land in no bucket
    total: int = 0

    @property
    def exit_code(self) -> int:
        return 0 if self.total == 0 else 1

    def bucket(self, severity: str) -> int:
        return getattr(self, severity)


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _line_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _cwe(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return f"CWE-{value}"
    return _text(value)


def _reports_failure(doc: dict[str, Any]) -> bool:
    if "success" not in doc:
        return False
    value = doc["success"]
    if isinstance(value, str):
        return value.strip().lower() in FALSE_VALUES or not value.strip()
    return not value


def _finding_from_dict(v: dict[str, Any]) -> Finding:
    return Finding(
        title=_text(v.get("title")) or "",
        severity=_text(v.get("severity")) or "",
        file_path=_text(v.get("file_path")) or "unknown",
        line_number=_line_number(v.get("line_number")),
        cwe_id=_cwe(v.get("cwe_id")),
        description=_text(v.get("description")),
        code_snippet=_text(v.get("code_snippet")),
        recommendation=_text(v.get("recommendation")),
    )


def _load_document(raw: bytes | str | None) -> dict[str, Any]:
    if raw is None:
        raise ParseError("no scan output")
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not raw.strip():
        raise ParseError("scan output is empty")
    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"scan output is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise ParseError(f"scan output is a JSON {type(doc).__name__}, expected an object")
    return doc


def parse_scan_result(raw: bytes | str | None) -> ScanResult:
    """
    Turns scanner JSON into a ScanResult.

    Unreadable or incomplete documents degrade to an empty, successful
    result so a scanner hiccup never breaks reporting. A present but
    false-like ``success`` (false, 0, null, "false", "") is the one hard
    failure and raises ScanFailedError.
    """
    try:
        doc = _load_document(raw)
    except ParseError as e:
        log.warning("Treating scan as empty: %s", e)
        return ScanResult()

    if _reports_failure(doc):
        error = _text(doc.get("error")) or "scan failed"
        raise ScanFailedError(error)

    vulns = doc.get("vulnerabilities")
    if not isinstance(vulns, list):
        if vulns is not None:
            log.warning("Ignoring non-list 'vulnerabilities' field (%s)", type(vulns).__name__)
        return ScanResult()

    findings: list[Finding] = []
    for v in vulns:
        if not isinstance(v, dict):
            log.debug("Skipping malformed vulnerability entry: %r", v)
            continue
        findings.append(_finding_from_dict(v))

    return ScanResult(success=True, error=_text(doc.get("error")), findings=findings)


def parse_scan_file(path: Path) -> ScanResult:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        log.warning("Scan report %s was not produced", path)
        return ScanResult()
    except OSError as e:
        log.warning("Could not read scan report %s: %s", path, e)
        return ScanResult()
    return parse_scan_result(raw)


def count_severities(findings: list[Finding]) -> SeverityCounts:
    c = Counter(f.severity.strip().lower() for f in findings)
    return SeverityCounts(
        critical=c.get("critical", 0),
        high=c.get("high", 0),
        medium=c.get("medium", 0),
        low=c.get("low", 0),
        warning=c.get("warning", 0),
        info=c.get("info", 0),
        total=len(findings),
    )
