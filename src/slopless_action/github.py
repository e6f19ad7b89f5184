from __future__ import annotations
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from slopless_action.report import SeverityCounts

log = logging.getLogger("slopless_action")

ZEROED = SeverityCounts()


def _escape(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def command(name: str, message: str = "") -> None:
    print(f"::{name}::{_escape(message)}", flush=True)


def notice(message: str) -> None:
    command("notice", message)


def warning(message: str) -> None:
    command("warning", message)


def error(message: str) -> None:
    command("error", message)


@contextmanager
def group(title: str) -> Iterator[None]:
    command("group", title)
    try:
        yield
    finally:
        command("endgroup")


def _append(path: Path | None, text: str, what: str) -> None:
    if path is None:
        log.debug("No %s file configured; skipping", what)
        return
    with path.open("a", encoding="utf-8") as out:
        out.write(text)


def output_lines(counts: SeverityCounts, report_path: Path | None, exit_code: int) -> list[str]:
    return [
        f"report={report_path or ''}",
        f"total={counts.total}",
        f"critical={counts.critical}",
        f"high={counts.high}",
        f"exit_code={exit_code}",
        f"medium={counts.medium}",
        f"low={counts.low}",
        f"warning={counts.warning}",
        f"info={counts.info}",
    ]


def write_outputs(path: Path | None, counts: SeverityCounts, report_path: Path | None) -> None:
    lines = output_lines(counts, report_path, counts.exit_code)
    _append(path, "\n".join(lines) + "\n", "GITHUB_OUTPUT")


def write_failure_outputs(path: Path | None) -> None:
    """Zeroed counts, no report and a failing exit_code."""
    lines = output_lines(ZEROED, None, 1)
    _append(path, "\n".join(lines) + "\n", "GITHUB_OUTPUT")


def append_summary(path: Path | None, markdown: str) -> None:
    _append(path, markdown.rstrip("\n") + "\n", "GITHUB_STEP_SUMMARY")
