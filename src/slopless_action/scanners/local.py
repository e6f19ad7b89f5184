from __future__ import annotations
import logging
import subprocess

from slopless_action.config import Config
from slopless_action.errors import ScannerError
from slopless_action.report import ScanResult, parse_scan_file

log = logging.getLogger("slopless_action")


def build_command(cfg: Config) -> list[str]:
    # the binary must never rewrite the checkout it runs in; auto_fix only
    # applies to hosted scans
    cmd = [
        cfg.unslop_bin, "scan", str(cfg.scan_path),
        "--format", "json",
        "--output", str(cfg.json_path),
    ]
    if cfg.cross_validate:
        cmd.append("--cross-validate")
    cmd.append("--no-fix")
    return cmd


def scan_local(cfg: Config) -> ScanResult:
    """
    Runs the unslop binary and reads the JSON report it leaves behind.
    Its exit status is informational only; a missing or broken report
    reads as an empty scan.
    """
    cmd = build_command(cfg)
    log.debug("Running %s", " ".join(cmd))

    try:
        # a stale report from an earlier run must not be mistaken for this one
        cfg.json_path.unlink(missing_ok=True)
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=cfg.timeout)
    except subprocess.TimeoutExpired as e:
        raise ScannerError(f"{cfg.unslop_bin} exceeded {cfg.timeout} seconds") from e
    except OSError as e:
        raise ScannerError(f"Could not run {cfg.unslop_bin}: {e}") from e

    if proc.returncode != 0:
        log.warning(
            "%s exited with status %d: %s",
            cfg.unslop_bin,
            proc.returncode,
            (proc.stderr or proc.stdout or "").strip() or "no output",
        )

    return parse_scan_file(cfg.json_path)
