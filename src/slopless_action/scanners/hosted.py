from __future__ import annotations
import logging
import tempfile
from pathlib import Path

from slopless_action.api import check_response, upload_archive
from slopless_action.archive import build_archive
from slopless_action.config import Config
from slopless_action.report import ScanResult, parse_scan_result

log = logging.getLogger("slopless_action")


def scan_hosted(cfg: Config) -> ScanResult:
    with tempfile.TemporaryDirectory(prefix="slopless_") as td:
        archive = build_archive(cfg.scan_path, Path(td) / "workspace.zip", cfg.exclude)
        resp = upload_archive(cfg, archive)

    # keep the raw response around for debugging, whatever the status
    try:
        cfg.json_path.parent.mkdir(parents=True, exist_ok=True)
        cfg.json_path.write_bytes(resp.body)
    except OSError as e:
        log.warning("Could not save scan response to %s: %s", cfg.json_path, e)

    body = check_response(resp)
    return parse_scan_result(body)
