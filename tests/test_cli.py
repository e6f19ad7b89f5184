from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest
import requests

from slopless_action import api, cli
from slopless_action.config import Config
from slopless_action.scanners import local


class FakeResponse:
    def __init__(self, status_code: int, content: bytes, chunks: list[bytes] | None = None):
        self.status_code = status_code
        self.chunks = [content] if chunks is None else chunks
        self.closed = False

    def iter_content(self, chunk_size=1):
        yield from self.chunks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True


def _cfg(tmp_path: Path) -> Config:
    ws = tmp_path / "ws"
    ws.mkdir()
    (ws / "app.py").write_text("import sqlite3\n", encoding="utf-8")
    return Config(
        workspace=ws,
        scan_path=ws,
        temp_dir=tmp_path / "tmp",
        license_key="sk-test",
        github_output=tmp_path / "github_output",
        step_summary=tmp_path / "step_summary",
    )


def _respond(monkeypatch, status: int, body: bytes):
    monkeypatch.setattr(api.requests, "post", lambda *a, **kw: FakeResponse(status, body))


def _outputs(cfg: Config) -> dict[str, str]:
    lines = cfg.github_output.read_text(encoding="utf-8").splitlines()
    return dict(line.split("=", 1) for line in lines)


def test_hosted_scan_with_finding(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    body = json.dumps({
        "vulnerabilities": [
            {"severity": "high", "title": "SQL Injection", "file_path": "app.py", "line_number": 42},
        ]
    }).encode()
    _respond(monkeypatch, 200, body)

    assert cli.run_scan(cfg) == 0

    out = _outputs(cfg)
    assert out["report"] == str(cfg.report_path)
    assert (out["total"], out["critical"], out["high"], out["exit_code"]) == ("1", "0", "1", "1")

    report = cfg.report_path.read_text(encoding="utf-8")
    assert "### 1. [HIGH] SQL Injection" in report
    assert "`app.py:42`" in report
    assert cfg.json_path.read_bytes() == body

    summary = cfg.step_summary.read_text(encoding="utf-8")
    assert "## Slopless Security Scan Results" in summary
    assert "<details><summary>Full Report</summary>" in summary
    assert "::warning::Found 1 vulnerabilities (0 critical, 1 high)" in capsys.readouterr().out


def test_hosted_scan_clean(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    _respond(monkeypatch, 200, b'{"success": true, "vulnerabilities": []}')

    assert cli.run_scan(cfg) == 0

    out = _outputs(cfg)
    assert (out["total"], out["exit_code"]) == ("0", "0")
    assert "No vulnerabilities found." in cfg.report_path.read_text(encoding="utf-8")
    assert "<details>" not in cfg.step_summary.read_text(encoding="utf-8")
    assert "::notice::No vulnerabilities found" in capsys.readouterr().out


def test_unparsable_body_degrades(tmp_path: Path, monkeypatch):
    cfg = _cfg(tmp_path)
    _respond(monkeypatch, 200, b"<html>oops</html>")

    assert cli.run_scan(cfg) == 0
    out = _outputs(cfg)
    assert (out["total"], out["exit_code"]) == ("0", "0")


def test_scan_failed_response(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    _respond(monkeypatch, 200, b'{"success": false, "error": "invalid archive"}')

    assert cli.run_scan(cfg) == 1

    out = _outputs(cfg)
    assert (out["report"], out["total"], out["critical"], out["high"], out["exit_code"]) == ("", "0", "0", "0", "1")
    assert not cfg.report_path.exists()
    assert "::error::invalid archive" in capsys.readouterr().out
    assert "**Scan failed:** invalid archive" in cfg.step_summary.read_text(encoding="utf-8")


def test_unauthorized_upload(tmp_path: Path, monkeypatch):
    cfg = _cfg(tmp_path)
    _respond(monkeypatch, 401, b'{"detail": "bad key"}')

    assert cli.run_scan(cfg) == 1

    out = _outputs(cfg)
    assert (out["total"], out["critical"], out["high"], out["exit_code"]) == ("0", "0", "0", "1")
    assert not cfg.report_path.exists()


def test_upstream_error(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    _respond(monkeypatch, 502, b"bad gateway")

    assert cli.run_scan(cfg) == 1
    assert _outputs(cfg)["exit_code"] == "1"
    assert "::error::Scan API returned HTTP 502" in capsys.readouterr().out
    assert cfg.json_path.read_bytes() == b"bad gateway"


def test_transport_error(tmp_path: Path, monkeypatch):
    cfg = _cfg(tmp_path)

    def fake_post(*a, **kw):
        raise requests.ConnectTimeout("no route")

    monkeypatch.setattr(api.requests, "post", fake_post)

    assert cli.run_scan(cfg) == 1
    assert _outputs(cfg)["total"] == "0"


def test_packaging_error(tmp_path: Path, monkeypatch):
    cfg = _cfg(tmp_path)
    cfg.scan_path = tmp_path / "missing"

    def fake_post(*a, **kw):
        raise AssertionError("upload must not happen")

    monkeypatch.setattr(api.requests, "post", fake_post)

    assert cli.run_scan(cfg) == 1
    assert _outputs(cfg)["exit_code"] == "1"


def test_main_config_error_still_defines_outputs(tmp_path: Path, monkeypatch, capsys):
    for var in ("SLOPLESS_LICENSE_KEY", "SLOPLESS_MODE", "SLOPLESS_CONFIG", "SCAN_PATH"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("GITHUB_WORKSPACE", str(tmp_path))
    monkeypatch.setenv("GITHUB_OUTPUT", str(tmp_path / "github_output"))
    monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(tmp_path / "step_summary"))

    def fake_post(*a, **kw):
        raise AssertionError("upload must not happen")

    monkeypatch.setattr(api.requests, "post", fake_post)

    with pytest.raises(SystemExit) as exc:
        cli.main(["scan"])

    assert exc.value.code == 2
    lines = (tmp_path / "github_output").read_text(encoding="utf-8").splitlines()
    assert lines[:5] == ["report=", "total=0", "critical=0", "high=0", "exit_code=1"]
    assert "SLOPLESS_LICENSE_KEY" in (tmp_path / "step_summary").read_text(encoding="utf-8")
    assert "::error::Config error: SLOPLESS_LICENSE_KEY" in capsys.readouterr().out


def test_local_mode_end_to_end(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    cfg.mode = "local"
    cfg.license_key = None
    seen = {}

    def fake_run(cmd, **kw):
        seen["cmd"] = cmd
        cfg.json_path.write_text(
            json.dumps({"vulnerabilities": [
                {"severity": "Critical", "title": "Hardcoded secret", "file_path": "app.py", "line_number": 1},
                {"severity": "medium", "title": "Weak hash", "cwe_id": "CWE-328"},
            ]}),
            encoding="utf-8",
        )
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="")

    cfg.temp_dir.mkdir()
    monkeypatch.setattr(local.subprocess, "run", fake_run)

    assert cli.run_scan(cfg) == 0

    assert seen["cmd"][:3] == ["unslop", "scan", str(cfg.scan_path)]
    assert "--no-fix" in seen["cmd"]
    out = _outputs(cfg)
    assert (out["total"], out["critical"], out["high"], out["medium"], out["exit_code"]) == ("2", "1", "0", "1", "1")
    report = cfg.report_path.read_text(encoding="utf-8")
    assert "### 1. [CRITICAL] Hardcoded secret" in report
    assert "### 2. [MEDIUM] Weak hash" in report
    assert "**Location:** `unknown:?`" in report
    assert "<details><summary>Full Report</summary>" in cfg.step_summary.read_text(encoding="utf-8")
    assert "::warning::Found 2 vulnerabilities (1 critical, 0 high)" in capsys.readouterr().out


def test_failure_removes_report_from_previous_run(tmp_path: Path, monkeypatch):
    cfg = _cfg(tmp_path)
    _respond(monkeypatch, 200, b'{"vulnerabilities": [{"severity": "low", "title": "old"}]}')
    assert cli.run_scan(cfg) == 0
    assert cfg.report_path.exists()

    _respond(monkeypatch, 401, b"")
    assert cli.run_scan(cfg) == 1

    assert not cfg.report_path.exists()
    last = _outputs(cfg)
    assert (last["report"], last["total"], last["exit_code"]) == ("", "0", "1")


def test_unwritable_output_sink_is_reported(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    cfg.github_output = tmp_path / "sink_dir"
    cfg.github_output.mkdir()
    _respond(monkeypatch, 200, b'{"vulnerabilities": []}')

    assert cli.run_scan(cfg) == 1
    assert "::error::Could not write step outputs" in capsys.readouterr().out


def test_unwritable_sink_on_failure_path(tmp_path: Path, monkeypatch, capsys):
    cfg = _cfg(tmp_path)
    cfg.github_output = tmp_path / "sink_dir"
    cfg.github_output.mkdir()
    _respond(monkeypatch, 500, b"oops")

    assert cli.run_scan(cfg) == 1
    out = capsys.readouterr().out
    assert "::error::Scan API returned HTTP 500" in out
    assert "::error::Could not write step outputs" in out
