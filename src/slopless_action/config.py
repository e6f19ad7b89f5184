from __future__ import annotations
import argparse
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from slopless_action.errors import ConfigurationError
from slopless_action.utils import parse_bool

DEFAULT_API_URL = "https://api.slopless.dev"
UPLOAD_ENDPOINT = "/v1/proxy/scan/upload"
DEFAULT_TIMEOUT = 600
MODES = {"api", "local"}
CONFIG_FILENAMES = (".slopless.yml", ".slopless.yaml")

# settings a checked-in config file may carry; never the license key or
# the host it is sent to
FILE_KEYS = {
    "mode", "auto_fix", "cross_validate",
    "parallel_candidates", "run_polish", "timeout", "exclude",
}

ENV_KEYS = {
    "SLOPLESS_API_URL": "api_url",
    "SLOPLESS_MODE": "mode",
    "AUTO_FIX": "auto_fix",
    "CROSS_VALIDATE": "cross_validate",
    "PARALLEL_CANDIDATES": "parallel_candidates",
    "RUN_POLISH": "run_polish",
    "SLOPLESS_TIMEOUT": "timeout",
    "UNSLOP_BIN": "unslop_bin",
}

BOOL_KEYS = {"auto_fix", "cross_validate", "run_polish"}
INT_KEYS = {"parallel_candidates", "timeout"}


@dataclass
class Config:
    workspace: Path = Path(".")
    scan_path: Path = Path(".")
    temp_dir: Path = Path("/tmp")
    license_key: str | None = field(default=None, repr=False)
    api_url: str = DEFAULT_API_URL
    mode: str = "api"
    auto_fix: bool = True
    cross_validate: bool = True
    parallel_candidates: int = 3
    run_polish: bool = False
    timeout: int = DEFAULT_TIMEOUT
    unslop_bin: str = "unslop"
    exclude: list[str] = field(default_factory=list)
    github_output: Path | None = None
    step_summary: Path | None = None
    config_path: Path | None = None
    verbose: bool = False

    @property
    def report_path(self) -> Path:
        return self.temp_dir / "slopless-report.md"

    @property
    def json_path(self) -> Path:
        return self.temp_dir / "slopless-report.json"

    @property
    def upload_url(self) -> str:
        return self.api_url.rstrip("/") + UPLOAD_ENDPOINT


def _optional_path(raw: str | None) -> Path | None:
    return Path(raw) if raw else None


def _resolve_scan_path(workspace: Path, raw: str | None) -> Path:
    if not raw:
        return workspace
    p = Path(raw)
    return p if p.is_absolute() else workspace / p


def _discover_config_path(explicit: str | None, scan_path: Path) -> Path | None:
    if explicit:
        p = Path(explicit)
        if not p.is_file():
            raise ConfigurationError(f"Config file not found: {p}")
        return p
    for name in CONFIG_FILENAMES:
        candidate = scan_path / name
        if candidate.is_file():
            return candidate
    return None


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}") from e

    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    unknown = sorted(str(k) for k in doc if k not in FILE_KEYS)
    if unknown:
        raise ConfigurationError(f"Unknown keys in {path}: {', '.join(unknown)}")
    return dict(doc)


def _load_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for var, key in ENV_KEYS.items():
        value = env.get(var)
        if value is not None and value.strip() != "":
            out[key] = value.strip()
    return out


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    out: dict[str, Any] = {}
    mapping = {
        "mode": args.mode,
        "api_url": args.api_url,
        "parallel_candidates": args.parallel_candidates,
    }
    for k, v in mapping.items():
        if v is not None:
            out[k] = v
    if args.no_auto_fix:
        out["auto_fix"] = False
    if args.no_cross_validate:
        out["cross_validate"] = False
    if args.run_polish:
        out["run_polish"] = True
    return out


def _parse_int(value: object, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _apply(cfg: Config, data: dict[str, Any]) -> None:
    for key, value in data.items():
        if key in BOOL_KEYS:
            setattr(cfg, key, parse_bool(value, key))
        elif key in INT_KEYS:
            setattr(cfg, key, _parse_int(value, key))
        elif key == "exclude":
            if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
                raise ConfigurationError("exclude must be a list of glob strings")
            cfg.exclude = list(value)
        else:
            setattr(cfg, key, str(value))


def _validate(cfg: Config) -> None:
    if cfg.mode not in MODES:
        raise ConfigurationError(f"mode must be one of {', '.join(sorted(MODES))}, got {cfg.mode!r}")
    if cfg.parallel_candidates < 1:
        raise ConfigurationError("parallel_candidates must be >= 1")
    if cfg.timeout <= 0:
        raise ConfigurationError("timeout must be > 0")

    if cfg.mode == "api":
        if not cfg.license_key:
            raise ConfigurationError("SLOPLESS_LICENSE_KEY is required for hosted scans")
        if not cfg.api_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"api_url must be an http(s) URL, got {cfg.api_url!r}")
    elif shutil.which(cfg.unslop_bin) is None:
        raise ConfigurationError(f"Scanner binary not found on PATH: {cfg.unslop_bin}")


def resolve_config(args: argparse.Namespace, env: Mapping[str, str] | None = None) -> Config:
    """
    Builds the run configuration once, layering defaults, the optional
    .slopless.yml file, environment variables and CLI flags (last wins).
    Raises ConfigurationError before any scan work happens.
    """
    env = os.environ if env is None else env

    workspace = Path(env.get("GITHUB_WORKSPACE") or ".")
    scan_path = _resolve_scan_path(workspace, args.path or env.get("SCAN_PATH"))
    config_path = _discover_config_path(args.config_path or env.get("SLOPLESS_CONFIG"), scan_path)

    data: dict[str, Any] = {}
    if config_path:
        data.update(_load_yaml(config_path))
    data.update(_load_env_overrides(env))
    data.update(_cli_overrides(args))

    cfg = Config(
        workspace=workspace,
        scan_path=scan_path,
        temp_dir=Path(env.get("RUNNER_TEMP") or "/tmp"),
        license_key=env.get("SLOPLESS_LICENSE_KEY") or None,
        github_output=_optional_path(env.get("GITHUB_OUTPUT")),
        step_summary=_optional_path(env.get("GITHUB_STEP_SUMMARY")),
        config_path=config_path,
        verbose=bool(args.verbose),
    )
    _apply(cfg, data)
    _validate(cfg)
    return cfg
