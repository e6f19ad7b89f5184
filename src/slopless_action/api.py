from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from pathlib import Path

import requests

from slopless_action.config import Config
from slopless_action.errors import AuthenticationError, TransportError, UpstreamError

log = logging.getLogger("slopless_action")

CHUNK_SIZE = 8 * 1024


@dataclass
class UploadResponse:
    status_code: int
    body: bytes


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _form_fields(cfg: Config) -> dict[str, str]:
    return {
        "auto_fix": _flag(cfg.auto_fix),
        "cross_validate": _flag(cfg.cross_validate),
        "parallel_candidates": str(cfg.parallel_candidates),
        "run_polish": _flag(cfg.run_polish),
    }


def _timed_out(cfg: Config) -> TransportError:
    return TransportError(f"Scan upload timed out after {cfg.timeout}s", timed_out=True)


def upload_archive(cfg: Config, archive: Path) -> UploadResponse:
    """
    POSTs the workspace archive to the scan API.

    cfg.timeout bounds the whole exchange, not just each socket wait: the
    body is streamed and reading stops once the deadline has passed.
    Non-2xx responses are returned as-is; see check_response.
    """
    headers = {"Authorization": f"Bearer {cfg.license_key}"}
    log.info("Uploading %s to %s", archive.name, cfg.upload_url)
    deadline = time.monotonic() + cfg.timeout
    try:
        with archive.open("rb") as fh, requests.post(
            cfg.upload_url,
            headers=headers,
            files={"file": (archive.name, fh, "application/zip")},
            data=_form_fields(cfg),
            timeout=cfg.timeout,
            stream=True,
        ) as r:
            if time.monotonic() > deadline:
                raise _timed_out(cfg)
            chunks: list[bytes] = []
            for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise _timed_out(cfg)
                chunks.append(chunk)
            status_code = r.status_code
    except requests.Timeout as e:
        raise _timed_out(cfg) from e
    except (requests.RequestException, OSError) as e:
        raise TransportError(f"Scan upload failed: {e}") from e

    body = b"".join(chunks)
    log.debug("Scan API answered HTTP %d (%d bytes)", status_code, len(body))
    return UploadResponse(status_code=status_code, body=body)


def check_response(resp: UploadResponse) -> bytes:
    if resp.status_code == 401:
        raise AuthenticationError("Scan API rejected the license key (HTTP 401)")
    if not 200 <= resp.status_code < 300:
        raise UpstreamError(resp.status_code, resp.body)
    return resp.body
