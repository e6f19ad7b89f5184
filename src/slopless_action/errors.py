from __future__ import annotations


class SloplessError(Exception):
    """Base class for every failure the action reports."""


class ConfigurationError(SloplessError):
    pass


class PackagingError(SloplessError):
    pass


class TransportError(SloplessError):
    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class AuthenticationError(SloplessError):
    pass


class UpstreamError(SloplessError):
    def __init__(self, status_code: int, body: bytes):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Scan API returned HTTP {status_code}")

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class ScanFailedError(SloplessError):
    pass


class ScannerError(SloplessError):
    pass


class ParseError(SloplessError):
    """Raised for unreadable scan JSON; the parser degrades to an empty result."""
