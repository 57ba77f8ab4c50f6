from typing import Optional


class HealthcheckError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class TargetURLError(HealthcheckError, ValueError):
    """Missing, unparsable or non-http(s) target URL. Never retried."""

    status_code = 400


class RequestDataError(HealthcheckError):
    """A required body field is missing."""

    status_code = 400


class ConfigError(HealthcheckError):
    """Server-side configuration is incomplete (e.g. missing API credential)."""

    status_code = 500


class UpstreamError(HealthcheckError):
    """A dependency failed; carries its status when it sent an error status, else 500."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        if status_code is None or status_code < 400:
            status_code = 500
        super().__init__(message, status_code)


class CensusError(HealthcheckError):
    """Rendered census failed (navigation, timeout, browser crash)."""

    status_code = 500
