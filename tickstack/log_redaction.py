"""Keep API credentials out of log output.

The adapters send credentials two ways: CoinCap as a Bearer header, and
OpenWeatherMap / newsdata.io as ``appid=`` / ``apikey=`` query params.
Both shapes can leak into exception text (httpx puts the request URL in
its messages), so every message passes through ``redact_secrets``
before it reaches a handler.

Usage::

    from tickstack.log_redaction import apply_global_log_redaction
    apply_global_log_redaction()  # call once at startup
"""
from __future__ import annotations

import logging
import re

_REPLACEMENT = "***REDACTED***"

_QUERY_KEY_RE = re.compile(r"\b(apikey|appid)=[^&\s\"']+", re.IGNORECASE)
_BEARER_RE = re.compile(r"Bearer\s+[^\s\"']+", re.IGNORECASE)


def redact_secrets(msg: str, replacement: str = _REPLACEMENT) -> str:
    """Return *msg* with credential query params and Bearer tokens replaced."""
    if not msg:
        return msg
    result = _QUERY_KEY_RE.sub(lambda m: f"{m.group(1)}={replacement}", msg)
    return _BEARER_RE.sub(f"Bearer {replacement}", result)


def sanitize_url(url: str) -> str:
    """Mask the apikey/appid query params of a URL for safe logging."""
    return _QUERY_KEY_RE.sub(r"\1=***", url)


class LogRedactionFilter(logging.Filter):
    """Logging filter that redacts credentials from the message and its args."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        if record.msg and isinstance(record.msg, str):
            record.msg = redact_secrets(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_secrets(v) if isinstance(v, str) else v
                for v in record.args
            )
        elif isinstance(record.args, dict):
            record.args = {
                k: redact_secrets(v) if isinstance(v, str) else v
                for k, v in record.args.items()
            }
        return True


def apply_global_log_redaction() -> None:
    """Attach :class:`LogRedactionFilter` to the root logger's handlers."""
    filt = LogRedactionFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(filt)
