"""Logging filters that scrub credentials from log output."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERNS = (
    re.compile(r"(Authorization:\s*Bearer\s+)[\w\.-]+", re.IGNORECASE),
    re.compile(r"(\"?access_token\"?\s*[:=]\s*\"?)[^\"\s,&]+", re.IGNORECASE),
    re.compile(r"(\"?password\"?\s*[:=]\s*\"?)[^\"\s,&]+", re.IGNORECASE),
    re.compile(r"([?&]key=)[^&\s]+", re.IGNORECASE),
)

REDACTED = "**REDACTED**"


def redact(text: str) -> str:
    """Return ``text`` with bearer tokens, passwords and API keys masked."""
    for pattern in _SENSITIVE_PATTERNS:
        text = pattern.sub(lambda match: match.group(1) + REDACTED, text)
    return text


class SensitiveFilter(logging.Filter):
    """Replace sensitive values in log messages with a redaction marker."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


__all__ = ["REDACTED", "SensitiveFilter", "redact"]
