"""Value masking for credentials that end up in log lines."""

from __future__ import annotations

import re


def mask_for_log(value: str) -> str:
    """Return a partially-masked version of *value* safe for log output.

    Rules:
    - Preserve first 3 chars + last 2 chars for values >= 10 chars.
    - Shorter values get progressively fewer visible chars.
    """
    normalized = re.sub(r"\s+", " ", value or "").strip()
    length = len(normalized)
    if length <= 0:
        return ""
    if length <= 2:
        return "*" * length
    if length <= 4:
        return f"{normalized[:1]}{'*' * (length - 2)}{normalized[-1:]}"

    head = 3 if length >= 10 else 2
    tail = 2
    return f"{normalized[:head]}{'*' * (length - head - tail)}{normalized[-tail:]}"


def mask_url_query(url: str, parameter: str) -> str:
    """Mask the value of one query parameter inside *url*."""
    if not parameter:
        return url
    pattern = re.compile(rf"([?&]{re.escape(parameter)}=)([^&#]*)")
    return pattern.sub(lambda m: f"{m.group(1)}{mask_for_log(m.group(2))}", url)
