from __future__ import annotations

from urllib.parse import urlsplit

ALLOWED_SCHEMES = frozenset({"http", "https"})


def is_valid_url(candidate) -> bool:
    """True only for absolute http(s) URLs with a host.

    Imported files are untrusted, so everything else (javascript:, data:,
    file:, place: ...) is rejected. The check is stricter than a browser:
    surrounding or embedded whitespace is never trimmed or percent-encoded
    here, so callers strip their input first.
    """
    if not isinstance(candidate, str):
        return False
    text = candidate.strip()
    if not text or text != candidate or any(ch.isspace() for ch in text):
        return False
    try:
        parts = urlsplit(text)
        # Accessing .port validates the netloc.
        parts.port
    except ValueError:
        return False
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return False
    return bool(parts.hostname)
