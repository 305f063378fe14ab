from __future__ import annotations

import re
from urllib.parse import parse_qs, urlsplit

QUERY_KEY_RE = re.compile(r"(?:package_(?:idx|id)|idx|no)=([0-9]+)", re.IGNORECASE)
FALLBACK_DIGITS_RE = re.compile(r"([0-9]{3,})(?![a-zA-Z])")
PACKAGE_DIGITS_RE = re.compile(r"[0-9]{3,}")
DIGITS_RE = re.compile(r"[0-9]+")
QUERY_PARAM_NAMES = ("package_idx", "package_id", "idx", "no", "id")


def extract_package_id(raw: str | None) -> str | None:
    """Pull a numeric dccon package id out of a URL, a ``#12345`` fragment or free text."""
    if not raw:
        return None
    text = str(raw).strip()
    if not text:
        return None

    match = QUERY_KEY_RE.search(text)
    if match:
        return match.group(1)

    from_url = _from_url(text if text.startswith("http") else f"https://{text}")
    if from_url:
        return from_url

    candidates = FALLBACK_DIGITS_RE.findall(text)
    return candidates[-1] if candidates else None


def _from_url(candidate: str) -> str | None:
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return None

    if PACKAGE_DIGITS_RE.fullmatch(parts.fragment):
        return parts.fragment

    query = parse_qs(parts.query)
    for key in QUERY_PARAM_NAMES:
        values = query.get(key)
        if values and DIGITS_RE.fullmatch(values[0]):
            return values[0]

    for segment in reversed([s for s in parts.path.split("/") if s]):
        if PACKAGE_DIGITS_RE.fullmatch(segment):
            return segment
    return None
