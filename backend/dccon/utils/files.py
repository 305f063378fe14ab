from __future__ import annotations

import re

FILENAME_SANITIZE_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
WHITESPACE_RE = re.compile(r"\s+")
BYTE_UNITS = ["B", "KB", "MB", "GB"]


def sanitize_filename(name: str | None, fallback: str = "untitled") -> str:
    if not name:
        return fallback
    cleaned = FILENAME_SANITIZE_RE.sub(" ", str(name))
    cleaned = WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned or fallback


def build_archive_filename(title: str | None, package_id: str | None) -> str:
    suffix = f"_{package_id}" if package_id else ""
    return f"{sanitize_filename(title, 'dccon')}{suffix}.zip"


def build_entry_name(sort: int, title: str | None, ext: str | None) -> str:
    padded = f"{sort:03d}"
    return f"{padded}_{sanitize_filename(title, f'dccon_{padded}')}.{ext or 'png'}"


def format_bytes(size: int | float | None) -> str:
    """Human readable size for display only, e.g. ``1536 -> "1.5 KB"``."""
    if not size:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    label = f"{int(value)}" if value.is_integer() else f"{value:.1f}"
    return f"{label} {BYTE_UNITS[unit]}"
