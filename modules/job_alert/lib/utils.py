from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

T = TypeVar("T")


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with millisecond precision and 'Z' suffix
    (the shape the cron trigger reports back).
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def getenv_str(name: str, default: str | None = None) -> str | None:
    """
    Typed wrapper for environment access. Empty strings count as unset.
    """
    val = os.getenv(name)
    return val if val not in (None, "") else default


def split_csv(raw: Any) -> list[str]:
    """Split 'a, b,,c' (or an iterable of strings) into trimmed, non-empty parts."""
    if raw is None:
        return []
    if isinstance(raw, (str, int, float)):
        parts = str(raw).split(",")
    else:
        parts = [str(x) for x in raw]
    return [p.strip() for p in parts if p and p.strip()]


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """
    Yield consecutive slices of `items` with at most `size` elements each.
    The last slice may be shorter.
    """
    if size < 1:
        raise ValueError(f"chunk size must be >= 1 (got {size})")
    for start in range(0, len(items), size):
        yield items[start : start + size]
