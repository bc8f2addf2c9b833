"""Human ordering for file names: "page2" < "page10", case-insensitive."""
from __future__ import annotations

import re
from typing import Iterable

_RUN_RE = re.compile(r"(\d+)")


def natural_key(path: str) -> tuple:
    """
    Sort key splitting `path` into text and digit runs.

    Digit runs compare by value, text runs by `casefold()`. The raw string is
    appended as a final tie-breaker ("a01" vs "a1", "A.jpg" vs "a.jpg") so the
    order is total and identical across runs.
    """
    parts: list[tuple[int, int, str]] = []
    for i, run in enumerate(_RUN_RE.split(str(path))):
        if not run:
            continue
        if i % 2:
            parts.append((0, int(run), ""))
        else:
            parts.append((1, 0, run.casefold()))
    return (tuple(parts), str(path))


def natural_sorted(paths: Iterable[str]) -> list[str]:
    return sorted(paths, key=natural_key)


def compare(a: str, b: str) -> int:
    ka, kb = natural_key(a), natural_key(b)
    return (ka > kb) - (ka < kb)
