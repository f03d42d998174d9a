"""Update-check version comparison."""

from __future__ import annotations

__all__ = ["is_newer_version"]


def is_newer_version(current: str, candidate: str) -> bool:
    """Return ``True`` when ``candidate`` should be offered as an update.

    Versions are compared as plain strings, so ``"0.10.0"`` is *not* newer
    than ``"0.9.0"``.
    """

    current = (current or "").strip()
    candidate = (candidate or "").strip()
    if not candidate:
        return False
    return candidate > current
