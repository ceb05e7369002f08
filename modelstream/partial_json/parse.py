"""Best-effort parsing of JSON text that may still be growing."""

from __future__ import annotations

from typing import Any

from modelstream.partial_json.repair import repair_json, strict_loads


def parse_partial_json(text: str | None) -> Any | None:
    """Parse ``text`` as JSON, repairing a truncated tail first if needed.

    Complete documents are parsed as they are. Anything else goes through
    :func:`repair_json`. ``None`` means there is no usable value yet (empty
    input, or nothing recoverable). Never raises.
    """
    if text is None or not text.strip():
        return None

    try:
        return strict_loads(text)
    except (ValueError, RecursionError):
        pass

    repaired = repair_json(text)
    if not repaired:
        return None
    return strict_loads(repaired)
