"""Human readable formatting for sizes, TTLs, uptimes and command replies."""
from __future__ import annotations

from typing import Any, Optional

_UNITS = "KMGTPE"


def format_bytes(size: Optional[int]) -> str:
    """Render a byte count using binary prefixes (``1.5 KB``)."""

    if size is None:
        return "unknown"
    if size < 1024:
        return f"{size} B"
    div, exp = 1024, 0
    n = size // 1024
    while n >= 1024:
        div *= 1024
        exp += 1
        n //= 1024
    return f"{size / div:.1f} {_UNITS[exp]}B"


def format_ttl(ttl: Optional[int]) -> str:
    """Render a TTL in seconds, honouring the -1/-2 sentinels."""

    if ttl is None:
        return "unknown"
    if ttl == -1:
        return "∞ (no expiration)"
    if ttl == -2:
        return "Key does not exist"
    if ttl == 0:
        return "Expired"
    if ttl < 60:
        return f"{ttl}s"
    if ttl < 3600:
        return f"{ttl // 60}m {ttl % 60}s"
    if ttl < 86400:
        return f"{ttl // 3600}h {(ttl % 3600) // 60}m"
    return f"{ttl // 86400}d {(ttl % 86400) // 3600}h"


def format_uptime(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    if seconds < 86400:
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
    days, rest = divmod(seconds, 86400)
    return f"{days}d {rest // 3600}h {(rest % 3600) // 60}m"


def format_reply(reply: Any) -> str:
    """Render a raw command reply the way ``redis-cli`` prints it."""

    if reply is None:
        return "(nil)"
    if isinstance(reply, bool):
        return "OK" if reply else "(integer) 0"
    if isinstance(reply, int):
        return f"(integer) {reply}"
    if isinstance(reply, bytes):
        return reply.decode("utf-8", errors="replace")
    if isinstance(reply, dict):
        if not reply:
            return "(empty list)"
        flat: list[Any] = []
        for key, value in reply.items():
            flat.extend((key, value))
        return format_reply(flat)
    if isinstance(reply, (list, tuple, set)):
        items = list(reply)
        if not items:
            return "(empty list)"
        lines = []
        for index, item in enumerate(items, start=1):
            rendered = format_reply(item) if isinstance(item, (list, tuple, dict)) else _scalar(item)
            lines.append(f"{index}) {rendered}")
        return "\n".join(lines)
    return str(reply)


def _scalar(value: Any) -> str:
    if value is None:
        return "(nil)"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def hit_rate(hits: int, misses: int) -> float:
    total = hits + misses
    if total <= 0:
        return 0.0
    return hits / total * 100


__all__ = ["format_bytes", "format_reply", "format_ttl", "format_uptime", "hit_rate"]
