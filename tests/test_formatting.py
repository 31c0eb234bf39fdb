from __future__ import annotations

import pytest

from valkys.utils.formatting import format_bytes, format_reply, format_ttl, format_uptime, hit_rate


@pytest.mark.parametrize(
    ("size", "expected"),
    [(None, "unknown"), (512, "512 B"), (1536, "1.5 KB"), (1048576, "1.0 MB"), (3 * 1024**3, "3.0 GB")],
)
def test_format_bytes(size: int | None, expected: str) -> None:
    assert format_bytes(size) == expected


@pytest.mark.parametrize(
    ("ttl", "expected"),
    [
        (None, "unknown"),
        (-1, "∞ (no expiration)"),
        (-2, "Key does not exist"),
        (0, "Expired"),
        (42, "42s"),
        (65, "1m 5s"),
        (7260, "2h 1m"),
        (2 * 86400 + 3 * 3600, "2d 3h"),
    ],
)
def test_format_ttl(ttl: int | None, expected: str) -> None:
    assert format_ttl(ttl) == expected


def test_format_uptime() -> None:
    assert format_uptime(59) == "59s"
    assert format_uptime(3700) == "1h 1m"
    assert format_uptime(90061) == "1d 1h 1m"


def test_format_reply_scalars() -> None:
    assert format_reply(None) == "(nil)"
    assert format_reply(True) == "OK"
    assert format_reply(7) == "(integer) 7"
    assert format_reply(b"bytes") == "bytes"
    assert format_reply("PONG") == "PONG"


def test_format_reply_collections() -> None:
    assert format_reply([]) == "(empty list)"
    assert format_reply(["a", None, 3]) == "1) a\n2) (nil)\n3) 3"
    assert format_reply({"field": "value"}) == "1) field\n2) value"


def test_hit_rate() -> None:
    assert hit_rate(0, 0) == 0.0
    assert hit_rate(3, 1) == pytest.approx(75.0)
