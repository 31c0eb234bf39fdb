"""Data store access for valkys."""

from __future__ import annotations

from .client import ClientInfo, CommandStat, KeyDetail, StoreClient, connect
from .gateway import StoreGateway

__all__ = [
    "ClientInfo",
    "CommandStat",
    "KeyDetail",
    "StoreClient",
    "StoreGateway",
    "connect",
]
