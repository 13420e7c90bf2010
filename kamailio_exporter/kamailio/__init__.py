"""Kamailio ctl access module"""

from .binrpc import BinRPCError, BinRPCFault, Record, StructItem
from .client import KamailioRPCClient, KamailioRPCError, KamailioConnectionError
from .stats import MemoryEntry, fetch_memory_stats, fetch_stats

__all__ = [
    "BinRPCError",
    "BinRPCFault",
    "Record",
    "StructItem",
    "KamailioRPCClient",
    "KamailioRPCError",
    "KamailioConnectionError",
    "MemoryEntry",
    "fetch_memory_stats",
    "fetch_stats",
]
