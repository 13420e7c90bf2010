"""
Kamailio statistics fetchers
Turns pkg.stats and stats.fetch replies into memory entries and a flat stat map
"""

from dataclasses import dataclass, fields
from typing import Dict, List, Sequence

import structlog

from .binrpc import BinRPCError, Record
from .client import KamailioRPCClient, KamailioRPCError

logger = structlog.get_logger(__name__)

PKG_STATS_COMMAND = "pkg.stats"
STATS_FETCH_COMMAND = "stats.fetch"
STATS_FETCH_ALL = "all"


@dataclass(frozen=True)
class MemoryEntry:
    """Private memory usage of one Kamailio process.

    Every field holds the decimal text of an integer, or "" when the
    process did not report it.
    """
    entry: str = ""
    pid: str = ""
    rank: str = ""
    used: str = ""
    free: str = ""
    real_used: str = ""
    total_size: str = ""
    total_frags: str = ""


MEMORY_ENTRY_FIELDS = frozenset(f.name for f in fields(MemoryEntry))


def normalize_memory_records(records: Sequence[Record]) -> List[MemoryEntry]:
    """Convert pkg.stats records into MemoryEntry objects, one per record"""
    entries = []
    logger.debug("Normalizing memory records", records=len(records))

    for index, record in enumerate(records):
        try:
            items = record.struct_items()
        except BinRPCError:
            logger.warning("Skipping memory record that is not a struct", index=index, type=record.type_name)
            continue

        values = {}
        for item in items:
            if item.key not in MEMORY_ENTRY_FIELDS:
                logger.debug("Ignoring unknown memory key", key=item.key)
                continue
            try:
                values[item.key] = str(item.value.as_int())
            except BinRPCError as e:
                logger.warning("Could not convert memory value to integer, ignoring", key=item.key, error=str(e))
        entries.append(MemoryEntry(**values))

    return entries


def build_stat_map(records: Sequence[Record]) -> Dict[str, str]:
    """Flatten the single struct returned by stats.fetch into key => value.

    Raises BinRPCError when the reply is empty or not a struct.
    """
    if not records:
        raise BinRPCError("stats.fetch returned no records")

    result = {}
    for item in records[0].struct_items():
        try:
            result[item.key] = item.value.as_str()
        except BinRPCError:
            logger.debug("Skipping stat with non-scalar value", key=item.key, type=item.value.type_name)
    return result


def fetch_memory_stats(client: KamailioRPCClient) -> List[MemoryEntry]:
    """Run pkg.stats and return the per-process memory entries"""
    records = client.invoke(PKG_STATS_COMMAND)
    logger.debug("Got memory records", records=len(records))
    return normalize_memory_records(records)


def fetch_stats(client: KamailioRPCClient) -> Dict[str, str]:
    """Run "stats.fetch all" and return the flat stat map"""
    records = client.invoke(STATS_FETCH_COMMAND, STATS_FETCH_ALL)
    try:
        return build_stat_map(records)
    except BinRPCError as e:
        raise KamailioRPCError(f"{STATS_FETCH_COMMAND}: unexpected reply shape: {e}") from e
