"""Exporter self-monitoring"""

from .metrics import RPC_DURATION, RPC_REQUESTS, SCRAPE_ERRORS

__all__ = [
    "RPC_DURATION",
    "RPC_REQUESTS",
    "SCRAPE_ERRORS",
]
