#!/usr/bin/env python3
"""
Prometheus self-metrics of the Kamailio exporter
"""

from prometheus_client import Counter, Histogram


# RPC round trips against the Kamailio ctl socket (label by command)
RPC_REQUESTS = Counter(
    "kamailio_exporter_rpc_requests_total",
    "Total BINRPC requests sent to Kamailio",
    labelnames=("command", "status"),
)

RPC_DURATION = Histogram(
    "kamailio_exporter_rpc_duration_seconds",
    "BINRPC round trip duration including connection setup",
    labelnames=("command",),
)

# Failed fetches per scrape branch
SCRAPE_ERRORS = Counter(
    "kamailio_exporter_scrape_errors_total",
    "Failed stats fetches while collecting",
    labelnames=("fetch",),
)
