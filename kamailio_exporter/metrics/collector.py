"""
Kamailio stats collector
Runs one collection cycle per scrape: pkg memory stats and the generic stats
are fetched independently and whatever succeeds is exported
"""

from typing import Dict, List

import structlog

from ..kamailio.client import KamailioRPCClient, KamailioRPCError
from ..kamailio.stats import MemoryEntry, fetch_memory_stats, fetch_stats
from ..monitoring.metrics import SCRAPE_ERRORS
from .catalog import MetricCatalog
from .models import MetricSample
from .sink import build_metric_families
from .translator import MetricTranslator

logger = structlog.get_logger(__name__)


class StatsCollector:
    """Custom prometheus_client collector backed by Kamailio's ctl socket.

    Holds no state between cycles besides the client settings and the
    immutable catalog, so overlapping scrapes are safe.
    """

    def __init__(self, client: KamailioRPCClient, catalog: MetricCatalog):
        self.client = client
        self.catalog = catalog
        self.translator = MetricTranslator(catalog)

    def describe(self):
        # registering must not trigger a round trip to Kamailio
        return []

    def collect(self):
        """Part of the prometheus_client collector interface"""
        return build_metric_families(self.collect_samples())

    def collect_samples(self) -> List[MetricSample]:
        """Run both fetch branches and return the samples they produced"""
        memory_entries: List[MemoryEntry] = []
        stats: Dict[str, str] = {}

        logger.debug("Fetching PKG memory stats")
        try:
            memory_entries = fetch_memory_stats(self.client)
        except KamailioRPCError as e:
            SCRAPE_ERRORS.labels(fetch="memory").inc()
            logger.error("Could not fetch PKG memory stats from Kamailio", error=str(e))
        else:
            logger.debug("Pushing metrics of memory stats", entries=len(memory_entries))

        logger.debug("Fetching stats from statistics module")
        try:
            stats = fetch_stats(self.client)
        except KamailioRPCError as e:
            SCRAPE_ERRORS.labels(fetch="stats").inc()
            logger.error("Could not fetch stats from Kamailio", error=str(e))
        else:
            logger.debug("Pushing metrics of standard and scripted stats", stats=len(stats))

        # a failed branch contributes an empty input
        return self.translator.translate(stats, memory_entries) + self.translator.translate_scripted(stats)
