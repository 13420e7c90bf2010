"""
Translation of Kamailio stats into metric samples
Well-known stats and pkg memory go through the catalog, script.* stats get
descriptors synthesized on the fly
"""

from typing import List, Mapping, Optional, Sequence, Tuple

import structlog

from ..kamailio.stats import MemoryEntry
from .catalog import SCRIPT_PREFIX, SCRIPTED_COUNTER_SUFFIXES, MetricCatalog
from .models import LabelCountError, MetricDescriptor, MetricKind, MetricSample

logger = structlog.get_logger(__name__)

# MemoryEntry field, value of the "type" label
MEMORY_SAMPLE_TYPES: Tuple[Tuple[str, str], ...] = (
    ("used", "used"),
    ("free", "free"),
    ("real_used", "real_used"),
    ("total_size", "total"),
    ("total_frags", "total_frags"),
)


def scripted_kind(stat_key: str) -> MetricKind:
    """Counter for keys following the Prometheus unit suffix convention, gauge otherwise.

    The check runs against the full prefixed stat key.
    """
    if stat_key.endswith(SCRIPTED_COUNTER_SUFFIXES):
        return MetricKind.COUNTER
    return MetricKind.GAUGE


class MetricTranslator:
    """Builds metric samples from fetched stats using a MetricCatalog"""

    def __init__(self, catalog: MetricCatalog):
        self.catalog = catalog

    def translate(self, stats: Mapping[str, str], memory_entries: Sequence[MemoryEntry]) -> List[MetricSample]:
        """All well-known samples: pkg memory first, then the flat stats"""
        return self.translate_memory(memory_entries) + self.translate_stats(stats)

    def translate_memory(self, memory_entries: Sequence[MemoryEntry]) -> List[MetricSample]:
        """Five kamailio_pkg_bytes gauges per memory entry"""
        descriptor = self.catalog.pkg_memory
        samples = []
        for entry in memory_entries:
            base_labels = (entry.entry, entry.pid, entry.rank)
            for field_name, type_label in MEMORY_SAMPLE_TYPES:
                raw = getattr(entry, field_name)
                if raw == "":
                    logger.debug("Memory field not reported", field=field_name, pid=entry.pid)
                    continue
                sample = self._emit(descriptor, MetricKind.GAUGE, base_labels + (type_label,), raw, field_name)
                if sample is not None:
                    samples.append(sample)
        return samples

    def translate_stats(self, stats: Mapping[str, str]) -> List[MetricSample]:
        """One sample per catalog mapping whose stat key was reported"""
        samples = []
        for mapping in self.catalog.stat_mappings:
            raw = stats.get(mapping.stat_key)
            if raw is None:
                # not every Kamailio module is loaded, so missing keys are normal
                logger.debug("Skipping stat value, it was not returned by Kamailio", stat=mapping.stat_key)
                continue
            sample = self._emit(mapping.descriptor, mapping.kind, mapping.label_values, raw, mapping.stat_key)
            if sample is not None:
                samples.append(sample)
        return samples

    def translate_scripted(self, stats: Mapping[str, str]) -> List[MetricSample]:
        """Samples for user-defined script.* stats"""
        samples = []
        for stat_key, raw in stats.items():
            if not stat_key.startswith(SCRIPT_PREFIX):
                continue
            suffix = stat_key[len(SCRIPT_PREFIX):].lower()
            descriptor = self.catalog.scripted_descriptor(suffix)
            sample = self._emit(descriptor, scripted_kind(stat_key), (), raw, stat_key)
            if sample is not None:
                samples.append(sample)
        return samples

    @staticmethod
    def _emit(
        descriptor: MetricDescriptor,
        kind: MetricKind,
        label_values: Sequence[str],
        raw: str,
        source: str
    ) -> Optional[MetricSample]:
        try:
            value = float(raw)
        except ValueError:
            logger.warning("Could not convert stat value to float", stat=source, value=raw)
            return None

        try:
            return descriptor.sample(kind, label_values, value)
        except LabelCountError as e:
            logger.warning("Could not build metric sample", stat=source, error=str(e))
            return None
