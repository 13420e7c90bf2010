"""
Hand-over of metric samples to prometheus_client
Groups samples into metric families, keeping the exported sample names unchanged
"""

from typing import Dict, Iterable, List, Set, Tuple

import structlog
from prometheus_client.metrics_core import Metric

from .models import MetricKind, MetricSample

logger = structlog.get_logger(__name__)

COUNTER_SUFFIX = "_total"


def family_name(name: str, kind: MetricKind) -> str:
    """Name of the metric family a sample called name belongs to.

    The text exposition announces counter families as "<family>_total",
    so counters whose sample name already carries the suffix drop it here.
    """
    if kind == MetricKind.COUNTER and name.endswith(COUNTER_SUFFIX):
        return name[:-len(COUNTER_SUFFIX)]
    return name


def build_metric_families(samples: Iterable[MetricSample]) -> List[Metric]:
    """Group samples by metric name into prometheus_client families.

    The first sample of a name fixes the family's kind and label schema;
    later samples that disagree are skipped, and so are repeated
    name + labels combinations (first one wins).
    """
    families: Dict[str, Metric] = {}
    schemas: Dict[str, Tuple[MetricKind, Tuple[str, ...]]] = {}
    owners: Dict[str, str] = {}
    seen: Set[Tuple[str, Tuple[Tuple[str, str], ...]]] = set()

    for sample in samples:
        descriptor = sample.descriptor
        schema = (sample.kind, descriptor.label_names)

        family = families.get(descriptor.name)
        if family is None:
            name = family_name(descriptor.name, sample.kind)
            # kamailio_x_total (counter) and kamailio_x (gauge) would share a family
            if name in owners:
                logger.warning(
                    "Skipping metric whose family name is already taken",
                    metric=descriptor.name,
                    family=name,
                    taken_by=owners[name],
                )
                continue
            try:
                family = Metric(name, descriptor.help, sample.kind.value)
            except ValueError as e:
                logger.warning("Skipping metric with invalid name", metric=descriptor.name, error=str(e))
                continue
            families[descriptor.name] = family
            schemas[descriptor.name] = schema
            owners[name] = descriptor.name
        elif schemas[descriptor.name] != schema:
            logger.warning(
                "Skipping sample conflicting with an earlier sample of the same metric",
                metric=descriptor.name,
                kind=sample.kind.value,
                labels=descriptor.label_names,
            )
            continue

        labels = sample.labels
        key = (descriptor.name, tuple(sorted(labels.items())))
        if key in seen:
            logger.debug("Dropping duplicate sample", metric=descriptor.name, labels=labels)
            continue
        seen.add(key)

        # sample names are exported exactly as catalogued
        family.add_sample(descriptor.name, labels, sample.value)

    return list(families.values())
