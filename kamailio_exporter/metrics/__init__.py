"""Metric catalog, translation and collection"""

from .models import MetricKind, MetricDescriptor, MetricSample, LabelCountError
from .catalog import MetricCatalog, StatMapping, scripted_descriptor
from .translator import MetricTranslator, scripted_kind
from .sink import build_metric_families
from .collector import StatsCollector

__all__ = [
    "MetricKind",
    "MetricDescriptor",
    "MetricSample",
    "LabelCountError",
    "MetricCatalog",
    "StatMapping",
    "scripted_descriptor",
    "MetricTranslator",
    "scripted_kind",
    "build_metric_families",
    "StatsCollector",
]
