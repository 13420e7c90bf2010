"""
Metric descriptor and sample models
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Tuple


class MetricKind(str, Enum):
    """Numeric kind of an exported sample"""
    COUNTER = "counter"
    GAUGE = "gauge"


class LabelCountError(ValueError):
    """Label values do not match the descriptor's label schema"""
    pass


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text and label schema of an exported metric.

    Attributes:
        name: Full metric name, always prefixed with "kamailio_".
        help: Help text shown in the exposition.
        label_names: Ordered variable label names.
        const_labels: Constant (name, value) pairs added to every sample.
    """

    name: str
    help: str
    label_names: Tuple[str, ...] = ()
    const_labels: Tuple[Tuple[str, str], ...] = ()

    def sample(self, kind: MetricKind, label_values: Iterable[str], value: float) -> "MetricSample":
        """Create a sample of this metric.

        Raises:
            LabelCountError: if the number of label values differs from
                the number of label names.
        """
        label_values = tuple(label_values)
        if len(label_values) != len(self.label_names):
            raise LabelCountError(
                f"{self.name}: expected {len(self.label_names)} label values "
                f"{self.label_names}, got {len(label_values)}"
            )
        return MetricSample(descriptor=self, kind=kind, label_values=label_values, value=value)


@dataclass(frozen=True)
class MetricSample:
    """A single typed value of a metric"""

    descriptor: MetricDescriptor
    kind: MetricKind
    label_values: Tuple[str, ...]
    value: float

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def labels(self) -> Dict[str, str]:
        """Constant and variable labels merged into one mapping"""
        labels = dict(self.descriptor.const_labels)
        labels.update(zip(self.descriptor.label_names, self.label_values))
        return labels
