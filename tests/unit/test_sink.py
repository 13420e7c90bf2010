"""
Test metric family building
"""

from prometheus_client import CollectorRegistry, generate_latest

from kamailio_exporter.metrics.models import MetricDescriptor, MetricKind
from kamailio_exporter.metrics.sink import build_metric_families, family_name


class StaticCollector:
    def __init__(self, families):
        self.families = families

    def collect(self):
        return self.families


def render(families) -> str:
    registry = CollectorRegistry()
    registry.register(StaticCollector(families))
    return generate_latest(registry).decode("utf-8")


def test_samples_are_grouped_by_name(catalog):
    descriptor = catalog.descriptor("kamailio_sl_reply_total")
    samples = [
        descriptor.sample(MetricKind.COUNTER, ["200"], 10.0),
        descriptor.sample(MetricKind.COUNTER, ["404"], 2.0),
        catalog.descriptor("kamailio_shm_fragments").sample(MetricKind.GAUGE, [], 17.0),
    ]

    families = build_metric_families(samples)

    assert len(families) == 2
    assert families[0].type == "counter"
    assert families[0].name == "kamailio_sl_reply"
    assert [(s.name, s.labels, s.value) for s in families[0].samples] == [
        ("kamailio_sl_reply_total", {"code": "200"}, 10.0),
        ("kamailio_sl_reply_total", {"code": "404"}, 2.0),
    ]
    assert families[1].type == "gauge"


def test_sample_names_are_exact():
    descriptor = MetricDescriptor("kamailio_dialog", "Ongoing Dialogs", ("type",))
    (family,) = build_metric_families([descriptor.sample(MetricKind.COUNTER, ["active_dialogs"], 3.0)])

    assert family.samples[0].name == "kamailio_dialog"
    assert 'kamailio_dialog{type="active_dialogs"} 3.0' in render([family])


def test_duplicate_samples_first_wins():
    first = MetricDescriptor("kamailio_custom_total", "Scripted metric custom_total")
    second = MetricDescriptor("kamailio_custom_total", "Scripted metric custom_total")

    (family,) = build_metric_families([
        first.sample(MetricKind.COUNTER, [], 5.0),
        second.sample(MetricKind.COUNTER, [], 9.0),
    ])

    assert [s.value for s in family.samples] == [5.0]


def test_conflicting_schema_is_skipped():
    gauge = MetricDescriptor("kamailio_tmx", "Ongoing Transactions", ("type",))
    scripted = MetricDescriptor("kamailio_tmx", "Scripted metric tmx")

    (family,) = build_metric_families([
        gauge.sample(MetricKind.GAUGE, ["active"], 4.0),
        scripted.sample(MetricKind.GAUGE, [], 1.0),
    ])

    assert [(s.labels, s.value) for s in family.samples] == [({"type": "active"}, 4.0)]


def test_const_labels_in_exposition():
    descriptor = MetricDescriptor("kamailio_shm_fragments", "Shared memory fragment count",
                                  const_labels=(("site", "ams"),))

    text = render(build_metric_families([descriptor.sample(MetricKind.GAUGE, [], 17.0)]))

    assert "# TYPE kamailio_shm_fragments gauge" in text
    assert 'kamailio_shm_fragments{site="ams"} 17.0' in text


def test_no_samples():
    assert build_metric_families([]) == []


def test_counter_type_line_matches_sample_name(catalog):
    stats_counter = catalog.descriptor("kamailio_sl_reply_total").sample(MetricKind.COUNTER, ["200"], 10.0)
    scripted_counter = catalog.scripted_descriptor("custom_total").sample(MetricKind.COUNTER, [], 5.0)

    text = render(build_metric_families([stats_counter, scripted_counter]))

    assert "# TYPE kamailio_sl_reply_total counter" in text
    assert "# HELP kamailio_sl_reply_total Stateless replies by code" in text
    assert 'kamailio_sl_reply_total{code="200"} 10.0' in text
    assert "# TYPE kamailio_custom_total counter" in text
    assert "kamailio_custom_total 5.0" in text
    assert "_total_total" not in text


def test_family_name():
    assert family_name("kamailio_sl_reply_total", MetricKind.COUNTER) == "kamailio_sl_reply"
    assert family_name("kamailio_dialog", MetricKind.COUNTER) == "kamailio_dialog"
    assert family_name("kamailio_buffer_total", MetricKind.GAUGE) == "kamailio_buffer_total"


def test_family_name_collision_is_skipped():
    gauge = MetricDescriptor("kamailio_calls", "Scripted metric calls")
    counter = MetricDescriptor("kamailio_calls_total", "Scripted metric calls_total")

    (family,) = build_metric_families([
        gauge.sample(MetricKind.GAUGE, [], 2.0),
        counter.sample(MetricKind.COUNTER, [], 7.0),
    ])

    assert family.type == "gauge"
    assert [s.name for s in family.samples] == ["kamailio_calls"]
