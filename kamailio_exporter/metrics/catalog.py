"""
Well-known Kamailio metric catalog
Declares every exported metric and the stat key each sample is read from
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .models import MetricDescriptor, MetricKind

COUNTER = MetricKind.COUNTER
GAUGE = MetricKind.GAUGE

PKG_MEMORY_METRIC = "kamailio_pkg_bytes"

# name, help, variable label names
METRIC_DEFINITIONS: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = (
    ("kamailio_core_request_total", "Request counters", ("method",)),
    ("kamailio_core_rcv_request_total", "Received requests by method", ("method",)),
    ("kamailio_core_reply_total", "Reply counters", ("type",)),
    ("kamailio_core_rcv_reply_total", "Received replies by code", ("code",)),
    ("kamailio_shm_bytes", "Shared memory sizes", ("type",)),
    ("kamailio_shm_fragments", "Shared memory fragment count", ()),
    (PKG_MEMORY_METRIC, "Private memory", ("index", "pid", "rank", "type")),
    ("kamailio_dns_failed_request_total", "Failed dns requests", ()),
    ("kamailio_bad_uri_total", "Messages with bad uri", ()),
    ("kamailio_bad_msg_hdr", "Messages with bad message header", ()),
    ("kamailio_sl_reply_total", "Stateless replies by code", ("code",)),
    ("kamailio_sl_type_total", "Stateless replies by type", ("type",)),
    ("kamailio_tcp_total", "TCP connection counters", ("type",)),
    ("kamailio_tcp_connections", "Opened TCP connections", ()),
    ("kamailio_tcp_writequeue", "TCP write queue size", ()),
    ("kamailio_tmx_code_total", "Completed Transaction counters by code", ("code",)),
    ("kamailio_tmx_type_total", "Completed Transaction counters by type", ("type",)),
    ("kamailio_tmx", "Ongoing Transactions", ("type",)),
    ("kamailio_tmx_rpl_total", "Tmx reply counters", ("type",)),
    ("kamailio_dialog", "Ongoing Dialogs", ("type",)),
)

# stat key, metric name, label value ("" for unlabelled metrics), kind
STAT_MAPPINGS: Tuple[Tuple[str, str, str, MetricKind], ...] = (
    # kamailio_core_request_total
    ("core.drop_requests", "kamailio_core_request_total", "drop", COUNTER),
    ("core.err_requests", "kamailio_core_request_total", "err", COUNTER),
    ("core.fwd_requests", "kamailio_core_request_total", "fwd", COUNTER),
    ("core.rcv_requests", "kamailio_core_request_total", "rcv", COUNTER),

    # kamailio_core_rcv_request_total
    ("core.rcv_requests_ack", "kamailio_core_rcv_request_total", "ack", COUNTER),
    ("core.rcv_requests_bye", "kamailio_core_rcv_request_total", "bye", COUNTER),
    ("core.rcv_requests_cancel", "kamailio_core_rcv_request_total", "cancel", COUNTER),
    ("core.rcv_requests_info", "kamailio_core_rcv_request_total", "info", COUNTER),
    ("core.rcv_requests_invite", "kamailio_core_rcv_request_total", "invite", COUNTER),
    ("core.rcv_requests_message", "kamailio_core_rcv_request_total", "message", COUNTER),
    ("core.rcv_requests_notify", "kamailio_core_rcv_request_total", "notify", COUNTER),
    ("core.rcv_requests_options", "kamailio_core_rcv_request_total", "options", COUNTER),
    ("core.rcv_requests_prack", "kamailio_core_rcv_request_total", "prack", COUNTER),
    ("core.rcv_requests_publish", "kamailio_core_rcv_request_total", "publish", COUNTER),
    ("core.rcv_requests_refer", "kamailio_core_rcv_request_total", "refer", COUNTER),
    ("core.rcv_requests_register", "kamailio_core_rcv_request_total", "register", COUNTER),
    ("core.rcv_requests_subscribe", "kamailio_core_rcv_request_total", "subscribe", COUNTER),
    ("core.rcv_requests_update", "kamailio_core_rcv_request_total", "update", COUNTER),
    ("core.unsupported_methods", "kamailio_core_rcv_request_total", "unsupported", COUNTER),

    # kamailio_core_reply_total
    ("core.drop_replies", "kamailio_core_reply_total", "drop", COUNTER),
    ("core.err_replies", "kamailio_core_reply_total", "err", COUNTER),
    ("core.fwd_replies", "kamailio_core_reply_total", "fwd", COUNTER),
    ("core.rcv_replies", "kamailio_core_reply_total", "rcv", COUNTER),

    # kamailio_core_rcv_reply_total
    ("core.rcv_replies_18x", "kamailio_core_rcv_reply_total", "18x", COUNTER),
    ("core.rcv_replies_1xx", "kamailio_core_rcv_reply_total", "1xx", COUNTER),
    ("core.rcv_replies_2xx", "kamailio_core_rcv_reply_total", "2xx", COUNTER),
    ("core.rcv_replies_3xx", "kamailio_core_rcv_reply_total", "3xx", COUNTER),
    ("core.rcv_replies_401", "kamailio_core_rcv_reply_total", "401", COUNTER),
    ("core.rcv_replies_404", "kamailio_core_rcv_reply_total", "404", COUNTER),
    ("core.rcv_replies_407", "kamailio_core_rcv_reply_total", "407", COUNTER),
    ("core.rcv_replies_408", "kamailio_core_rcv_reply_total", "408", COUNTER),
    ("core.rcv_replies_480", "kamailio_core_rcv_reply_total", "480", COUNTER),
    ("core.rcv_replies_486", "kamailio_core_rcv_reply_total", "486", COUNTER),
    ("core.rcv_replies_4xx", "kamailio_core_rcv_reply_total", "4xx", COUNTER),
    ("core.rcv_replies_5xx", "kamailio_core_rcv_reply_total", "5xx", COUNTER),
    ("core.rcv_replies_6xx", "kamailio_core_rcv_reply_total", "6xx", COUNTER),

    # kamailio_shm_bytes
    ("shmem.free_size", "kamailio_shm_bytes", "free", GAUGE),
    ("shmem.max_used_size", "kamailio_shm_bytes", "max_used", GAUGE),
    ("shmem.real_used_size", "kamailio_shm_bytes", "real_used", GAUGE),
    ("shmem.total_size", "kamailio_shm_bytes", "total", GAUGE),
    ("shmem.used_size", "kamailio_shm_bytes", "used", GAUGE),

    ("shmem.fragments", "kamailio_shm_fragments", "", GAUGE),
    ("dns.failed_dns_request", "kamailio_dns_failed_request_total", "", COUNTER),
    ("core.bad_URIs_rcvd", "kamailio_bad_uri_total", "", COUNTER),
    ("core.bad_msg_hdr", "kamailio_bad_msg_hdr", "", COUNTER),

    # kamailio_sl_reply_total
    ("sl.1xx_replies", "kamailio_sl_reply_total", "1xx", COUNTER),
    ("sl.200_replies", "kamailio_sl_reply_total", "200", COUNTER),
    ("sl.202_replies", "kamailio_sl_reply_total", "202", COUNTER),
    ("sl.2xx_replies", "kamailio_sl_reply_total", "2xx", COUNTER),
    ("sl.300_replies", "kamailio_sl_reply_total", "300", COUNTER),
    ("sl.301_replies", "kamailio_sl_reply_total", "301", COUNTER),
    ("sl.302_replies", "kamailio_sl_reply_total", "302", COUNTER),
    ("sl.3xx_replies", "kamailio_sl_reply_total", "3xx", COUNTER),
    ("sl.400_replies", "kamailio_sl_reply_total", "400", COUNTER),
    ("sl.401_replies", "kamailio_sl_reply_total", "401", COUNTER),
    ("sl.403_replies", "kamailio_sl_reply_total", "403", COUNTER),
    ("sl.404_replies", "kamailio_sl_reply_total", "404", COUNTER),
    ("sl.407_replies", "kamailio_sl_reply_total", "407", COUNTER),
    ("sl.408_replies", "kamailio_sl_reply_total", "408", COUNTER),
    ("sl.483_replies", "kamailio_sl_reply_total", "483", COUNTER),
    ("sl.4xx_replies", "kamailio_sl_reply_total", "4xx", COUNTER),
    ("sl.500_replies", "kamailio_sl_reply_total", "500", COUNTER),
    ("sl.5xx_replies", "kamailio_sl_reply_total", "5xx", COUNTER),
    ("sl.6xx_replies", "kamailio_sl_reply_total", "6xx", COUNTER),

    # kamailio_sl_type_total
    ("sl.failures", "kamailio_sl_type_total", "failure", COUNTER),
    ("sl.received_ACKs", "kamailio_sl_type_total", "received_ack", COUNTER),
    ("sl.sent_err_replies", "kamailio_sl_type_total", "sent_err_reply", COUNTER),
    ("sl.sent_replies", "kamailio_sl_type_total", "sent_reply", COUNTER),
    ("sl.xxx_replies", "kamailio_sl_type_total", "xxx_reply", COUNTER),

    # kamailio_tcp_total
    ("tcp.con_reset", "kamailio_tcp_total", "con_reset", COUNTER),
    ("tcp.con_timeout", "kamailio_tcp_total", "con_timeout", COUNTER),
    ("tcp.connect_failed", "kamailio_tcp_total", "connect_failed", COUNTER),
    ("tcp.connect_success", "kamailio_tcp_total", "connect_success", COUNTER),
    ("tcp.established", "kamailio_tcp_total", "established", COUNTER),
    ("tcp.local_reject", "kamailio_tcp_total", "local_reject", COUNTER),
    ("tcp.passive_open", "kamailio_tcp_total", "passive_open", COUNTER),
    ("tcp.send_timeout", "kamailio_tcp_total", "send_timeout", COUNTER),
    ("tcp.sendq_full", "kamailio_tcp_total", "sendq_full", COUNTER),
    # kamailio_tcp_connections
    ("tcp.current_opened_connections", "kamailio_tcp_connections", "", GAUGE),
    # kamailio_tcp_writequeue
    ("tcp.current_write_queue_size", "kamailio_tcp_writequeue", "", GAUGE),

    # kamailio_tmx_code_total
    ("tmx.2xx_transactions", "kamailio_tmx_code_total", "2xx", COUNTER),
    ("tmx.3xx_transactions", "kamailio_tmx_code_total", "3xx", COUNTER),
    ("tmx.4xx_transactions", "kamailio_tmx_code_total", "4xx", COUNTER),
    ("tmx.5xx_transactions", "kamailio_tmx_code_total", "5xx", COUNTER),
    ("tmx.6xx_transactions", "kamailio_tmx_code_total", "6xx", COUNTER),
    # kamailio_tmx_type_total
    ("tmx.UAC_transactions", "kamailio_tmx_type_total", "uac", COUNTER),
    ("tmx.UAS_transactions", "kamailio_tmx_type_total", "uas", COUNTER),
    # kamailio_tmx
    ("tmx.active_transactions", "kamailio_tmx", "active", GAUGE),
    ("tmx.inuse_transactions", "kamailio_tmx", "inuse", GAUGE),

    # kamailio_tmx_rpl_total
    ("tmx.rpl_absorbed", "kamailio_tmx_rpl_total", "absorbed", COUNTER),
    ("tmx.rpl_generated", "kamailio_tmx_rpl_total", "generated", COUNTER),
    ("tmx.rpl_received", "kamailio_tmx_rpl_total", "received", COUNTER),
    ("tmx.rpl_relayed", "kamailio_tmx_rpl_total", "relayed", COUNTER),
    ("tmx.rpl_sent", "kamailio_tmx_rpl_total", "sent", COUNTER),

    # kamailio_dialog
    ("dialog.active_dialogs", "kamailio_dialog", "active_dialogs", COUNTER),
    ("dialog.early_dialogs", "kamailio_dialog", "early_dialogs", COUNTER),
    ("dialog.expired_dialogs", "kamailio_dialog", "expired_dialogs", COUNTER),
    ("dialog.failed_dialogs", "kamailio_dialog", "failed_dialogs", COUNTER),
    ("dialog.processed_dialogs", "kamailio_dialog", "processed_dialogs", COUNTER),
)

SCRIPT_PREFIX = "script."
SCRIPTED_COUNTER_SUFFIXES = ("_total", "_seconds", "_bytes")


@dataclass(frozen=True)
class StatMapping:
    """Maps one stat key to one sample of a well-known metric"""

    stat_key: str
    descriptor: MetricDescriptor
    label_value: str
    kind: MetricKind

    @property
    def label_values(self) -> Tuple[str, ...]:
        return (self.label_value,) if self.label_value else ()


def scripted_descriptor(suffix: str, const_labels: Tuple[Tuple[str, str], ...] = ()) -> MetricDescriptor:
    """Descriptor for a script.* stat, created fresh for every call"""
    return MetricDescriptor(
        name=f"kamailio_{suffix}",
        help=f"Scripted metric {suffix}",
        label_names=(),
        const_labels=const_labels,
    )


class MetricCatalog:
    """Immutable set of well-known metric descriptors and stat mappings.

    Built once at startup from the configured constant labels and shared
    read-only between collection cycles.
    """

    def __init__(self, const_labels: Optional[Mapping[str, str]] = None):
        self._const_labels = tuple((const_labels or {}).items())
        self._descriptors = MappingProxyType({
            name: MetricDescriptor(name, help_text, label_names, self._const_labels)
            for name, help_text, label_names in METRIC_DEFINITIONS
        })
        self._stat_mappings = tuple(
            StatMapping(stat_key, self._descriptors[metric], label_value, kind)
            for stat_key, metric, label_value, kind in STAT_MAPPINGS
        )

    @property
    def const_labels(self) -> Tuple[Tuple[str, str], ...]:
        return self._const_labels

    @property
    def descriptors(self) -> Mapping[str, MetricDescriptor]:
        return self._descriptors

    @property
    def stat_mappings(self) -> Tuple[StatMapping, ...]:
        return self._stat_mappings

    @property
    def pkg_memory(self) -> MetricDescriptor:
        return self._descriptors[PKG_MEMORY_METRIC]

    def descriptor(self, name: str) -> MetricDescriptor:
        return self._descriptors[name]

    def scripted_descriptor(self, suffix: str) -> MetricDescriptor:
        return scripted_descriptor(suffix, self._const_labels)
