#!/usr/bin/env python3
"""
Kamailio Exporter - Main Entry Point
Polls Kamailio over BINRPC on every scrape and serves the result to Prometheus
"""

import argparse
import sys
from typing import List, Optional

import uvicorn

from . import __version__
from .config.settings import ConfigValidationError, Settings, parse_labels
from .kamailio.client import KamailioRPCClient
from .metrics.catalog import MetricCatalog
from .metrics.collector import StatsCollector
from .server import create_app
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _label(value: str):
    try:
        labels = parse_labels(value)
    except ConfigValidationError as e:
        raise argparse.ArgumentTypeError(str(e))
    if len(labels) != 1:
        raise argparse.ArgumentTypeError(f"Expected a single name=value pair, got {value!r}")
    return labels


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog='kamailio-exporter',
        description='Prometheus exporter for Kamailio statistics',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--config', help='INI configuration file')

    kamailio = parser.add_argument_group('kamailio')
    kamailio.add_argument('--socket-path',
                          help='ctl Unix domain socket, takes precedence over --host')
    kamailio.add_argument('--host', help='ctl TCP host')
    kamailio.add_argument('--port', type=int, help='ctl TCP port')
    kamailio.add_argument('--timeout', type=float,
                          help='Deadline in seconds for each ctl socket operation, 0 disables it')

    exporter = parser.add_argument_group('exporter')
    exporter.add_argument('--listen-address', help='HTTP listen address')
    exporter.add_argument('--listen-port', type=int, help='HTTP listen port')
    exporter.add_argument('--metrics-path', help='Path the metrics are served under')
    exporter.add_argument('--label', dest='labels', action='append', type=_label, default=[],
                          metavar='NAME=VALUE', help='Constant label added to every metric (repeatable)')

    logging_group = parser.add_argument_group('logging')
    logging_group.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                               type=str.upper, help='Log level')
    logging_group.add_argument('--log-format', choices=['console', 'json'], type=str.lower,
                               help='Log output format')
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    """Load settings and apply command line overrides on top"""
    const_labels = {}
    for label in args.labels:
        const_labels.update(label)

    settings = Settings(args.config).load()
    settings.apply_overrides(
        kamailio_socket_path=args.socket_path,
        kamailio_host=args.host,
        kamailio_port=args.port,
        kamailio_timeout=args.timeout,
        exporter_listen_address=args.listen_address,
        exporter_listen_port=args.listen_port,
        exporter_metrics_path=args.metrics_path,
        logging_level=args.log_level,
        logging_format=args.log_format,
        const_labels=const_labels,
    )
    # an explicit --host without --socket-path selects TCP
    if args.host and args.socket_path is None:
        settings.apply_overrides(kamailio_socket_path="")
    return settings.validate()


def run(settings: Settings):
    """Wire the pipeline together and serve until interrupted"""
    client = KamailioRPCClient.from_config(settings.kamailio)
    catalog = MetricCatalog(settings.const_labels)
    collector = StatsCollector(client, catalog)
    app = create_app(collector, metrics_path=settings.exporter.metrics_path)

    logger.info("Starting Kamailio exporter",
                version=__version__,
                kamailio=settings.kamailio.endpoint,
                listen_address=settings.exporter.listen_address,
                listen_port=settings.exporter.listen_port,
                metrics_path=settings.exporter.metrics_path)

    uvicorn.run(
        app,
        host=settings.exporter.listen_address,
        port=settings.exporter.listen_port,
        log_level=settings.logging.level.lower(),
        log_config=None,
        access_log=False,
        server_header=False,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)

    try:
        settings = build_settings(args)
    except ConfigValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(settings.logging.level, settings.logging.format)
    logger.debug("Effective configuration", **settings.to_dict())

    try:
        run(settings)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except OSError as e:
        logger.error("Failed to start HTTP server", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
