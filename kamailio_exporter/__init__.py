"""
Kamailio Exporter
Prometheus exporter for the statistics of a running Kamailio SIP server
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
