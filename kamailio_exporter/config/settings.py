"""
Configuration Settings for the Kamailio exporter
Centralized configuration management
"""

import configparser
import dataclasses
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_SOCKET_PATH = "/var/run/kamailio/kamailio_ctl"
DEFAULT_CTL_PORT = 2049
DEFAULT_LISTEN_PORT = 9494

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("console", "json")

_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class ConfigValidationError(Exception):
    """Custom exception for configuration validation errors."""
    pass


@dataclass(frozen=True)
class KamailioConfig:
    """Kamailio ctl connection configuration"""
    socket_path: str = DEFAULT_SOCKET_PATH
    host: str = ""
    port: int = DEFAULT_CTL_PORT
    timeout: float = 5.0

    @property
    def endpoint(self) -> str:
        if self.socket_path:
            return f"unix:{self.socket_path}"
        return f"tcp:{self.host}:{self.port}"


@dataclass(frozen=True)
class ExporterConfig:
    """HTTP exposition configuration"""
    listen_address: str = "0.0.0.0"
    listen_port: int = DEFAULT_LISTEN_PORT
    metrics_path: str = "/metrics"


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "console"


def parse_labels(value: str) -> Dict[str, str]:
    """Parse "name=value,name2=value2" into a label dict"""
    labels = {}
    for pair in value.split(","):
        pair = pair.strip()
        if not pair:
            continue
        name, sep, label_value = pair.partition("=")
        if not sep:
            raise ConfigValidationError(f"Invalid label {pair!r}, expected name=value")
        labels[name.strip()] = label_value.strip()
    return labels


class Settings:
    """Main settings class"""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file
        self.kamailio: KamailioConfig = KamailioConfig()
        self.exporter: ExporterConfig = ExporterConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self.const_labels: Dict[str, str] = {}
        self._config: Optional[configparser.ConfigParser] = None

    def load(self) -> "Settings":
        """Load configuration from file, falling back to environment variables"""
        if not self.config_file:
            self._load_from_env()
            return self

        config_path = Path(self.config_file)
        if not config_path.exists():
            logger.warning("Config file not found, using environment", file=self.config_file)
            self._load_from_env()
            return self

        self._config = configparser.ConfigParser(interpolation=None)
        # label names are case sensitive
        self._config.optionxform = str
        try:
            self._config.read(config_path)
            self._load_kamailio_config()
            self._load_exporter_config()
            self._load_labels()
            self._load_logging_config()
        except (configparser.Error, ValueError) as e:
            raise ConfigValidationError(f"Error parsing configuration file {self.config_file}: {e}") from e

        logger.info("Configuration loaded", file=self.config_file)
        return self

    def _load_kamailio_config(self):
        if 'kamailio' not in self._config:
            return

        section = self._config['kamailio']
        # a host without an explicit socket path selects TCP
        default_socket = "" if 'host' in section else self.kamailio.socket_path
        self.kamailio = KamailioConfig(
            socket_path=section.get('socket_path', default_socket),
            host=section.get('host', self.kamailio.host),
            port=section.getint('port', self.kamailio.port),
            timeout=section.getfloat('timeout', self.kamailio.timeout),
        )

    def _load_exporter_config(self):
        if 'exporter' not in self._config:
            return

        section = self._config['exporter']
        self.exporter = ExporterConfig(
            listen_address=section.get('listen_address', self.exporter.listen_address),
            listen_port=section.getint('listen_port', self.exporter.listen_port),
            metrics_path=section.get('metrics_path', self.exporter.metrics_path),
        )

    def _load_labels(self):
        if 'labels' not in self._config:
            return
        self.const_labels = {name: value for name, value in self._config['labels'].items()}

    def _load_logging_config(self):
        if 'logging' not in self._config:
            return

        section = self._config['logging']
        self.logging = LoggingConfig(
            level=section.get('level', self.logging.level).upper(),
            format=section.get('format', self.logging.format).lower(),
        )

    def _load_from_env(self):
        """Load configuration from environment variables as fallback"""
        logger.debug("Loading configuration from environment variables")

        host = os.getenv('KAMAILIO_HOST', '')
        try:
            self.kamailio = KamailioConfig(
                socket_path=os.getenv('KAMAILIO_SOCKET_PATH', '' if host else DEFAULT_SOCKET_PATH),
                host=host,
                port=int(os.getenv('KAMAILIO_PORT', str(DEFAULT_CTL_PORT))),
                timeout=float(os.getenv('KAMAILIO_TIMEOUT', '5.0')),
            )
            self.exporter = ExporterConfig(
                listen_address=os.getenv('EXPORTER_LISTEN_ADDRESS', '0.0.0.0'),
                listen_port=int(os.getenv('EXPORTER_LISTEN_PORT', str(DEFAULT_LISTEN_PORT))),
                metrics_path=os.getenv('EXPORTER_METRICS_PATH', '/metrics'),
            )
        except ValueError as e:
            raise ConfigValidationError(f"Invalid environment configuration: {e}") from e

        self.const_labels = parse_labels(os.getenv('EXPORTER_CONST_LABELS', ''))
        self.logging = LoggingConfig(
            level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            format=os.getenv('LOG_FORMAT', 'console').lower(),
        )

    def apply_overrides(self, **overrides: Any) -> "Settings":
        """Override individual values, e.g. from the command line.

        Keys are "<section>_<field>" (kamailio_host, exporter_listen_port,
        logging_level, ...); None values are ignored. "const_labels" is
        merged into the configured labels.
        """
        labels = overrides.pop('const_labels', None)
        if labels:
            self.const_labels = {**self.const_labels, **labels}

        for section_name in ('kamailio', 'exporter', 'logging'):
            section = getattr(self, section_name)
            changes = {}
            for field in dataclasses.fields(section):
                value = overrides.pop(f"{section_name}_{field.name}", None)
                if value is not None:
                    changes[field.name] = value
            if changes:
                setattr(self, section_name, dataclasses.replace(section, **changes))

        if overrides:
            raise ConfigValidationError(f"Unknown configuration keys: {', '.join(sorted(overrides))}")
        return self

    def validate(self) -> "Settings":
        """Check the loaded values, raising ConfigValidationError on the first problem"""
        if not self.kamailio.socket_path and not self.kamailio.host:
            raise ConfigValidationError("Either a ctl socket path or a ctl host must be configured")
        if not 0 < self.kamailio.port < 65536:
            raise ConfigValidationError(f"Invalid ctl port: {self.kamailio.port}")
        if self.kamailio.timeout < 0:
            raise ConfigValidationError(f"Timeout must not be negative: {self.kamailio.timeout}")
        if not 0 < self.exporter.listen_port < 65536:
            raise ConfigValidationError(f"Invalid listen port: {self.exporter.listen_port}")
        if not self.exporter.metrics_path.startswith('/'):
            raise ConfigValidationError(f"Metrics path must start with '/': {self.exporter.metrics_path}")
        if self.logging.level.upper() not in LOG_LEVELS:
            raise ConfigValidationError(f"Invalid log level: {self.logging.level}")
        if self.logging.format.lower() not in LOG_FORMATS:
            raise ConfigValidationError(f"Invalid log format: {self.logging.format}")

        for name in self.const_labels:
            if not _LABEL_NAME_RE.match(name) or name.startswith('__'):
                raise ConfigValidationError(f"Invalid label name: {name!r}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary"""
        return {
            'kamailio': dataclasses.asdict(self.kamailio),
            'exporter': dataclasses.asdict(self.exporter),
            'labels': dict(self.const_labels),
            'logging': dataclasses.asdict(self.logging),
        }
