"""
Kamailio BINRPC client
Opens one short-lived ctl connection per command, over a Unix domain socket
or TCP depending on configuration
"""

import socket
import time
from typing import List, Optional

import structlog

from . import binrpc
from ..monitoring.metrics import RPC_DURATION, RPC_REQUESTS

logger = structlog.get_logger(__name__)


class KamailioRPCError(Exception):
    """Kamailio command could not be completed"""
    pass


class KamailioConnectionError(KamailioRPCError):
    """Connect, write or read failure on the ctl socket"""
    pass


class KamailioRPCClient:
    """Sends BINRPC commands to Kamailio's ctl module"""

    def __init__(
        self,
        socket_path: str = "",
        host: str = "",
        port: int = 2049,
        timeout: Optional[float] = None
    ):
        """
        Initialize the client

        Args:
            socket_path: ctl Unix domain socket; takes precedence when non-empty
            host: ctl TCP host, used when socket_path is empty
            port: ctl TCP port
            timeout: Deadline in seconds for connect and each socket
                     operation, None to block indefinitely
        """
        self.socket_path = socket_path
        self.host = host
        self.port = port
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "KamailioRPCClient":
        """Build a client from a KamailioConfig section"""
        return cls(
            socket_path=config.socket_path,
            host=config.host,
            port=config.port,
            timeout=config.timeout or None,
        )

    @property
    def endpoint(self) -> str:
        if self.socket_path:
            return f"unix:{self.socket_path}"
        return f"tcp:{self.host}:{self.port}"

    def _connect(self) -> socket.socket:
        if self.socket_path:
            logger.debug("Connecting to Kamailio via domain socket", path=self.socket_path)
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(self.timeout)
            try:
                sock.connect(self.socket_path)
            except OSError:
                sock.close()
                raise
            return sock

        logger.debug("Connecting to Kamailio via TCP", host=self.host, port=self.port)
        return socket.create_connection((self.host, self.port), timeout=self.timeout)

    def invoke(self, command: str, param: Optional[str] = None) -> List[binrpc.Record]:
        """
        Execute a command and return the decoded reply records

        Args:
            command: RPC method name, e.g. "stats.fetch"
            param: Optional string parameter; None or "" sends the command alone

        Raises:
            KamailioConnectionError: socket level failure
            KamailioRPCError: malformed reply, cookie mismatch or fault reply
        """
        params = (param,) if param else ()
        packet, cookie = binrpc.build_request(command, *params)
        logger.debug("Sending command to Kamailio", command=command, param=param, endpoint=self.endpoint)

        status = "error"
        start_time = time.perf_counter()
        try:
            with self._connect() as sock:
                sock.sendall(packet)
                with sock.makefile("rb") as stream:
                    records = binrpc.read_reply(stream, cookie)
            status = "success"
        except binrpc.BinRPCFault as e:
            logger.error("Kamailio returned a fault", command=command, code=e.code, reason=e.message)
            raise KamailioRPCError(f"{command} failed: {e}") from e
        except binrpc.BinRPCError as e:
            logger.error("Invalid response from Kamailio", command=command, error=str(e))
            raise KamailioRPCError(f"{command}: invalid response: {e}") from e
        except OSError as e:
            logger.error("Error while talking to Kamailio", command=command, endpoint=self.endpoint, error=str(e))
            raise KamailioConnectionError(f"{command}: {self.endpoint}: {e}") from e
        finally:
            RPC_DURATION.labels(command=command).observe(time.perf_counter() - start_time)
            RPC_REQUESTS.labels(command=command, status=status).inc()

        logger.debug("Got response from Kamailio", command=command, records=len(records))
        return records
