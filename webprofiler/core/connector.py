"""Connection establishment with per-candidate failover."""

import asyncio
import logging
import ssl
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Sequence

from .errors import ConnectError, TlsHandshakeError
from .models import DEFAULT_CONNECT_TIMEOUT, AddressCandidate

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT = 1.0


@dataclass
class Connection:
    """A single-use transport owned by exactly one attempt."""

    candidate: AddressCandidate
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    is_tls: bool = False

    async def close(self, timeout: float = CLOSE_TIMEOUT) -> None:
        """Close the transport, logging rather than raising on teardown errors."""
        self.writer.close()
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout)
        except asyncio.TimeoutError:
            # TLS peers that never answer close_notify
            self.writer.transport.abort()
        except OSError as e:
            logger.debug(f"Error closing connection to {self.candidate}: {e}")


def create_ssl_context(insecure: bool = False) -> ssl.SSLContext:
    """Create an SSL context backed by the default trust store."""
    ctx = ssl.create_default_context()
    if insecure:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


class Connector:
    """
    Opens a connection to the first reachable candidate.

    Each candidate gets one try bounded by the connect timeout. For TLS
    targets the handshake runs over the first transport that connects and
    must finish within what is left of that candidate's connect budget.
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        self.connect_timeout = connect_timeout
        self._ssl_context = ssl_context

    @property
    def ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            self._ssl_context = create_ssl_context()
        return self._ssl_context

    async def connect(
        self,
        candidates: Sequence[AddressCandidate],
        is_tls: bool = False,
        server_hostname: Optional[str] = None,
    ) -> Connection:
        """
        Connect to the first candidate that accepts.

        Raises:
            ConnectError: If every candidate refused or timed out
            TlsHandshakeError: If the TLS handshake fails on the connected candidate
        """
        attempted: List[str] = []

        for candidate in candidates:
            started = time.perf_counter()
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(
                        candidate.host, candidate.port, family=candidate.family
                    ),
                    self.connect_timeout,
                )
            except asyncio.TimeoutError:
                error = f"{candidate}: timed out after {self.connect_timeout}s"
            except OSError as e:
                error = f"{candidate}: {e.strerror or e}"
            else:
                connection = Connection(candidate, reader, writer)
                if is_tls:
                    remaining = self.connect_timeout - (time.perf_counter() - started)
                    await self._handshake(connection, server_hostname, remaining)
                return connection

            logger.warning(f"Error connecting to {error}")
            attempted.append(error)

        raise ConnectError("No candidate address was reachable", attempted)

    async def _handshake(
        self, connection: Connection, server_hostname: Optional[str], budget: float
    ) -> None:
        hostname = server_hostname or connection.candidate.host
        try:
            await asyncio.wait_for(
                connection.writer.start_tls(
                    self.ssl_context, server_hostname=hostname
                ),
                max(budget, 0.0),
            )
        except asyncio.TimeoutError as e:
            await connection.close()
            raise TlsHandshakeError(
                f"TLS handshake with {connection.candidate} timed out"
            ) from e
        except OSError as e:
            await connection.close()
            raise TlsHandshakeError(
                f"TLS handshake with {connection.candidate} failed: {e}"
            ) from e
        connection.is_tls = True

    @asynccontextmanager
    async def open(
        self,
        candidates: Sequence[AddressCandidate],
        is_tls: bool = False,
        server_hostname: Optional[str] = None,
    ) -> AsyncIterator[Connection]:
        """Connect and guarantee the connection is closed on every exit path."""
        connection = await self.connect(candidates, is_tls, server_hostname)
        try:
            yield connection
        finally:
            await connection.close()
