"""Hostname resolution into ordered connection candidates."""

import logging
import socket
from typing import List, Optional

from aiohttp.abc import AbstractResolver
from aiohttp.resolver import ThreadedResolver

from .errors import ResolveError
from .models import AddressCandidate

logger = logging.getLogger(__name__)


class Resolver:
    """
    Resolves a hostname into the candidate addresses to try, in the order
    the system resolver returned them.

    Every call performs a fresh lookup, so consecutive attempts may land on
    different hosts.
    """

    def __init__(
        self,
        backend: Optional[AbstractResolver] = None,
        family: int = socket.AF_UNSPEC,
    ):
        """
        Args:
            backend: aiohttp resolver to use; a ThreadedResolver is created
                (and closed) per lookup when omitted
            family: Address family to ask for (AF_UNSPEC for IPv4 and IPv6)
        """
        self._backend = backend
        self.family = family

    async def resolve(self, host: str, port: int) -> List[AddressCandidate]:
        """
        Resolve host into candidates for the given port.

        Raises:
            ResolveError: If the name does not resolve to any address
        """
        backend = self._backend or ThreadedResolver()
        try:
            results = await backend.resolve(host, port, family=self.family)
        except (OSError, UnicodeError) as e:
            raise ResolveError(f"Could not resolve {host}: {e}") from e
        finally:
            if self._backend is None:
                await backend.close()

        candidates = [
            AddressCandidate(host=r["host"], port=r["port"], family=r["family"])
            for r in results
        ]
        if not candidates:
            raise ResolveError(f"Could not resolve {host}: no addresses returned")

        logger.debug(f"Resolved {host} to {', '.join(str(c) for c in candidates)}")
        return candidates
