"""Error taxonomy for profiling runs."""

from typing import List, Optional

from .models import Phase


class ProfilerError(Exception):
    """Base class for every error raised by the profiler."""


class UnsupportedScheme(ProfilerError):
    """The target URL uses a scheme other than http or https."""


class InvalidUrl(ProfilerError):
    """The target URL cannot be parsed into a host and port."""


class AttemptError(ProfilerError):
    """An error that ends a single attempt without stopping the run."""

    phase: Phase


class ResolveError(AttemptError):
    phase = Phase.RESOLVE


class ConnectError(AttemptError):
    """Every candidate address refused or timed out."""

    phase = Phase.CONNECT

    def __init__(self, message: str, attempted: Optional[List[str]] = None):
        self.attempted = list(attempted or [])
        if self.attempted:
            message = f"{message} ({'; '.join(self.attempted)})"
        super().__init__(message)


class TlsHandshakeError(AttemptError):
    phase = Phase.TLS


class WriteError(AttemptError):
    phase = Phase.WRITE


class WriteTimeout(WriteError):
    pass


class ReadError(AttemptError):
    phase = Phase.READ


class ReadTimeout(ReadError):
    pass


class MalformedResponseError(AttemptError):
    phase = Phase.PARSE
