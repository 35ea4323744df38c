"""Data models for profiling runs."""

import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union
from urllib.parse import quote, urlsplit

from multidict import CIMultiDict

DEFAULT_PORTS = {"http": 80, "https": 443}

# Naive bot filters tend to reject non-browser agents outright
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_WRITE_TIMEOUT = 3.0
DEFAULT_READ_TIMEOUT = 3.0


class Phase(str, Enum):
    """Lifecycle phase of an attempt in which a failure happened."""

    RESOLVE = "resolve"
    CONNECT = "connect"
    TLS = "tls"
    WRITE = "write"
    READ = "read"
    PARSE = "parse"


def normalize_count(value: Any) -> int:
    """Coerce a repeat count to a positive integer, falling back to 1."""
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 1
    return count if count > 0 else 1


@dataclass(frozen=True)
class UrlTarget:
    """Validated, immutable representation of the URL being profiled."""

    scheme: str
    host: str
    port: int
    path: str

    @classmethod
    def parse(cls, url: str) -> "UrlTarget":
        """
        Parse and validate a URL.

        Raises:
            UnsupportedScheme: If the scheme is not http or https
            InvalidUrl: If the host or port cannot be determined
        """
        from .errors import InvalidUrl, UnsupportedScheme

        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError as e:
            raise InvalidUrl(f"Did not receive a valid URL: {e}") from e

        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            raise UnsupportedScheme(
                f"Unsupported scheme {scheme or '(none)'!r}: only http and https are supported"
            )

        host = parts.hostname
        if not host:
            raise InvalidUrl(f"Did not receive a valid URL: no host in {url!r}")
        if ":" not in host:
            # Empty or over-long labels fail the idna codec
            try:
                host = host.encode("idna").decode("ascii")
            except UnicodeError as e:
                raise InvalidUrl(f"Did not receive a valid URL: bad host {host!r}") from e

        path = quote(parts.path or "/", safe="/%:@!$&'()*+,;=~-._")
        if parts.query:
            path = f"{path}?{quote(parts.query, safe='/%:@!$&()*+,;=?~-._')}"

        return cls(
            scheme=scheme,
            host=host,
            port=port if port is not None else DEFAULT_PORTS[scheme],
            path=path,
        )

    @property
    def is_tls(self) -> bool:
        return self.scheme == "https"

    @property
    def host_header(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port == DEFAULT_PORTS[self.scheme]:
            return host
        return f"{host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host_header}{self.path}"


@dataclass(frozen=True)
class AddressCandidate:
    """One resolved address for the target host."""

    host: str
    port: int
    family: int = socket.AF_INET

    def __str__(self) -> str:
        if self.family == socket.AF_INET6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass
class ProfileConfig:
    """Configuration for a single profiling run."""

    count: int = 1
    concurrency: int = 1

    # Phase timeouts (seconds); the read timeout applies to each read call
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT

    user_agent: str = DEFAULT_USER_AGENT

    # SSL
    insecure_ssl: bool = False

    def __post_init__(self):
        self.count = normalize_count(self.count)
        self.concurrency = normalize_count(self.concurrency)

    @property
    def is_sequential(self) -> bool:
        """Check if attempts run one after another."""
        return self.concurrency == 1


@dataclass
class HttpResponse:
    """A parsed HTTP response. Lives only as long as its attempt."""

    status: int
    reason: str
    version: str
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: bytes = b""

    @property
    def size(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class AttemptSuccess:
    """An attempt that received and parsed a complete response."""

    attempt: int
    status: int
    body_size: int
    elapsed: float  # seconds

    success = True

    @property
    def is_error_status(self) -> bool:
        return not 200 <= self.status < 300

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "success": True,
            "status": self.status,
            "body_size": self.body_size,
            "elapsed": self.elapsed,
            "phase": None,
            "detail": None,
        }


@dataclass(frozen=True)
class AttemptFailure:
    """An attempt that stopped in one of its phases."""

    attempt: int
    phase: Phase
    detail: str
    # Time from the start of connecting to the failure; None if resolution failed
    elapsed: Optional[float] = None

    success = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "success": False,
            "status": None,
            "body_size": None,
            "elapsed": self.elapsed,
            "phase": self.phase.value,
            "detail": self.detail,
        }


AttemptOutcome = Union[AttemptSuccess, AttemptFailure]


@dataclass(frozen=True)
class ProfileReport:
    """Read-only aggregate over every outcome of one run."""

    request_count: int
    successful_requests: int
    success_percentage: float
    error_status_percentage: float
    error_status_codes: FrozenSet[int]

    # Timing over successes only (seconds); None when nothing succeeded
    fastest: Optional[float]
    mean: Optional[float]
    median: Optional[float]
    slowest: Optional[float]

    # Body sizes over successes only (bytes)
    smallest_size: Optional[int]
    largest_size: Optional[int]

    failures: Tuple[AttemptFailure, ...] = ()

    # Only surfaced for runs of more than one request
    longest_body: Optional[bytes] = field(default=None, repr=False)


def failure_details(failures: List[AttemptFailure]) -> List[str]:
    """Render failures as ``phase: detail`` strings."""
    return [f"{f.phase.value}: {f.detail}" for f in failures]
