"""Shared fixtures: local servers and injectable resolvers."""

import asyncio
import socket
import ssl
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp.abc import AbstractResolver
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from webprofiler.core.models import AddressCandidate


def http_response(
    body: bytes = b"hello", status: str = "200 OK", headers: Optional[List[str]] = None
) -> bytes:
    """Build a raw response with a Content-Length header."""
    lines = [f"HTTP/1.1 {status}", f"Content-Length: {len(body)}"]
    lines.extend(headers or [])
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


def unused_port() -> int:
    """Return a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class CannedServer:
    """
    Local TCP server that answers every request with the same raw bytes.

    A response of None accepts the request and then never answers. With
    read_request=False the response is written as soon as a client connects.
    """

    def __init__(
        self,
        response: Optional[bytes],
        read_request: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        self.response = response
        self.read_request = read_request
        self.ssl_context = ssl_context
        self.connections = 0
        self.requests: List[bytes] = []
        self._release = asyncio.Event()
        self._server: Optional[asyncio.AbstractServer] = None
        self.port = 0

    async def start(self) -> "CannedServer":
        self._server = await asyncio.start_server(
            self._handle, "127.0.0.1", 0, ssl=self.ssl_context
        )
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    @property
    def candidate(self) -> AddressCandidate:
        return AddressCandidate("127.0.0.1", self.port)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.connections += 1
        try:
            if self.read_request:
                self.requests.append(await reader.readuntil(b"\r\n\r\n"))
            if self.response is None:
                await self._release.wait()
            else:
                writer.write(self.response)
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError, ssl.SSLError):
            pass
        finally:
            writer.close()

    async def close(self):
        self._release.set()
        self._server.close()
        await self._server.wait_closed()


@pytest_asyncio.fixture
async def serve():
    """Factory fixture starting CannedServers that are closed after the test."""
    servers: List[CannedServer] = []

    async def _serve(
        response: Optional[bytes],
        read_request: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> CannedServer:
        server = await CannedServer(response, read_request, ssl_context).start()
        servers.append(server)
        return server

    yield _serve

    for server in servers:
        await server.close()


@dataclass
class SelfSignedCert:
    cert_path: str
    key_path: str
    cert_pem: str

    def server_context(self) -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ctx.load_cert_chain(self.cert_path, self.key_path)
        return ctx


@pytest.fixture(scope="session")
def self_signed_cert(tmp_path_factory) -> SelfSignedCert:
    """Certificate valid for localhost only, written once per session."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=1))
        .not_valid_after(now + timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(private_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName("localhost")]),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )

    directory = tmp_path_factory.mktemp("certs")
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    cert_path = directory / "server.crt"
    key_path = directory / "server.key"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return SelfSignedCert(str(cert_path), str(key_path), cert_pem.decode("ascii"))


class FixedResolver(AbstractResolver):
    """aiohttp resolver returning a fixed list of addresses."""

    def __init__(self, addresses: List[Tuple[str, int]]):
        self.addresses = addresses
        self.calls = 0

    async def resolve(self, host, port=0, family=socket.AF_INET):
        self.calls += 1
        return [
            {
                "hostname": host,
                "host": address,
                "port": address_port,
                "family": socket.AF_INET,
                "proto": 0,
                "flags": 0,
            }
            for address, address_port in self.addresses
        ]

    async def close(self):
        pass


class _FixedHandler(BaseHTTPRequestHandler):
    body = b"<html>profiled</html>"

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        self.wfile.write(self.body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def threaded_http_server():
    """Blocking HTTP server on a thread, for code that runs its own event loop."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _FixedHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/"
    server.shutdown()
    server.server_close()
