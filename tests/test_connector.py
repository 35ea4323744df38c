import asyncio
import ssl

import pytest
from conftest import http_response, unused_port

from webprofiler.core import connector as connector_module
from webprofiler.core.connector import Connection, Connector, create_ssl_context
from webprofiler.core.errors import ConnectError, TlsHandshakeError
from webprofiler.core.models import AddressCandidate, Phase


@pytest.mark.asyncio
async def test_connects_to_first_candidate(serve):
    server = await serve(http_response())
    connection = await Connector().connect([server.candidate])
    try:
        assert connection.candidate == server.candidate
        assert not connection.is_tls
    finally:
        await connection.close()


@pytest.mark.asyncio
async def test_fails_over_to_next_candidate(serve):
    server = await serve(http_response())
    refused = AddressCandidate("127.0.0.1", unused_port())

    async with Connector().open([refused, server.candidate]) as connection:
        assert connection.candidate == server.candidate


@pytest.mark.asyncio
async def test_all_candidates_refused():
    candidates = [
        AddressCandidate("127.0.0.1", unused_port()),
        AddressCandidate("127.0.0.1", unused_port()),
    ]
    with pytest.raises(ConnectError) as excinfo:
        await Connector().connect(candidates)

    assert excinfo.value.phase == Phase.CONNECT
    assert len(excinfo.value.attempted) == 2
    assert str(candidates[0]) in excinfo.value.attempted[0]


@pytest.mark.asyncio
async def test_connect_timeout_moves_on(monkeypatch):
    attempted = []

    async def hang(host, port, **kwargs):
        attempted.append(port)
        await asyncio.sleep(10)

    monkeypatch.setattr(connector_module.asyncio, "open_connection", hang)
    candidates = [AddressCandidate("192.0.2.1", 80), AddressCandidate("192.0.2.2", 81)]

    with pytest.raises(ConnectError, match="timed out"):
        await Connector(connect_timeout=0.05).connect(candidates)
    assert attempted == [80, 81]


@pytest.mark.asyncio
async def test_tls_handshake_failure_is_its_own_phase(serve):
    server = await serve(b"this is not a TLS server\r\n\r\n", read_request=False)

    with pytest.raises(TlsHandshakeError) as excinfo:
        await Connector(connect_timeout=2).connect(
            [server.candidate], is_tls=True, server_hostname="localhost"
        )
    assert excinfo.value.phase == Phase.TLS


@pytest.mark.asyncio
async def test_open_closes_connection_on_error(serve):
    server = await serve(http_response())

    with pytest.raises(RuntimeError):
        async with Connector().open([server.candidate]) as connection:
            raise RuntimeError("boom")
    assert connection.writer.is_closing()


@pytest.mark.asyncio
async def test_tls_connect_with_insecure_context(serve, self_signed_cert):
    server = await serve(http_response(), ssl_context=self_signed_cert.server_context())
    connector = Connector(connect_timeout=2, ssl_context=create_ssl_context(insecure=True))

    async with connector.open([server.candidate], is_tls=True) as connection:
        assert connection.is_tls
        assert connection.writer.get_extra_info("ssl_object") is not None


@pytest.mark.asyncio
async def test_tls_verifies_against_server_hostname(serve, self_signed_cert):
    server = await serve(http_response(), ssl_context=self_signed_cert.server_context())
    connector = Connector(
        connect_timeout=2,
        ssl_context=ssl.create_default_context(cadata=self_signed_cert.cert_pem),
    )

    async with connector.open(
        [server.candidate], is_tls=True, server_hostname="localhost"
    ) as connection:
        assert connection.is_tls

    with pytest.raises(TlsHandshakeError):
        await connector.connect(
            [server.candidate], is_tls=True, server_hostname="profiled.test"
        )


@pytest.mark.asyncio
async def test_untrusted_certificate_fails_in_tls_phase(serve, self_signed_cert):
    server = await serve(http_response(), ssl_context=self_signed_cert.server_context())

    with pytest.raises(TlsHandshakeError, match="failed") as excinfo:
        await Connector(connect_timeout=2).connect(
            [server.candidate], is_tls=True, server_hostname="localhost"
        )
    assert excinfo.value.phase == Phase.TLS


class _Transport:
    def __init__(self):
        self.aborted = False

    def abort(self):
        self.aborted = True


class _UnansweredCloseWriter:
    """Writer whose close never completes, like a TLS peer ignoring close_notify."""

    def __init__(self):
        self.transport = _Transport()
        self.closed = False

    def close(self):
        self.closed = True

    async def wait_closed(self):
        await asyncio.sleep(10)


@pytest.mark.asyncio
async def test_close_aborts_when_peer_never_finishes():
    writer = _UnansweredCloseWriter()
    connection = Connection(AddressCandidate("127.0.0.1", 443), asyncio.StreamReader(), writer)

    await connection.close(timeout=0.05)

    assert writer.closed
    assert writer.transport.aborted
