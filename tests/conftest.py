"""Shared fixtures: loopback SIP servers and a scripted connection."""

from __future__ import annotations

import datetime
import ipaddress
import socket
import ssl
import threading
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from sipcheck import RequestConfig

OK_200 = (
    b"SIP/2.0 200 OK\r\n"
    b"Via: SIP/2.0/UDP 127.0.0.1;rport=5060;branch=z9hG4bKabcdefgh\r\n"
    b"From: <sip:nagios@127.0.0.1>;tag=abcdefgh\r\n"
    b"To: <sip:ping@127.0.0.1:5060>;tag=srv123\r\n"
    b"Call-ID: abcdefghjk@127.0.0.1\r\n"
    b"CSeq: 1 OPTIONS\r\n"
    b"Server: test-pbx/1.0\r\n"
    b"Content-Length: 0\r\n"
    b"\r\n"
)

TRYING_100 = (
    b"SIP/2.0 100 Trying\r\n"
    b"Via: SIP/2.0/TCP 127.0.0.1;rport=5060;branch=z9hG4bKabcdefgh\r\n"
    b"CSeq: 1 INVITE\r\n"
    b"Content-Length: 0\r\n"
    b"\r\n"
)


class FakeSipServer:
    """
    Single-shot SIP server on the loopback interface.

    Waits for one request, records it and answers with ``responses``. UDP
    sends each response as its own datagram; TCP and TLS write them to the
    stream and keep it open until ``stop`` unless ``close_after`` is set.
    """

    def __init__(
        self,
        kind: str = "udp",
        responses: Sequence[bytes] = (OK_200,),
        close_after: bool = False,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> None:
        self.kind = kind
        self.responses = list(responses)
        self.close_after = close_after
        self.ssl_context = ssl_context
        self.requests: List[bytes] = []
        self._stopped = threading.Event()
        if kind == "udp":
            self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        else:
            self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))
        if kind != "udp":
            self._socket.listen(1)
        self._socket.settimeout(5)
        self.port = self._socket.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> FakeSipServer:
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stopped.set()
        self._thread.join(timeout=5)
        self._socket.close()

    def _serve(self) -> None:
        try:
            if self.kind == "udp":
                self._serve_udp()
            else:
                self._serve_stream()
        except OSError:
            # Client went away or rejected the handshake
            pass

    def _serve_udp(self) -> None:
        data, peer = self._socket.recvfrom(65535)
        self.requests.append(data)
        for response in self.responses:
            self._socket.sendto(response, peer)
        self._stopped.wait(5)

    def _serve_stream(self) -> None:
        conn, _ = self._socket.accept()
        conn.settimeout(5)
        if self.ssl_context is not None:
            conn = self.ssl_context.wrap_socket(conn, server_side=True)
        with conn:
            data = b""
            while b"\r\n\r\n" not in data:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                data += chunk
            self.requests.append(data)
            for response in self.responses:
                conn.sendall(response)
            if not self.close_after:
                self._stopped.wait(5)


class ScriptedConnection:
    """Stands in for a transport connection, replaying canned lines."""

    label = "UDP"

    def __init__(self, data: bytes) -> None:
        self.sent: List[bytes] = []
        self.lines = data.splitlines(keepends=True)
        self.closed = False

    def send(self, data: bytes) -> None:
        self.sent.append(data)

    def read_line(self, deadline: float) -> Optional[bytes]:
        if not self.lines:
            return None
        return self.lines.pop(0)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> ScriptedConnection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


@pytest.fixture
def sip_server():
    """Factory fixture starting FakeSipServer instances, stopped on teardown."""
    servers: List[FakeSipServer] = []

    def factory(*args, **kwargs) -> FakeSipServer:
        server = FakeSipServer(*args, **kwargs).start()
        servers.append(server)
        return server

    yield factory
    for server in servers:
        server.stop()


@pytest.fixture
def scripted(monkeypatch):
    """Replace open_connection in the exchange with a ScriptedConnection."""

    def install(data: bytes) -> ScriptedConnection:
        connection = ScriptedConnection(data)
        monkeypatch.setattr(
            "sipcheck._exchange.open_connection",
            lambda config, local_ip: connection,
        )
        return connection

    return install


@pytest.fixture
def make_config():
    def factory(port: int = 5060, **kwargs) -> RequestConfig:
        kwargs.setdefault("local_ip", "127.0.0.1")
        kwargs.setdefault("timeout", 2)
        return RequestConfig.from_options("127.0.0.1", server_port=port, **kwargs)

    return factory


@pytest.fixture(scope="session")
def self_signed_cert(tmp_path_factory) -> tuple[Path, Path]:
    """Write a self-signed certificate and key for localhost, return their paths."""
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                ]
            ),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    directory = tmp_path_factory.mktemp("tls")
    cert_path = directory / "cert.pem"
    key_path = directory / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


@pytest.fixture
def server_ssl_context(self_signed_cert) -> ssl.SSLContext:
    cert_path, key_path = self_signed_cert
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    return context
