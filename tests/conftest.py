"""Shared fixtures: throwaway PKI, a mutual-TLS upstream and app clients."""

import base64
import datetime
import ipaddress
import ssl
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from fastapi.testclient import TestClient

from app import create_app
from core.config import load_config

SECRET = "test-shared-secret-0123456789"
BUNDLE_PASSWORD = "bundle-pass-9f8e7d"


# ============================================================================
# PKI helpers
# ============================================================================


@dataclass
class Identity:
    key: ec.EllipticCurvePrivateKey
    cert: x509.Certificate

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(Encoding.PEM)

    @property
    def key_pem(self) -> bytes:
        return self.key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def make_ca(common_name: str = "Test CA") -> Identity:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(common_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False
        )
        .sign(key, hashes.SHA256())
    )
    return Identity(key, cert)


def issue(ca: Identity, common_name: str, *, server: bool) -> Identity:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    usage = ExtendedKeyUsageOID.SERVER_AUTH if server else ExtendedKeyUsageOID.CLIENT_AUTH
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(ca.cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca.key.public_key()),
            critical=False,
        )
    )
    if server:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )
    return Identity(key, builder.sign(ca.key, hashes.SHA256()))


def make_bundle(
    identity: Identity | None,
    password: str = BUNDLE_PASSWORD,
    *,
    cert: x509.Certificate | None = None,
    cas: list[x509.Certificate] | None = None,
) -> str:
    """Base64 PKCS#12 bundle; pass ``identity=None`` plus ``cert`` for a key-less one."""
    data = pkcs12.serialize_key_and_certificates(
        b"client",
        identity.key if identity else None,
        identity.cert if identity else cert,
        cas,
        BestAvailableEncryption(password.encode()),
    )
    return base64.b64encode(data).decode("ascii")


@dataclass
class Pki:
    ca: Identity
    server: Identity
    client: Identity
    ca_file: Path


@pytest.fixture(scope="session")
def pki(tmp_path_factory) -> Pki:
    ca = make_ca()
    ca_file = tmp_path_factory.mktemp("pki") / "ca.pem"
    ca_file.write_bytes(ca.cert_pem)
    return Pki(
        ca=ca,
        server=issue(ca, "localhost", server=True),
        client=issue(ca, "gateway-client", server=False),
        ca_file=ca_file,
    )


@pytest.fixture(scope="session")
def client_bundle(pki) -> str:
    return make_bundle(pki.client)


# ============================================================================
# Mutual-TLS upstream
# ============================================================================


@dataclass
class UpstreamServer:
    port: int
    received: list[dict[str, Any]] = field(default_factory=list)
    reply: tuple[int, str | None, bytes] = (201, "text/xml", b"<ok/>")
    reply_headers: dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return f"https://127.0.0.1:{self.port}/ws/service?op=send"


class _Handler(BaseHTTPRequestHandler):
    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        peer = self.connection.getpeercert() or {}
        subject = dict(item[0] for item in peer.get("subject", ()))
        state: UpstreamServer = self.server.state
        state.received.append(
            {
                "path": self.path,
                "headers": dict(self.headers.items()),
                "body": body,
                "client_cn": subject.get("commonName"),
                "client_address": self.client_address,
            }
        )
        status, content_type, payload = state.reply
        self.send_response(status)
        if content_type:
            self.send_header("Content-Type", content_type)
        for name, value in state.reply_headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def upstream(pki, tmp_path):
    cert_file = tmp_path / "server.pem"
    key_file = tmp_path / "server.key"
    cert_file.write_bytes(pki.server.cert_pem)
    key_file.write_bytes(pki.server.key_pem)

    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    ctx.load_verify_locations(cadata=pki.ca.cert_pem.decode("ascii"))
    ctx.verify_mode = ssl.CERT_REQUIRED

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.socket = ctx.wrap_socket(httpd.socket, server_side=True)
    state = UpstreamServer(port=httpd.server_address[1])
    httpd.state = state

    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield state
    finally:
        httpd.shutdown()
        httpd.server_close()
        thread.join(timeout=5)


# ============================================================================
# App
# ============================================================================


class RecordingLogger:
    """RequestLogger that keeps events in memory."""

    def __init__(self):
        self.events: list[tuple[str, tuple, dict]] = []

    def _record(self, name, *args, **kwargs):
        self.events.append((name, args, kwargs))

    def log_incoming(self, method, path, headers):
        self._record("incoming", method, path, headers)

    def log_rejected(self, status, reason):
        self._record("rejected", status, reason)

    def log_forward(self, target, *, request_id, soap_action=None, verify, subject=""):
        self._record(
            "forward",
            target,
            request_id=request_id,
            soap_action=soap_action,
            verify=verify,
            subject=subject,
        )

    def log_response(self, target, status, elapsed, *, request_id, preview=None):
        self._record("response", target, status, request_id=request_id, preview=preview)

    def log_error(self, route, status, message):
        self._record("error", route, status, message)

    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]

    def dump(self) -> str:
        return repr(self.events)


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def make_client(logger, pki):
    """Factory for a TestClient running the proxy with extra env settings."""
    clients = []

    def _make(**env: str) -> TestClient:
        environ = {
            "NFSE_PROXY_SECRET": SECRET,
            "PROXY_UPSTREAM_CA_BUNDLE": str(pki.ca_file),
            "PROXY_UPSTREAM_TIMEOUT": "5",
        }
        environ.update(env)
        client = TestClient(create_app(load_config(environ), logger))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def auth_headers():
    return {"x-proxy-secret": SECRET}


@pytest.fixture
def forward_body(upstream, client_bundle):
    return {
        "targetUrl": upstream.url,
        "bundleData": client_bundle,
        "bundlePassword": BUNDLE_PASSWORD,
        "payload": "<Envelope><Body>hello</Body></Envelope>",
        "soapAction": "urn:send",
        "verifyUpstreamCertificate": False,
    }
