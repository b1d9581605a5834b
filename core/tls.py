"""Per-request TLS client contexts for mutual TLS."""

import secrets
import ssl
import tempfile
from pathlib import Path

import certifi
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    PrivateFormat,
    load_pem_private_key,
)

from core.exceptions import UpstreamTLSError
from core.request_types import CertificateMaterial


def build_client_context(
    material: CertificateMaterial,
    verify: bool,
    ca_bundle: str | None = None,
) -> ssl.SSLContext:
    """Build a fresh client context presenting ``material`` as identity.

    With ``verify`` off the connection is still encrypted, but neither the
    upstream chain nor its hostname is checked.
    """
    if verify:
        ctx = ssl.create_default_context(cafile=ca_bundle or certifi.where())
    else:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2

    try:
        _load_identity(ctx, material)
    except ssl.SSLError as e:
        reason = getattr(e, "reason", None) or e
        raise UpstreamTLSError(f"Client certificate rejected by TLS layer: {reason}") from None
    return ctx


def _load_identity(ctx: ssl.SSLContext, material: CertificateMaterial) -> None:
    """Load key and certificate into ``ctx``.

    ``ssl`` only reads key material from files, so both PEMs go into a private
    temporary directory for the duration of the call. The key is written
    encrypted under a one-time passphrase.
    """
    passphrase = secrets.token_bytes(32)
    key = load_pem_private_key(material.private_key_pem, password=None)
    encrypted_key = key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, BestAvailableEncryption(passphrase)
    )
    with tempfile.TemporaryDirectory(prefix="mtls-") as tmp:
        cert_path = Path(tmp) / "cert.pem"
        key_path = Path(tmp) / "key.pem"
        cert_path.write_bytes(material.certificate_pem)
        key_path.write_bytes(encrypted_key)
        ctx.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path), password=passphrase)
