"""Extract a client identity from a base64 PKCS#12 bundle.

Everything happens in memory. The password and key bytes never appear in
exception messages; callers only ever see the generic extraction errors.
"""

import base64
import binascii

from cryptography import x509
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)

from core.exceptions import BundleDecryptionError, BundleEncodingError, KeyOrCertificateNotFound
from core.request_types import CertificateMaterial


def decode_bundle(bundle_data: str, password: str) -> CertificateMaterial:
    """Return the first private key and its certificate as PEM."""
    der = _decode_base64(bundle_data)
    try:
        loaded = pkcs12.load_pkcs12(der, password.encode("utf-8"))
    except (ValueError, TypeError):
        raise BundleDecryptionError() from None

    certificates = [c.certificate for c in loaded.additional_certs]
    if loaded.cert is not None:
        certificates.insert(0, loaded.cert.certificate)

    if loaded.key is None or not certificates:
        raise KeyOrCertificateNotFound()

    # Chain certificates beyond the leaf are not presented upstream
    leaf = certificates[0]
    return CertificateMaterial(
        private_key_pem=loaded.key.private_bytes(
            Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
        ),
        certificate_pem=leaf.public_bytes(Encoding.PEM),
        subject=_subject(leaf),
        extra_certificates=len(certificates) - 1,
    )


def _decode_base64(bundle_data: str) -> bytes:
    try:
        der = base64.b64decode("".join(bundle_data.split()), validate=True)
    except (binascii.Error, ValueError):
        raise BundleEncodingError() from None
    if not der:
        raise BundleEncodingError()
    return der


def _subject(cert: x509.Certificate) -> str:
    return cert.subject.rfc4514_string()
