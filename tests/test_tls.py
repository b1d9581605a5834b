"""Unit tests for core/tls.py"""

import ssl

import pytest

from conftest import issue
from core.exceptions import UpstreamTLSError
from core.request_types import CertificateMaterial
from core.tls import build_client_context


@pytest.fixture
def material(pki):
    return CertificateMaterial(
        private_key_pem=pki.client.key_pem,
        certificate_pem=pki.client.cert_pem,
        subject="CN=gateway-client",
    )


def test_verifying_context(material, pki):
    ctx = build_client_context(material, verify=True, ca_bundle=str(pki.ca_file))

    assert ctx.verify_mode == ssl.CERT_REQUIRED
    assert ctx.check_hostname is True
    assert ctx.minimum_version == ssl.TLSVersion.TLSv1_2


def test_non_verifying_context_still_encrypts(material):
    ctx = build_client_context(material, verify=False)

    assert ctx.verify_mode == ssl.CERT_NONE
    assert ctx.check_hostname is False
    assert ctx.protocol == ssl.PROTOCOL_TLS_CLIENT


def test_each_call_builds_a_new_context(material):
    assert build_client_context(material, verify=False) is not build_client_context(
        material, verify=False
    )


def test_mismatched_key_and_certificate(pki):
    other = issue(pki.ca, "other", server=False)
    mismatched = CertificateMaterial(
        private_key_pem=other.key_pem,
        certificate_pem=pki.client.cert_pem,
    )

    with pytest.raises(UpstreamTLSError, match="Client certificate rejected"):
        build_client_context(mismatched, verify=False)


def test_no_key_material_left_on_disk(material, tmp_path, monkeypatch):
    monkeypatch.setattr("tempfile.tempdir", str(tmp_path))

    build_client_context(material, verify=False)

    assert list(tmp_path.iterdir()) == []
