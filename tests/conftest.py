"""
Shared test fixtures and helpers for the emrtd-trust test suite.

Key generation is the slow part of the suite, so the PKI and the SOD built
on it are session-scoped. Everything is generated in-process by tests/pki.py.
"""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime

import pytest

from emrtd_trust.adapters.crypto_provider import CryptographyProvider
from emrtd_trust.adapters.sod_decoder import SodDecoder
from emrtd_trust.adapters.trust_list_builder import TrustListBuilder
from emrtd_trust.adapters.x509_decoder import CertificateDecoder
from emrtd_trust.domain.models import (
    Bundle,
    Certificate,
    EcPublicKey,
    SignatureAlgorithm,
    TrustList,
)
from tests.pki import Pki, SodFixture, build_sod, make_pki


@pytest.fixture(scope="session")
def crypto() -> CryptographyProvider:
    return CryptographyProvider()


@pytest.fixture(scope="session")
def certificate_decoder(crypto: CryptographyProvider) -> CertificateDecoder:
    return CertificateDecoder(crypto)


@pytest.fixture(scope="session")
def trust_list_builder(crypto: CryptographyProvider) -> TrustListBuilder:
    return TrustListBuilder(crypto)


@pytest.fixture(scope="session")
def pki() -> Pki:
    """A CSCA for country UT and a document signer it issued."""
    return make_pki("UT")


@pytest.fixture(scope="session")
def csca(pki: Pki, certificate_decoder: CertificateDecoder) -> Certificate:
    return certificate_decoder.decode(pki.csca_der)


@pytest.fixture(scope="session")
def document_signer(pki: Pki, certificate_decoder: CertificateDecoder) -> Certificate:
    return certificate_decoder.decode(pki.ds_der)


@pytest.fixture(scope="session")
def trust_list(csca: Certificate) -> TrustList:
    return TrustList((csca,))


@pytest.fixture(scope="session")
def sod_fixture(pki: Pki) -> SodFixture:
    return build_sod(pki)


@pytest.fixture(scope="session")
def bundle(sod_fixture: SodFixture, crypto: CryptographyProvider) -> Bundle:
    """The decoded SOD with its DG1 attached."""
    result = SodDecoder(crypto).decode(sod_fixture.sod, dg1=sod_fixture.dg1)
    return result.value()


def certificate_model(**overrides: object) -> Certificate:
    """
    A Certificate model with placeholder values, for tests that never touch
    real signatures. Keyword arguments replace individual fields.
    """
    base = Certificate(
        der=b"\x30\x00",
        tbs_bytes=b"\x30\x00",
        fingerprint=b"\x01" * 20,
        serial_number=1,
        issuer=(("2.5.4.3", "Test CSCA"),),
        subject=(("2.5.4.3", "Test CSCA"),),
        not_before=datetime(2020, 1, 1, tzinfo=UTC),
        not_after=datetime(2030, 1, 1, tzinfo=UTC),
        signature_algorithm=SignatureAlgorithm("1.2.840.10045.4.3.2"),
        signature=b"",
        public_key=EcPublicKey("secp256r1", 1, 2),
    )
    return dataclasses.replace(base, **overrides)
