"""
Unit tests for the X.509 certificate decoder.

Certificates are generated in-process with cryptography, so every expected
value (names, key identifiers, key numbers) is known exactly.
"""

from __future__ import annotations

from datetime import UTC

from cryptography import x509

from emrtd_trust.adapters.x509_decoder import EXPLICIT_CURVE, CertificateDecoder, _ec_public_key
from emrtd_trust.domain.models import Certificate, EcPublicKey, RsaPublicKey
from railway import ErrorCode, ResultAssertions
from tests.pki import (
    CSCA_NOT_AFTER,
    CSCA_NOT_BEFORE,
    Pki,
    ec_key,
    explicit_p256_key_info,
    make_certificate,
    name,
    rsa_key,
    with_duplicate_ski,
)


class TestCertificateFields:
    """Verify the metadata read from a generated CSCA / document signer pair."""

    def test_names_are_ordered_oid_value_pairs(self, csca: Certificate) -> None:
        """
        GIVEN a self-signed CSCA named C=UT, CN=CSCA UT
        WHEN decoded
        THEN subject and issuer are the same ordered (OID, value) pairs.
        """
        assert csca.subject == (("2.5.4.6", "UT"), ("2.5.4.3", "CSCA UT"))
        assert csca.issuer == csca.subject

    def test_document_signer_issuer_is_csca_subject(
        self, csca: Certificate, document_signer: Certificate
    ) -> None:
        assert document_signer.issuer == csca.subject
        assert document_signer.subject == (("2.5.4.6", "UT"), ("2.5.4.3", "Document Signer UT"))

    def test_validity_is_utc(self, csca: Certificate) -> None:
        assert csca.not_before == CSCA_NOT_BEFORE
        assert csca.not_after == CSCA_NOT_AFTER
        assert csca.not_before.tzinfo is not None
        assert csca.not_before.utcoffset() == UTC.utcoffset(None)

    def test_key_identifiers_link_the_chain(
        self, pki: Pki, csca: Certificate, document_signer: Certificate
    ) -> None:
        """
        GIVEN a document signer whose AKI names the CSCA key
        WHEN both are decoded
        THEN the signer's AKI equals the CSCA's SKI.
        """
        expected_ski = x509.SubjectKeyIdentifier.from_public_key(pki.csca_key.public_key()).digest
        assert csca.subject_key_identifier == expected_ski
        assert document_signer.authority_key_identifier == expected_ski

    def test_fingerprint_is_sha1_of_tbs(self, crypto, csca: Certificate, pki: Pki) -> None:
        assert csca.der == pki.csca_der
        assert csca.tbs_bytes in pki.csca_der
        assert csca.fingerprint == crypto.fingerprint(csca.tbs_bytes)

    def test_signature_fields(self, csca: Certificate) -> None:
        assert csca.signature_algorithm.oid == "1.2.840.10045.4.3.2"
        assert csca.signature_algorithm.parameters is None
        assert csca.signature

    def test_ec_public_key(self, pki: Pki, csca: Certificate) -> None:
        numbers = pki.csca_key.public_key().public_numbers()
        assert csca.public_key == EcPublicKey("secp256r1", numbers.x, numbers.y)


class TestOptionalExtensions:
    def test_missing_key_identifiers_are_none(self, certificate_decoder: CertificateDecoder) -> None:
        """
        GIVEN a certificate without SKI and AKI extensions
        WHEN decoded
        THEN both identifiers are None and decoding still succeeds.
        """
        key = ec_key()
        der = make_certificate(name("Bare"), key, name("Bare"), key, with_ski=False, with_aki=False)

        cert = certificate_decoder.decode(der)

        assert cert.subject_key_identifier is None
        assert cert.authority_key_identifier is None


class TestPublicKeys:
    def test_rsa_key(self, certificate_decoder: CertificateDecoder) -> None:
        key = rsa_key()
        der = make_certificate(name("RSA CSCA"), key, name("RSA CSCA"), key)

        cert = certificate_decoder.decode(der)

        numbers = key.public_key().public_numbers()
        assert cert.public_key == RsaPublicKey(numbers.n, numbers.e)
        assert cert.signature_algorithm.oid == "1.2.840.113549.1.1.11"

    def test_explicit_parameters_resolve_to_named_curve(self) -> None:
        """
        GIVEN a P-256 point whose key spells out the P-256 domain parameters
        WHEN the key is read
        THEN it resolves to secp256r1.
        """
        numbers = ec_key().public_key().public_numbers()

        key = _ec_public_key(explicit_p256_key_info(numbers.x, numbers.y))

        assert key == EcPublicKey("secp256r1", numbers.x, numbers.y)

    def test_explicit_parameters_off_every_curve(self) -> None:
        key = _ec_public_key(explicit_p256_key_info(1, 2))
        assert key.curve == EXPLICIT_CURVE


class TestParse:
    def test_parse_success(self, certificate_decoder: CertificateDecoder, pki: Pki) -> None:
        cert = ResultAssertions.assert_success(certificate_decoder.parse(pki.ds_der))
        assert cert.der == pki.ds_der

    def test_truncated_der(self, certificate_decoder: CertificateDecoder, pki: Pki) -> None:
        """
        GIVEN a certificate cut short
        WHEN parsed
        THEN the result is Failure(MALFORMED_ENCODING).
        """
        result = certificate_decoder.parse(pki.csca_der[:-10])
        ResultAssertions.assert_failure(result, ErrorCode.MALFORMED_ENCODING)

    def test_wrong_shape(self, certificate_decoder: CertificateDecoder) -> None:
        result = certificate_decoder.parse(bytes.fromhex("3003020101"))
        ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_MISMATCH)

    def test_duplicate_extension(self, certificate_decoder: CertificateDecoder, pki: Pki) -> None:
        """
        GIVEN a CSCA whose Subject Key Identifier extension appears twice
        WHEN parsed
        THEN the result is Failure(MALFORMED_ENCODING), not an escaped exception.
        """
        result = certificate_decoder.parse(with_duplicate_ski(pki.csca_der))
        ResultAssertions.assert_failure(result, ErrorCode.MALFORMED_ENCODING)
