"""
Unit tests for document authentication — the passport chain of trust.

Uses a genuinely signed SOD (tests/pki.py) and mutates one piece at a time
to confirm each hard gate fails with its own error code and step name,
and that an earlier failure short-circuits the later steps.
"""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock

import pytest

from emrtd_trust.adapters.crypto_provider import CryptographyProvider
from emrtd_trust.authentication import DocumentAuthenticator, birth_date, contains_at
from emrtd_trust.domain.algorithms import DigestAlgorithm, DocumentType, dg1_offset_in_lds
from emrtd_trust.domain.errors import MalformedEncoding
from emrtd_trust.domain.models import (
    Bundle,
    Certificate,
    MatchMethod,
    SignatureAlgorithm,
    TrustList,
)
from railway import ErrorCode, ResultAssertions
from tests.pki import SAMPLE_DG1


def _flip(data: bytes, index: int) -> bytes:
    mutated = bytearray(data)
    mutated[index] ^= 0x01
    return bytes(mutated)


class TestContainsAt:
    def test_exact_position(self) -> None:
        assert contains_at(b"xxABCyy", b"ABC", 2)

    def test_wrong_position(self) -> None:
        assert not contains_at(b"xxABCyy", b"ABC", 3)

    def test_needle_past_end(self) -> None:
        assert not contains_at(b"xxAB", b"ABC", 2)


# ─── Date of birth ───

TD1_DG1 = (
    b"\x61\x5d\x5f\x1f\x5a"
    b"I<UTOD231458907<<<<<<<<<<<<<<<"
    b"7408122F1204159UTO<<<<<<<<<<<6"
    b"ERIKSSON<<ANNA<MARIA<<<<<<<<<<"
)

TD2_DG1 = (
    b"\x61\x4b\x5f\x1f\x48"
    b"I<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<"
    b"D231458907UTO7408122F1204159<<<<<<<6"
)


class TestBirthDate:
    def test_passport(self) -> None:
        assert birth_date(SAMPLE_DG1) == "740812"

    @pytest.mark.parametrize(
        ("dg1", "document_type"),
        [(TD1_DG1, DocumentType.TD1), (TD2_DG1, DocumentType.TD2), (SAMPLE_DG1, DocumentType.TD3)],
    )
    def test_each_format(self, dg1: bytes, document_type: DocumentType) -> None:
        """
        GIVEN a DG1 of each ICAO format holding the same holder
        WHEN the date of birth is read at the format's offset
        THEN every format yields 740812.
        """
        assert DocumentType.for_dg1(dg1) is document_type
        assert birth_date(dg1, document_type) == "740812"

    def test_dg1_too_short(self) -> None:
        with pytest.raises(MalformedEncoding, match="too short"):
            birth_date(SAMPLE_DG1[:64])

    def test_field_not_digits(self) -> None:
        with pytest.raises(MalformedEncoding, match="YYMMDD"):
            birth_date(TD1_DG1, DocumentType.TD3)


class TestAuthenticateSuccess:
    """Verify the genuine passport authenticates end to end."""

    def test_genuine_bundle(
        self,
        crypto: CryptographyProvider,
        bundle: Bundle,
        trust_list: TrustList,
        csca: Certificate,
    ) -> None:
        """
        GIVEN a genuine SOD with its DG1 and a trust list holding its CSCA
        WHEN authenticated
        THEN the report names the CSCA as trust anchor and records offsets 29 and 42.
        """
        report = ResultAssertions.assert_success(
            DocumentAuthenticator(crypto).authenticate(bundle, trust_list)
        )

        assert report.trust_anchor == csca
        assert report.document_signer == bundle.document_signer
        assert report.dg1_offset == 29
        assert report.lds_offset == 42
        assert report.dg1_digest == crypto.digest(DigestAlgorithm.SHA256, bundle.dg1)
        assert report.lds_digest == crypto.digest(DigestAlgorithm.SHA256, bundle.lds_bytes)
        assert report.signed_attrs == bundle.signed_attrs
        assert report.issuer_search.method is MatchMethod.KEY_IDENTIFIER
        assert report.birth_date == "740812"


class TestAuthenticateFailures:
    """Each gate fails with its own code; the message names the step."""

    def test_missing_dg1(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        result = DocumentAuthenticator(crypto).authenticate(
            dataclasses.replace(bundle, dg1=None), trust_list
        )

        ResultAssertions.assert_failure(result, ErrorCode.MISSING_CONTENT)
        ResultAssertions.assert_failure_message_contains(result, "dg1_in_lds")

    def test_altered_dg1(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        """
        GIVEN DG1 with one MRZ byte changed
        WHEN authenticated
        THEN the result is Failure(CONTAINMENT_MISMATCH) at dg1_in_lds.
        """
        assert bundle.dg1 is not None
        tampered = bundle.with_dg1(_flip(bundle.dg1, 10))

        result = DocumentAuthenticator(crypto).authenticate(tampered, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.CONTAINMENT_MISMATCH)
        ResultAssertions.assert_failure_message_contains(result, "dg1_in_lds")

    def test_altered_dg1_hash_inside_lds(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        """
        GIVEN an LDS whose first DG1 hash byte is changed
        WHEN authenticated with the genuine DG1
        THEN the result is Failure(CONTAINMENT_MISMATCH) at dg1_in_lds.
        """
        offset = dg1_offset_in_lds(bundle.lds_algorithm)
        tampered = dataclasses.replace(bundle, lds_bytes=_flip(bundle.lds_bytes, offset))

        result = DocumentAuthenticator(crypto).authenticate(tampered, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.CONTAINMENT_MISMATCH)
        ResultAssertions.assert_failure_message_contains(result, "dg1_in_lds")

    def test_altered_lds(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        """
        GIVEN an LDS changed after the DG1 hash (the last DG14 hash byte)
        WHEN authenticated
        THEN DG1 is still found, but the LDS digest is not in the signed attributes.
        """
        tampered = dataclasses.replace(bundle, lds_bytes=_flip(bundle.lds_bytes, -1))

        result = DocumentAuthenticator(crypto).authenticate(tampered, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.CONTAINMENT_MISMATCH)
        ResultAssertions.assert_failure_message_contains(result, "lds_in_signed_attrs")

    def test_altered_signed_attributes(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        """
        GIVEN signed attributes changed inside the content-type attribute
        WHEN authenticated
        THEN the digest is still at offset 42, but the signature no longer verifies.
        """
        tampered = dataclasses.replace(bundle, signed_attrs=_flip(bundle.signed_attrs, 20))

        result = DocumentAuthenticator(crypto).authenticate(tampered, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.SIGNATURE_INVALID)
        ResultAssertions.assert_failure_message_contains(result, "document_signature")

    def test_altered_signature(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        tampered = dataclasses.replace(bundle, signature=_flip(bundle.signature, -1))

        result = DocumentAuthenticator(crypto).authenticate(tampered, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.SIGNATURE_INVALID)

    def test_unsupported_signature_algorithm(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        tampered = dataclasses.replace(bundle, signature_algorithm=SignatureAlgorithm("1.2.3.4"))

        result = DocumentAuthenticator(crypto).authenticate(tampered, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.UNSUPPORTED_SIGNATURE_ALGORITHM)
        ResultAssertions.assert_failure_message_contains(result, "document_signature")

    def test_issuer_not_in_trust_list(self, crypto: CryptographyProvider, bundle: Bundle) -> None:
        """
        GIVEN a genuine bundle and a trust list without its CSCA
        WHEN authenticated
        THEN the result is Failure(ISSUER_NOT_FOUND) at issuer_chain.
        """
        result = DocumentAuthenticator(crypto).authenticate(bundle, TrustList())

        ResultAssertions.assert_failure(result, ErrorCode.ISSUER_NOT_FOUND)
        ResultAssertions.assert_failure_message_contains(result, "issuer_chain")

    def test_early_failure_skips_later_steps(self, bundle: Bundle, trust_list: TrustList) -> None:
        """
        GIVEN a crypto provider whose digests never match
        WHEN authenticated
        THEN no signature verification is attempted.
        """
        crypto = MagicMock()
        crypto.digest.return_value = b"\x00" * 32

        result = DocumentAuthenticator(crypto).authenticate(bundle, trust_list)

        ResultAssertions.assert_failure(result, ErrorCode.CONTAINMENT_MISMATCH)
        crypto.verify.assert_not_called()


class TestAuthenticateMany:
    def test_items_are_independent(
        self, crypto: CryptographyProvider, bundle: Bundle, trust_list: TrustList
    ) -> None:
        """
        GIVEN a genuine bundle, a bundle without DG1, then the genuine one again
        WHEN authenticated together
        THEN only the middle result is a failure.
        """
        bundles = [bundle, dataclasses.replace(bundle, dg1=None), bundle]

        results = DocumentAuthenticator(crypto).authenticate_many(bundles, trust_list)

        assert [r.is_success() for r in results] == [True, False, True]

    def test_crash_becomes_technical_error(self, bundle: Bundle, trust_list: TrustList) -> None:
        crypto = MagicMock()
        crypto.digest.side_effect = RuntimeError("backend gone")

        results = DocumentAuthenticator(crypto).authenticate_many([bundle], trust_list)

        ResultAssertions.assert_failure(results[0], ErrorCode.TECHNICAL_ERROR)
        ResultAssertions.assert_failure_message_contains(results[0], "backend gone")


class TestCheckDataGroups:
    def test_compares_against_sod_hashes(self, crypto: CryptographyProvider, bundle: Bundle) -> None:
        """
        GIVEN DG1 and DG2 as hashed into the SOD, a wrong DG3, and DG5 which the SOD omits
        WHEN checked
        THEN only DG1 and DG2 match, and results come back in data-group order.
        """
        assert bundle.dg1 is not None
        checks = DocumentAuthenticator(crypto).check_data_groups(
            bundle, {5: b"DG5", 2: b"DG2", 1: bundle.dg1, 3: b"not DG3"}
        )

        assert [(c.data_group, c.matches) for c in checks] == [
            (1, True),
            (2, True),
            (3, False),
            (5, False),
        ]
