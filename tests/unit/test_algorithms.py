"""
Unit tests for the digest algorithm table and layout constants.

The DG1 offset is cross-checked against real LDS encodings built with
asn1crypto, so the constants and the encoder agree byte for byte.
"""

from __future__ import annotations

import pytest

from emrtd_trust.domain.algorithms import (
    LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS,
    DigestAlgorithm,
    DocumentType,
    dg1_offset_in_lds,
    digest_algorithm_for_oid,
    signed_attrs_length,
)
from emrtd_trust.domain.errors import UnsupportedDigestAlgorithm
from railway import ErrorCode
from tests.pki import SAMPLE_DG1, build_lds, build_signed_attrs


class TestDigestAlgorithmTable:
    """Verify OIDs, output sizes and offset contributions."""

    def test_sha256_oid_and_size(self) -> None:
        """
        GIVEN SHA-256
        WHEN its properties are read
        THEN the OID is 2.16.840.1.101.3.4.2.1 and the digest is 32 bytes.
        """
        assert DigestAlgorithm.SHA256.oid == "2.16.840.1.101.3.4.2.1"
        assert DigestAlgorithm.SHA256.digest_size == 32

    @pytest.mark.parametrize(
        ("algorithm", "size"),
        [
            (DigestAlgorithm.SHA384, 48),
            (DigestAlgorithm.SHA512, 64),
            (DigestAlgorithm.SHA512_224, 28),
            (DigestAlgorithm.SHA3_512, 64),
            (DigestAlgorithm.SHAKE128, 28),
            (DigestAlgorithm.SHAKE256, 32),
        ],
    )
    def test_digest_sizes(self, algorithm: DigestAlgorithm, size: int) -> None:
        assert algorithm.digest_size == size

    def test_long_identifier_algorithms(self) -> None:
        """
        GIVEN the full table
        WHEN oid_length is read
        THEN only sha3_512, shake128 and shake256 contribute 20 bytes.
        """
        long_ids = {alg for alg in DigestAlgorithm if alg.oid_length == 20}
        assert long_ids == {
            DigestAlgorithm.SHA3_512,
            DigestAlgorithm.SHAKE128,
            DigestAlgorithm.SHAKE256,
        }
        assert all(alg.oid_length == 19 for alg in DigestAlgorithm if alg not in long_ids)

    def test_enum_values_are_names(self) -> None:
        assert str(DigestAlgorithm.SHA3_256) == "sha3_256"


class TestDigestAlgorithmLookup:
    def test_known_oid(self) -> None:
        assert digest_algorithm_for_oid("2.16.840.1.101.3.4.2.2") is DigestAlgorithm.SHA384

    def test_every_oid_round_trips(self) -> None:
        assert all(digest_algorithm_for_oid(alg.oid) is alg for alg in DigestAlgorithm)

    def test_unknown_oid_raises(self) -> None:
        """
        GIVEN the SHA-1 OID, which SODs must not use
        WHEN it is looked up
        THEN UnsupportedDigestAlgorithm is raised with its error code.
        """
        with pytest.raises(UnsupportedDigestAlgorithm, match="1.3.14.3.2.26") as excinfo:
            digest_algorithm_for_oid("1.3.14.3.2.26")
        assert excinfo.value.error_code == ErrorCode.UNSUPPORTED_DIGEST_ALGORITHM


class TestLayoutOffsets:
    """The fixed offsets must match what an LDS encoder actually produces."""

    def test_dg1_offset_values(self) -> None:
        assert dg1_offset_in_lds(DigestAlgorithm.SHA256) == 29
        assert dg1_offset_in_lds(DigestAlgorithm.SHAKE256) == 30

    def test_sha256_dg1_hash_lands_at_offset(self) -> None:
        """
        GIVEN an LDS with four SHA-256 data-group hashes, DG1 first
        WHEN it is encoded
        THEN the DG1 hash occupies bytes 29..61.
        """
        dg1_hash = bytes(range(32))
        lds = build_lds(
            DigestAlgorithm.SHA256,
            {1: dg1_hash, 2: b"\x02" * 32, 3: b"\x03" * 32, 14: b"\x0e" * 32},
        )

        offset = dg1_offset_in_lds(DigestAlgorithm.SHA256)
        assert lds[offset : offset + 32] == dg1_hash

    def test_sha384_dg1_hash_lands_at_offset(self) -> None:
        dg1_hash = bytes(range(48))
        lds = build_lds(
            DigestAlgorithm.SHA384, {1: dg1_hash, 2: b"\x02" * 48, 15: b"\x0f" * 48}
        )

        offset = dg1_offset_in_lds(DigestAlgorithm.SHA384)
        assert lds[offset : offset + 48] == dg1_hash

    @pytest.mark.parametrize(
        "algorithm", [DigestAlgorithm.SHA256, DigestAlgorithm.SHA384, DigestAlgorithm.SHA512]
    )
    def test_lds_digest_lands_at_offset_42(self, algorithm: DigestAlgorithm) -> None:
        """
        GIVEN signed attributes holding content-type then message-digest
        WHEN they are encoded
        THEN the digest starts at byte 42 and ends the structure.
        """
        digest = b"\xab" * algorithm.digest_size
        signed_attrs = build_signed_attrs(digest).dump()

        offset = LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS
        assert signed_attrs[offset : offset + len(digest)] == digest
        assert len(signed_attrs) == signed_attrs_length(algorithm)


class TestDocumentType:
    def test_birth_date_offsets(self) -> None:
        assert DocumentType.TD1.birth_date_offset == 35
        assert DocumentType.TD2.birth_date_offset == 54
        assert DocumentType.TD3.birth_date_offset == 62

    def test_passport_dg1_is_td3(self) -> None:
        assert len(SAMPLE_DG1) == DocumentType.TD3.dg1_length
        assert DocumentType.for_dg1(SAMPLE_DG1) is DocumentType.TD3

    def test_unknown_length(self) -> None:
        assert DocumentType.for_dg1(SAMPLE_DG1[:-1]) is None
