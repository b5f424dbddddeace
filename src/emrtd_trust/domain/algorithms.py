"""
Digest algorithms usable in a passport Security Object Document.

Each algorithm carries its OID, its output size, and the layout constant the
authentication chain uses to find digests at fixed byte offsets instead of
re-parsing structures that were already decoded.

The DG1 hash sits at `10 + oid_length` inside the LDS bytes. For SHA-256 with
at least four data groups and an AlgorithmIdentifier without NULL parameters:

    30 81 af               LDSSecurityObject     3
    02 01 00               version               3
    30 0b 06 09 <oid>      hashAlgorithm        13
    30 81 9c               dataGroupHashes       3
    30 25 02 01 01 04 20   DataGroupHash (DG1)   7
                                                --
                                                29 = 10 + 19
"""

from __future__ import annotations

from enum import StrEnum

from emrtd_trust.domain.errors import UnsupportedDigestAlgorithm

# Byte offset of the LDS digest inside the re-wrapped signed attributes:
# SET header, content-type attribute, message-digest attribute header.
LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS = 42

_DG1_OFFSET_BASE = 10


class DigestAlgorithm(StrEnum):
    """Supported SOD digest algorithms, valued by their canonical name."""

    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"
    SHA512_224 = "sha512_224"
    SHA512_256 = "sha512_256"
    SHA3_224 = "sha3_224"
    SHA3_256 = "sha3_256"
    SHA3_384 = "sha3_384"
    SHA3_512 = "sha3_512"
    SHAKE128 = "shake128"
    SHAKE256 = "shake256"

    @property
    def oid(self) -> str:
        return _OIDS[self]

    @property
    def digest_size(self) -> int:
        """Output size in bytes (fixed for the SHAKE variants as used by ICAO)."""
        return _DIGEST_SIZES[self]

    @property
    def oid_length(self) -> int:
        """Offset contribution of the hash AlgorithmIdentifier in the LDS layout."""
        return 20 if self in _LONG_OID_ALGORITHMS else 19


_OIDS: dict[DigestAlgorithm, str] = {
    DigestAlgorithm.SHA256: "2.16.840.1.101.3.4.2.1",
    DigestAlgorithm.SHA384: "2.16.840.1.101.3.4.2.2",
    DigestAlgorithm.SHA512: "2.16.840.1.101.3.4.2.3",
    DigestAlgorithm.SHA512_224: "2.16.840.1.101.3.4.2.5",
    DigestAlgorithm.SHA512_256: "2.16.840.1.101.3.4.2.6",
    DigestAlgorithm.SHA3_224: "2.16.840.1.101.3.4.2.7",
    DigestAlgorithm.SHA3_256: "2.16.840.1.101.3.4.2.8",
    DigestAlgorithm.SHA3_384: "2.16.840.1.101.3.4.2.9",
    DigestAlgorithm.SHA3_512: "2.16.840.1.101.3.4.2.10",
    DigestAlgorithm.SHAKE128: "2.16.840.1.101.3.4.2.11",
    DigestAlgorithm.SHAKE256: "2.16.840.1.101.3.4.2.12",
}

_DIGEST_SIZES: dict[DigestAlgorithm, int] = {
    DigestAlgorithm.SHA256: 32,
    DigestAlgorithm.SHA384: 48,
    DigestAlgorithm.SHA512: 64,
    DigestAlgorithm.SHA512_224: 28,
    DigestAlgorithm.SHA512_256: 32,
    DigestAlgorithm.SHA3_224: 28,
    DigestAlgorithm.SHA3_256: 32,
    DigestAlgorithm.SHA3_384: 48,
    DigestAlgorithm.SHA3_512: 64,
    DigestAlgorithm.SHAKE128: 28,
    DigestAlgorithm.SHAKE256: 32,
}

# Algorithms whose identifier contributes 20 bytes to the DG1 offset.
_LONG_OID_ALGORITHMS = frozenset(
    {DigestAlgorithm.SHA3_512, DigestAlgorithm.SHAKE128, DigestAlgorithm.SHAKE256}
)

_BY_OID: dict[str, DigestAlgorithm] = {oid: alg for alg, oid in _OIDS.items()}


def digest_algorithm_for_oid(oid: str) -> DigestAlgorithm:
    """Map a dotted digest OID to its algorithm, raising UnsupportedDigestAlgorithm."""
    try:
        return _BY_OID[oid]
    except KeyError:
        raise UnsupportedDigestAlgorithm(f"Unsupported digest algorithm OID {oid}") from None


def dg1_offset_in_lds(algorithm: DigestAlgorithm) -> int:
    return _DG1_OFFSET_BASE + algorithm.oid_length


def signed_attrs_length(algorithm: DigestAlgorithm) -> int:
    """Length of the re-wrapped signed attributes for a given signer digest."""
    return LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS + algorithm.digest_size


class DocumentType(StrEnum):
    """
    ICAO 9303 machine-readable document formats, by the layout of DG1.

    DG1 carries a five-byte header (61 xx 5F 1F xx) before the MRZ, so the
    date-of-birth offsets below index the raw DG1 bytes.
    """

    TD1 = "td1"
    TD2 = "td2"
    TD3 = "td3"

    @property
    def dg1_length(self) -> int:
        return _DG1_LENGTHS[self]

    @property
    def birth_date_offset(self) -> int:
        return _BIRTH_DATE_OFFSETS[self]

    @classmethod
    def for_dg1(cls, dg1: bytes) -> DocumentType | None:
        """The format whose DG1 length matches, or None for anything else."""
        return next((kind for kind in cls if kind.dg1_length == len(dg1)), None)


_DG1_LENGTHS: dict[DocumentType, int] = {
    DocumentType.TD1: 95,
    DocumentType.TD2: 77,
    DocumentType.TD3: 93,
}

_BIRTH_DATE_OFFSETS: dict[DocumentType, int] = {
    DocumentType.TD1: 35,
    DocumentType.TD2: 54,
    DocumentType.TD3: 62,
}

BIRTH_DATE_LENGTH = 6
