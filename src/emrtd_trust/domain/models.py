"""
Domain models — immutable data structures for trust material and verdicts.

These are pure value objects with no behavior beyond self-validation.
They represent what the decoders extract from master lists and passport
Security Object Documents, and what the validator, authentication chain
and Merkle registry report back.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique

from emrtd_trust.domain.algorithms import DigestAlgorithm

# ─────────────────────── Public keys ───────────────────────


@dataclass(frozen=True, slots=True)
class RsaPublicKey:
    modulus: int = field(repr=False)
    exponent: int

    @property
    def key_size(self) -> int:
        return self.modulus.bit_length()


@dataclass(frozen=True, slots=True)
class EcPublicKey:
    """
    Elliptic-curve point on a named curve.

    `curve` is the lowercase curve name as reported by asn1crypto
    (`secp256r1`, `brainpoolp384r1`, ...). Keys whose certificate spells out
    explicit domain parameters are resolved to the named curve the point lies
    on, or carry `explicit` when no supported curve matches.
    """

    curve: str
    x: int = field(repr=False)
    y: int = field(repr=False)


type PublicKey = RsaPublicKey | EcPublicKey


# ─────────────────────── Certificates ───────────────────────

type DistinguishedName = tuple[tuple[str, str], ...]
"""Ordered (attribute OID, value) pairs, compared pair by pair."""


@dataclass(frozen=True, slots=True)
class SignatureAlgorithm:
    """Dotted signature OID plus its DER-encoded parameters, if any."""

    oid: str
    parameters: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class Certificate:
    """
    An X.509 certificate (CSCA or Document Signer) reduced to what the
    verifier needs.

    `tbs_bytes` are the exact DER bytes the issuer signed; `fingerprint` is
    SHA-1 over them and is the identity used for trust-list deduplication.
    The validity window is half-open: [not_before, not_after).
    """

    der: bytes = field(repr=False)
    tbs_bytes: bytes = field(repr=False)
    fingerprint: bytes
    serial_number: int
    issuer: DistinguishedName
    subject: DistinguishedName
    not_before: datetime
    not_after: datetime
    signature_algorithm: SignatureAlgorithm
    signature: bytes = field(repr=False)
    public_key: PublicKey = field(repr=False)
    subject_key_identifier: bytes | None = None
    authority_key_identifier: bytes | None = None

    def __post_init__(self) -> None:
        if not self.not_before < self.not_after:
            raise ValueError(
                f"Certificate validity is empty: not_before={self.not_before.isoformat()} "
                f"is not before not_after={self.not_after.isoformat()}"
            )

    def is_valid_at(self, moment: datetime) -> bool:
        return self.not_before <= moment < self.not_after


@dataclass(frozen=True, slots=True)
class TrustList:
    """
    Ordered, deduplicated set of trusted certificates.

    Uniqueness is by fingerprint; the first occurrence wins and insertion
    order is preserved. Order only determines Merkle leaf indices.
    """

    certificates: tuple[Certificate, ...] = ()

    def __post_init__(self) -> None:
        seen: set[bytes] = set()
        for cert in self.certificates:
            if cert.fingerprint in seen:
                raise ValueError(f"Duplicate certificate fingerprint {cert.fingerprint.hex()}")
            seen.add(cert.fingerprint)

    @classmethod
    def from_certificates(cls, certificates: Iterable[Certificate]) -> TrustList:
        unique: dict[bytes, Certificate] = {}
        for cert in certificates:
            unique.setdefault(cert.fingerprint, cert)
        return cls(tuple(unique.values()))

    def merge(self, other: TrustList) -> TrustList:
        return TrustList.from_certificates((*self.certificates, *other.certificates))

    def fingerprints(self) -> frozenset[bytes]:
        return frozenset(cert.fingerprint for cert in self.certificates)

    def __len__(self) -> int:
        return len(self.certificates)

    def __iter__(self) -> Iterator[Certificate]:
        return iter(self.certificates)


# ─────────────────────── Security Object Document ───────────────────────


@dataclass(frozen=True, slots=True)
class Bundle:
    """
    A decoded passport Security Object Document.

    `lds_bytes` is the raw LDS Security Object (the eContent);
    `signed_attrs` are the SignerInfo signed attributes re-wrapped with an
    explicit SET tag (0x31), which is what the signature covers.
    `dg1` is the machine-readable-zone data group, supplied separately from
    the SOD when the caller has read it from the chip.
    """

    version: int
    lds_algorithm: DigestAlgorithm
    signer_algorithm: DigestAlgorithm
    signature_algorithm: SignatureAlgorithm
    data_group_hashes: Mapping[int, bytes] = field(repr=False)
    lds_bytes: bytes = field(repr=False)
    signed_attrs: bytes = field(repr=False)
    signature: bytes = field(repr=False)
    document_signer: Certificate
    dg1: bytes | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        size = self.lds_algorithm.digest_size
        for dg, digest in self.data_group_hashes.items():
            if not 1 <= dg <= 16:
                raise ValueError(f"Data group number {dg} is outside 1..16")
            if len(digest) != size:
                raise ValueError(
                    f"DG{dg} digest is {len(digest)} bytes, "
                    f"{self.lds_algorithm} produces {size}"
                )

    def with_dg1(self, dg1: bytes) -> Bundle:
        return dataclasses.replace(self, dg1=dg1)


# ─────────────────────── Merkle registry ───────────────────────


@dataclass(frozen=True, slots=True)
class MerkleTree:
    """
    Fixed-height binary Merkle tree over the trust list's public keys.

    `levels[0]` holds the 2^height leaf hashes (padded with the empty leaf),
    `levels[height]` holds only the root. `keys[i]` is the public key behind
    leaf i for every occupied slot.
    """

    height: int
    levels: tuple[tuple[bytes, ...], ...] = field(repr=False)
    keys: tuple[PublicKey, ...] = field(repr=False)

    @property
    def root(self) -> bytes:
        return self.levels[self.height][0]

    @property
    def leaves(self) -> tuple[bytes, ...]:
        return self.levels[0]

    @property
    def capacity(self) -> int:
        return 1 << self.height


@dataclass(frozen=True, slots=True)
class Witness:
    """Merkle inclusion path: one sibling hash per level, leaf to root."""

    index: int
    siblings: tuple[bytes, ...] = field(repr=False)

    @property
    def directions(self) -> tuple[int, ...]:
        """Per level, 0 when the running hash is the left child, 1 when right."""
        return tuple((self.index >> level) & 1 for level in range(len(self.siblings)))


# ─────────────────────── Verdicts ───────────────────────


@unique
class VerificationOutcome(Enum):
    VERIFIED = "VERIFIED"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    CANDIDATE_NOT_YET_OR_NO_LONGER_VALID_AT_ISSUANCE = (
        "CANDIDATE_NOT_YET_OR_NO_LONGER_VALID_AT_ISSUANCE"
    )
    UNSUPPORTED_SIGNATURE_ALGORITHM = "UNSUPPORTED_SIGNATURE_ALGORITHM"
    ISSUER_NOT_FOUND = "ISSUER_NOT_FOUND"


@unique
class MatchMethod(Enum):
    KEY_IDENTIFIER = "KEY_IDENTIFIER"
    SUBJECT_NAME = "SUBJECT_NAME"
    NONE = "NONE"


@unique
class AuthenticationStep(Enum):
    """The hard gates of document authentication, in the order they run."""

    DG1_IN_LDS = "dg1_in_lds"
    LDS_IN_SIGNED_ATTRS = "lds_in_signed_attrs"
    DOCUMENT_SIGNATURE = "document_signature"
    ISSUER_CHAIN = "issuer_chain"


@dataclass(frozen=True, slots=True)
class CandidateAttempt:
    candidate: Certificate
    outcome: VerificationOutcome


@dataclass(frozen=True, slots=True)
class IssuerSearch:
    """
    Outcome of looking up a certificate's issuer in a trust list.

    Not finding an issuer is an ordinary result (`outcome` is
    ISSUER_NOT_FOUND and `issuer` is None), never an exception.
    """

    leaf: Certificate
    issuer: Certificate | None
    outcome: VerificationOutcome
    method: MatchMethod
    attempts: tuple[CandidateAttempt, ...] = ()

    @property
    def verified(self) -> bool:
        return self.outcome is VerificationOutcome.VERIFIED and self.issuer is not None


@dataclass(frozen=True, slots=True)
class AuthenticationReport:
    """Everything established while authenticating one passport."""

    trust_anchor: Certificate
    document_signer: Certificate
    lds_algorithm: DigestAlgorithm
    signer_algorithm: DigestAlgorithm
    dg1_digest: bytes
    dg1_offset: int
    lds_digest: bytes
    lds_offset: int
    signed_attrs: bytes = field(repr=False)
    issuer_search: IssuerSearch
    birth_date: str | None = None


@dataclass(frozen=True, slots=True)
class DataGroupCheck:
    """Comparison of a supplied data group against its hash in the SOD."""

    data_group: int
    expected: bytes | None = field(repr=False)
    actual: bytes = field(repr=False)

    @property
    def matches(self) -> bool:
        return self.expected is not None and self.expected == self.actual


@dataclass(frozen=True, slots=True)
class TrustStatement:
    """
    Cleartext facts a proving backend turns into a zero-knowledge proof:
    the containment offsets and digests, the signed attributes, the trust
    anchor actually used, and its Merkle membership witness.
    """

    lds_algorithm: DigestAlgorithm
    signer_algorithm: DigestAlgorithm
    dg1_digest: bytes
    dg1_offset: int
    lds_digest: bytes
    lds_offset: int
    signed_attrs: bytes = field(repr=False)
    document_signer: Certificate
    trust_anchor: Certificate
    registry_root: bytes
    leaf_value: bytes
    witness: Witness
    birth_date: str | None = None


@dataclass(frozen=True, slots=True)
class TrustSnapshot:
    """A trust list together with its Merkle index, published as one unit."""

    trust_list: TrustList
    tree: MerkleTree
    built_at: datetime
    rejected_sources: tuple[str, ...] = ()

    @property
    def total_certificates(self) -> int:
        return len(self.trust_list)
