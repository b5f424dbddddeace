"""
SOD decoder — passport EF.SOD bytes → Bundle.

Adapter layer — pipeline:
  raw EF.SOD
    → skip the application-tag prefix (0x77 + length, 4 bytes by default)
    → der_decoder: ContentInfo → SignedData
    → eContent: LDSSecurityObject (version, hashAlgorithm, dataGroupHashes)
    → signerInfos[0]: signed attributes, digest / signature algorithms, signature
    → certificates[0]: document signer (x509_decoder)
    → Bundle (domain model)

    LDSSecurityObject ::= SEQUENCE {
        version          INTEGER,
        hashAlgorithm    AlgorithmIdentifier,
        dataGroupHashes  SEQUENCE SIZE (2..16) OF DataGroupHash,
        ldsVersionInfo   LDSVersionInfo OPTIONAL
    }
    DataGroupHash ::= SEQUENCE { dataGroupNumber INTEGER, dataGroupHashValue OCTET STRING }
"""

from __future__ import annotations

import structlog
from railway import ErrorCode
from railway.result import Result

from emrtd_trust.adapters.der_decoder import (
    Integer,
    ObjectIdentifier,
    OctetString,
    Sequence,
    as_signed_data,
    decode,
)
from emrtd_trust.adapters.x509_decoder import CertificateDecoder
from emrtd_trust.domain.algorithms import DigestAlgorithm, digest_algorithm_for_oid
from emrtd_trust.domain.errors import MalformedEncoding, MissingContent, MissingSignerInfo, SchemaMismatch
from emrtd_trust.domain.models import Bundle, SignatureAlgorithm
from emrtd_trust.domain.ports import DigestProvider

log = structlog.get_logger()

DEFAULT_PREFIX_LENGTH = 4


def parse_lds(lds: bytes) -> tuple[int, DigestAlgorithm, dict[int, bytes]]:
    """Read version, hash algorithm and the DG number → digest map from LDS bytes."""
    match decode(lds):
        case Sequence(
            children=(
                Integer(value=version),
                Sequence(children=(ObjectIdentifier(dotted=hash_oid), *_)),
                Sequence(children=hash_nodes),
                *_,
            )
        ):
            pass
        case _:
            raise SchemaMismatch(
                "LDS Security Object is not SEQUENCE { version, hashAlgorithm, dataGroupHashes }"
            )

    algorithm = digest_algorithm_for_oid(hash_oid)
    hashes: dict[int, bytes] = {}
    for node in hash_nodes:
        match node:
            case Sequence(children=(Integer(value=dg), OctetString(value=digest))):
                pass
            case _:
                raise SchemaMismatch("DataGroupHash is not SEQUENCE { INTEGER, OCTET STRING }")
        if not 1 <= dg <= 16:
            raise SchemaMismatch(f"Data group number {dg} is outside 1..16")
        if dg in hashes:
            raise SchemaMismatch(f"Data group {dg} is hashed twice")
        if len(digest) != algorithm.digest_size:
            raise SchemaMismatch(
                f"DG{dg} digest is {len(digest)} bytes, {algorithm} produces {algorithm.digest_size}"
            )
        hashes[dg] = digest

    return version, algorithm, hashes


class SodDecoder:
    """
    Decodes a passport Security Object Document into a Bundle.

    All exceptions are caught at this adapter boundary via Result.from_computation(),
    keeping the specific error code each decoding error carries.
    """

    def __init__(self, digests: DigestProvider, prefix_length: int = DEFAULT_PREFIX_LENGTH) -> None:
        self._certificates = CertificateDecoder(digests)
        self._prefix_length = prefix_length

    def decode(self, data: bytes, dg1: bytes | None = None) -> Result[Bundle]:
        """
        Decode EF.SOD bytes, optionally attaching DG1 read from the same chip.

        Returns Result[Bundle] on success.
        Returns Result.failure(MALFORMED_ENCODING | SCHEMA_MISMATCH |
        UNSUPPORTED_CONTENT_TYPE | UNSUPPORTED_DIGEST_ALGORITHM | MISSING_CONTENT |
        MISSING_SIGNER_INFO, ...) otherwise.
        """
        return Result.from_computation(
            lambda: self._do_decode(data, dg1),
            ErrorCode.MALFORMED_ENCODING,
            "Failed to decode SOD",
        )

    def _do_decode(self, data: bytes, dg1: bytes | None) -> Bundle:
        if len(data) <= self._prefix_length:
            raise MalformedEncoding(
                f"SOD is {len(data)} bytes, shorter than its {self._prefix_length}-byte prefix"
            )

        signed_data = as_signed_data(decode(data[self._prefix_length :]))
        if signed_data.econtent is None:
            raise MissingContent("SOD SignedData carries no LDS Security Object")
        if not signed_data.signer_infos:
            raise MissingSignerInfo("SOD SignedData has no SignerInfo")
        if not signed_data.certificates:
            raise MissingContent("SOD carries no embedded document signer certificate")

        signer = signed_data.signer_infos[0]
        if signer.signed_attrs is None:
            raise MissingContent("SOD SignerInfo carries no signed attributes")

        version, lds_algorithm, hashes = parse_lds(signed_data.econtent)
        signer_algorithm = digest_algorithm_for_oid(signer.digest_algorithm.oid)
        document_signer = self._certificates.decode(signed_data.certificates[0])

        log.debug(
            "sod.decoded",
            lds_algorithm=str(lds_algorithm),
            signer_algorithm=str(signer_algorithm),
            data_groups=sorted(hashes),
        )

        return Bundle(
            version=version,
            lds_algorithm=lds_algorithm,
            signer_algorithm=signer_algorithm,
            signature_algorithm=SignatureAlgorithm(
                signer.signature_algorithm.oid, signer.signature_algorithm.parameters
            ),
            data_group_hashes=hashes,
            lds_bytes=signed_data.econtent,
            signed_attrs=signer.signed_attrs,
            signature=signer.signature,
            document_signer=document_signer,
            dg1=dg1,
        )
