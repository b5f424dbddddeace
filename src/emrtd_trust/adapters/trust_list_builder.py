"""
Trust-list builder — LDIF master lists → deduplicated TrustList.

Adapter layer — pipeline per LDIF source:
  LDIF text
    → scan `pkdMasterListContent:: ` records (base64, RFC 2849 folding)
    → der_decoder: ContentInfo → SignedData → eContent
    → eContent SEQUENCE { version, SET OF Certificate }
    → x509_decoder: Certificate domain models
    → TrustList.from_certificates (SHA-1 of TBS, first occurrence wins)

A certificate that cannot be decoded is logged and skipped; a record whose
CMS envelope is not SignedData fails the whole build.

The resulting list can be written out as a DER `SEQUENCE OF Certificate`
or a PEM bundle and loaded back from either form.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from asn1crypto import parser, pem
from railway import ErrorCode, FailureDescription
from railway.result import Result

from emrtd_trust.adapters.der_decoder import Sequence, Set, as_signed_data, decode
from emrtd_trust.adapters.x509_decoder import CertificateDecoder
from emrtd_trust.domain.errors import MalformedEncoding, MissingContent, SchemaMismatch, TrustChainError
from emrtd_trust.domain.models import Certificate, TrustList
from emrtd_trust.domain.ports import DigestProvider

log = structlog.get_logger()

MASTER_LIST_PREFIX = "pkdMasterListContent:: "

_PEM_LABEL = "CERTIFICATE"


# ─────────────────────── LDIF scanning ───────────────────────


def master_list_records(ldif: str) -> list[bytes]:
    """
    Extract every base64 `pkdMasterListContent` value from LDIF text.

    A record continues on lines starting with a single space (the space is
    dropped) and ends at the next line that does not.
    """
    records: list[str] = []
    current: list[str] | None = None

    for raw_line in ldif.split("\n"):
        line = raw_line.rstrip("\r")
        if line.startswith(MASTER_LIST_PREFIX):
            if current is not None:
                records.append("".join(current))
            current = [line[len(MASTER_LIST_PREFIX) :]]
        elif current is not None and line.startswith(" "):
            current.append(line[1:])
        elif current is not None:
            records.append("".join(current))
            current = None

    if current is not None:
        records.append("".join(current))

    decoded: list[bytes] = []
    for index, record in enumerate(records):
        try:
            decoded.append(base64.b64decode(record.strip(), validate=True))
        except binascii.Error as e:
            raise MalformedEncoding(f"Master list record {index} is not valid base64: {e}") from e
    return decoded


# ─────────────────────── Master list unwrapping ───────────────────────


def master_list_certificates(cms_der: bytes) -> list[bytes]:
    """
    Return the DER of every certificate in a master list's eContent.

    The eContent is:
      CscaMasterList ::= SEQUENCE { version INTEGER, certList SET OF Certificate }
    """
    signed_data = as_signed_data(decode(cms_der))
    if signed_data.econtent is None:
        raise MissingContent("Master list SignedData carries no eContent")

    match decode(signed_data.econtent):
        case Sequence(children=(_, Set(children=certificates), *_)):
            return [cert.encoded for cert in certificates if isinstance(cert, Sequence)]
        case _:
            raise SchemaMismatch("Master list eContent is not SEQUENCE { version, SET OF Certificate }")


@dataclass(frozen=True, slots=True)
class IsolatedBuild:
    """Merged trust list plus the sources that were rejected, with why."""

    trust_list: TrustList
    rejected: tuple[tuple[str, FailureDescription], ...] = field(default=())

    @property
    def rejected_sources(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.rejected)


# ─────────────────────── Public Builder Class ───────────────────────


class TrustListBuilder:
    """
    Builds, serializes and reloads trust lists.

    All exceptions are caught at this adapter boundary via Result.from_computation().
    """

    def __init__(self, digests: DigestProvider) -> None:
        self._decoder = CertificateDecoder(digests)

    def build(self, sources: Iterable[str]) -> Result[TrustList]:
        """
        Build one TrustList from LDIF texts, in source order.

        Returns Result.failure with the first source-level error
        (unsupported content type, missing eContent, bad base64 ...).
        """
        return Result.from_computation(
            lambda: TrustList.from_certificates(
                cert for ldif in sources for cert in self._certificates_from_ldif(ldif)
            ),
            ErrorCode.MALFORMED_ENCODING,
            "Failed to build trust list",
        )

    def build_isolated(self, sources: Iterable[tuple[str, str]]) -> IsolatedBuild:
        """
        Build from named sources, isolating failures per source.

        A rejected source contributes nothing; the others are merged in order.
        """
        accepted: list[Certificate] = []
        rejected: list[tuple[str, FailureDescription]] = []

        for name, ldif in sources:
            result = self.build([ldif])
            if result.is_failure():
                log.warning(
                    "trust_list.source_rejected",
                    source=name,
                    error_code=result.error().code.value,
                    error=result.error().message,
                )
                rejected.append((name, result.error()))
                continue
            log.info("trust_list.source_accepted", source=name, certificates=len(result.value()))
            accepted.extend(result.value())

        return IsolatedBuild(TrustList.from_certificates(accepted), tuple(rejected))

    def _certificates_from_ldif(self, ldif: str) -> list[Certificate]:
        records = master_list_records(ldif)
        if not records:
            log.warning("trust_list.no_master_list_records")

        certificates: list[Certificate] = []
        for index, record in enumerate(records):
            ders = master_list_certificates(record)
            for der in ders:
                try:
                    certificates.append(self._decoder.decode(der))
                except TrustChainError as e:
                    log.warning(
                        "trust_list.certificate_skipped",
                        record=index,
                        error_code=e.error_code.value,
                        error=str(e),
                    )
            log.debug("trust_list.record_parsed", record=index, certificates=len(ders))

        return certificates

    # ──────────────────────── Serialization ────────────────────────

    def serialize_der(self, trust_list: TrustList) -> bytes:
        """DER `SEQUENCE OF Certificate`, certificates in trust-list order."""
        return parser.emit(0, 1, 16, b"".join(cert.der for cert in trust_list))

    def serialize_pem(self, trust_list: TrustList) -> str:
        """Concatenated BEGIN/END CERTIFICATE blocks with 64-column base64."""
        return b"".join(pem.armor(_PEM_LABEL, cert.der) for cert in trust_list).decode("ascii")

    def load_der(self, data: bytes) -> Result[TrustList]:
        return Result.from_computation(
            lambda: self._from_ders(self._sequence_members(data)),
            ErrorCode.MALFORMED_ENCODING,
            "Failed to load DER trust list",
        )

    def load_pem(self, text: str) -> Result[TrustList]:
        return Result.from_computation(
            lambda: self._from_ders(
                der
                for label, _headers, der in pem.unarmor(text.encode("ascii"), multiple=True)
                if label == _PEM_LABEL
            ),
            ErrorCode.MALFORMED_ENCODING,
            "Failed to load PEM trust list",
        )

    @staticmethod
    def _sequence_members(data: bytes) -> list[bytes]:
        match decode(data):
            case Sequence(children=children):
                return [child.encoded for child in children]
            case _:
                raise SchemaMismatch("Trust list DER is not a SEQUENCE OF Certificate")

    def _from_ders(self, ders: Iterable[bytes]) -> TrustList:
        return TrustList.from_certificates(self._decoder.decode(der) for der in ders)
