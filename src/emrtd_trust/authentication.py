"""
Document authentication — the passport chain of trust as a railway.

Every step is a hard gate; the first failing step short-circuits the rest:

  DG1_IN_LDS            digest(DG1) with the LDS algorithm at 10 + oid_length in the LDS
    → LDS_IN_SIGNED_ATTRS   digest(LDS) with the signer algorithm at offset 42 in signed attrs
      → DOCUMENT_SIGNATURE      signed attrs verify under the document signer's key
        → ISSUER_CHAIN              a trust-list certificate verifies the document signer
          → AuthenticationReport

Containment is checked at fixed offsets (the same positions a proving
backend checks), never by searching. Failure messages start with the step name.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog
from railway import ErrorCode
from railway.result import Result

from emrtd_trust.domain.algorithms import (
    BIRTH_DATE_LENGTH,
    LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS,
    DocumentType,
    dg1_offset_in_lds,
)
from emrtd_trust.domain.errors import MalformedEncoding
from emrtd_trust.domain.models import (
    AuthenticationReport,
    AuthenticationStep,
    Bundle,
    DataGroupCheck,
    IssuerSearch,
    TrustList,
)
from emrtd_trust.domain.ports import CryptoProvider
from emrtd_trust.validator import ChainValidator

log = structlog.get_logger()


def contains_at(haystack: bytes, needle: bytes, offset: int) -> bool:
    """True when `needle` occupies haystack[offset : offset + len(needle)] exactly."""
    end = offset + len(needle)
    return end <= len(haystack) and haystack[offset:end] == needle


def birth_date(dg1: bytes, document_type: DocumentType = DocumentType.TD3) -> str:
    """
    The holder's date of birth as the six YYMMDD digits of the MRZ.

    Raises MalformedEncoding when DG1 is too short for the format or the
    field holds anything but ASCII digits.
    """
    offset = document_type.birth_date_offset
    field_bytes = dg1[offset : offset + BIRTH_DATE_LENGTH]
    if len(field_bytes) != BIRTH_DATE_LENGTH:
        raise MalformedEncoding(
            f"DG1 is {len(dg1)} bytes, too short for a {document_type.name} date of birth"
        )
    if not (field_bytes.isascii() and field_bytes.isdigit()):
        raise MalformedEncoding(
            f"{document_type.name} date of birth is not YYMMDD: {field_bytes!r}"
        )
    return field_bytes.decode("ascii")


def _report_birth_date(dg1: bytes) -> str | None:
    document_type = DocumentType.for_dg1(dg1)
    if document_type is None:
        log.warning("authentication.dg1_layout_unknown", dg1_length=len(dg1))
        return None
    try:
        return birth_date(dg1, document_type)
    except MalformedEncoding as e:
        log.warning("authentication.birth_date_unreadable", error=str(e))
        return None


def _fail(step: AuthenticationStep, code: ErrorCode, message: str) -> Result:
    return Result.failure(code, f"{step.value}: {message}")


class DocumentAuthenticator:
    """
    Authenticates decoded SODs against a trust list.

    Stateless apart from its collaborators; safe to share between threads.
    """

    def __init__(self, crypto: CryptoProvider, validator: ChainValidator | None = None) -> None:
        self._crypto = crypto
        self._validator = validator or ChainValidator(crypto)

    def authenticate(self, bundle: Bundle, trust_list: TrustList) -> Result[AuthenticationReport]:
        result = (
            self._check_dg1_in_lds(bundle)
            .flat_map(
                lambda dg1_digest: self._check_lds_in_signed_attrs(bundle).map(
                    lambda lds_digest: (dg1_digest, lds_digest)
                )
            )
            .flat_map(lambda digests: self._check_document_signature(bundle).map(lambda _: digests))
            .flat_map(
                lambda digests: self._check_issuer_chain(bundle, trust_list).map(
                    lambda search: self._report(bundle, digests[0], digests[1], search)
                )
            )
        )
        result.peek(
            lambda report: log.info(
                "authentication.verified",
                document_signer_serial=hex(report.document_signer.serial_number),
                trust_anchor_serial=hex(report.trust_anchor.serial_number),
                match_method=report.issuer_search.method.value,
            )
        ).peek_failure(
            lambda error: log.info(
                "authentication.rejected", error_code=error.code.value, error=error.message
            )
        )
        return result

    def authenticate_many(
        self, bundles: Iterable[Bundle], trust_list: TrustList
    ) -> list[Result[AuthenticationReport]]:
        """Authenticate each bundle independently; one failure never affects another."""
        return [
            Result.from_computation(
                lambda b=bundle: self.authenticate(b, trust_list),
                ErrorCode.TECHNICAL_ERROR,
                "Authentication crashed",
            ).flat_map(lambda inner: inner)
            for bundle in bundles
        ]

    def check_data_groups(
        self, bundle: Bundle, data_groups: Mapping[int, bytes]
    ) -> tuple[DataGroupCheck, ...]:
        """
        Hash each supplied data group with the LDS algorithm and compare it with
        the SOD. A data group the SOD does not list never matches.
        """
        return tuple(
            DataGroupCheck(
                data_group=dg,
                expected=bundle.data_group_hashes.get(dg),
                actual=self._crypto.digest(bundle.lds_algorithm, content),
            )
            for dg, content in sorted(data_groups.items())
        )

    # ──────────────────────── Steps ────────────────────────

    def _check_dg1_in_lds(self, bundle: Bundle) -> Result[bytes]:
        step = AuthenticationStep.DG1_IN_LDS
        if bundle.dg1 is None:
            return _fail(step, ErrorCode.MISSING_CONTENT, "DG1 bytes were not supplied")

        algorithm = bundle.lds_algorithm
        offset = dg1_offset_in_lds(algorithm)
        digest = self._crypto.digest(algorithm, bundle.dg1)
        if len(bundle.lds_bytes) < offset + algorithm.digest_size:
            return _fail(
                step,
                ErrorCode.CONTAINMENT_MISMATCH,
                f"LDS is {len(bundle.lds_bytes)} bytes, too short for a "
                f"{algorithm} digest at offset {offset}",
            )
        if not contains_at(bundle.lds_bytes, digest, offset):
            return _fail(
                step, ErrorCode.CONTAINMENT_MISMATCH, f"{algorithm} of DG1 not at LDS offset {offset}"
            )
        return Result.success(digest)

    def _check_lds_in_signed_attrs(self, bundle: Bundle) -> Result[bytes]:
        step = AuthenticationStep.LDS_IN_SIGNED_ATTRS
        algorithm = bundle.signer_algorithm
        offset = LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS
        digest = self._crypto.digest(algorithm, bundle.lds_bytes)
        if not contains_at(bundle.signed_attrs, digest, offset):
            return _fail(
                step,
                ErrorCode.CONTAINMENT_MISMATCH,
                f"{algorithm} of LDS not at signed-attributes offset {offset}",
            )
        return Result.success(digest)

    def _check_document_signature(self, bundle: Bundle) -> Result[bool]:
        step = AuthenticationStep.DOCUMENT_SIGNATURE
        return Result.from_computation(
            lambda: self._crypto.verify(
                bundle.document_signer.public_key,
                bundle.signature,
                bundle.signed_attrs,
                bundle.signature_algorithm,
                digest_hint=bundle.signer_algorithm,
            ),
            ErrorCode.SIGNATURE_INVALID,
            step.value,
        ).ensure(
            lambda verified: verified,
            ErrorCode.SIGNATURE_INVALID,
            f"{step.value}: signed attributes do not verify under the document signer key",
        )

    def _check_issuer_chain(self, bundle: Bundle, trust_list: TrustList) -> Result[IssuerSearch]:
        step = AuthenticationStep.ISSUER_CHAIN
        search = self._validator.find_issuer(bundle.document_signer, trust_list)
        if not search.verified:
            tried = ", ".join(a.outcome.value for a in search.attempts) or "no candidates"
            return _fail(
                step,
                ErrorCode.ISSUER_NOT_FOUND,
                f"no trust-list certificate verifies the document signer ({tried})",
            )
        return Result.success(search)

    @staticmethod
    def _report(
        bundle: Bundle, dg1_digest: bytes, lds_digest: bytes, search: IssuerSearch
    ) -> AuthenticationReport:
        assert search.issuer is not None
        assert bundle.dg1 is not None
        return AuthenticationReport(
            trust_anchor=search.issuer,
            document_signer=bundle.document_signer,
            lds_algorithm=bundle.lds_algorithm,
            signer_algorithm=bundle.signer_algorithm,
            dg1_digest=dg1_digest,
            dg1_offset=dg1_offset_in_lds(bundle.lds_algorithm),
            lds_digest=lds_digest,
            lds_offset=LDS_DIGEST_OFFSET_IN_SIGNED_ATTRS,
            signed_attrs=bundle.signed_attrs,
            issuer_search=search,
            birth_date=_report_birth_date(bundle.dg1),
        )
