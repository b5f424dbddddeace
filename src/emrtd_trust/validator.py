"""
Certificate chain validator — find the trust-list certificate that signed a leaf.

Candidate selection, in strict precedence:
  1. Key identifier: leaf AuthorityKeyIdentifier == candidate SubjectKeyIdentifier
  2. Subject name:   leaf issuer DN == candidate subject DN
     (only when the leaf has no AKI, or no candidate's SKI matched it)

Each candidate, in trust-list order:
  - must have been valid when the leaf was issued:
      candidate.not_before <= leaf.not_before < candidate.not_after
  - must verify leaf.signature over leaf.tbs_bytes with its public key

The first candidate passing both wins. Running out of candidates is the
ordinary ISSUER_NOT_FOUND outcome, not an error.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from emrtd_trust.domain.errors import UnsupportedSignatureAlgorithm
from emrtd_trust.domain.models import (
    CandidateAttempt,
    Certificate,
    IssuerSearch,
    MatchMethod,
    VerificationOutcome,
)
from emrtd_trust.domain.ports import SignatureVerifier

log = structlog.get_logger()


def _candidates_by_key_identifier(
    leaf: Certificate, certificates: tuple[Certificate, ...]
) -> list[Certificate]:
    aki = leaf.authority_key_identifier
    if not aki:
        return []
    return [c for c in certificates if c.subject_key_identifier == aki]


def _candidates_by_name(
    leaf: Certificate, certificates: tuple[Certificate, ...]
) -> list[Certificate]:
    return [c for c in certificates if c.subject == leaf.issuer]


class ChainValidator:
    """Issuer lookup over a trust list using an injected signature verifier."""

    def __init__(self, verifier: SignatureVerifier) -> None:
        self._verifier = verifier

    def find_issuer(self, leaf: Certificate, candidates: Iterable[Certificate]) -> IssuerSearch:
        certificates = tuple(candidates)

        by_key = _candidates_by_key_identifier(leaf, certificates)
        if by_key:
            method, matched = MatchMethod.KEY_IDENTIFIER, by_key
        else:
            method, matched = MatchMethod.SUBJECT_NAME, _candidates_by_name(leaf, certificates)

        attempts: list[CandidateAttempt] = []
        for candidate in matched:
            outcome = self._check_candidate(leaf, candidate)
            attempts.append(CandidateAttempt(candidate, outcome))
            if outcome is VerificationOutcome.VERIFIED:
                log.debug(
                    "validator.issuer_found",
                    method=method.value,
                    issuer_serial=hex(candidate.serial_number),
                    attempts=len(attempts),
                )
                return IssuerSearch(leaf, candidate, outcome, method, tuple(attempts))

        log.info(
            "validator.issuer_not_found",
            leaf_serial=hex(leaf.serial_number),
            method=method.value if matched else MatchMethod.NONE.value,
            attempts=len(attempts),
        )
        return IssuerSearch(
            leaf,
            None,
            VerificationOutcome.ISSUER_NOT_FOUND,
            method if matched else MatchMethod.NONE,
            tuple(attempts),
        )

    def _check_candidate(self, leaf: Certificate, candidate: Certificate) -> VerificationOutcome:
        if not candidate.is_valid_at(leaf.not_before):
            return VerificationOutcome.CANDIDATE_NOT_YET_OR_NO_LONGER_VALID_AT_ISSUANCE

        try:
            verified = self._verifier.verify(
                candidate.public_key,
                leaf.signature,
                leaf.tbs_bytes,
                leaf.signature_algorithm,
            )
        except UnsupportedSignatureAlgorithm as e:
            log.warning(
                "validator.unsupported_signature_algorithm",
                algorithm=leaf.signature_algorithm.oid,
                candidate_serial=hex(candidate.serial_number),
                error=str(e),
            )
            return VerificationOutcome.UNSUPPORTED_SIGNATURE_ALGORITHM

        return VerificationOutcome.VERIFIED if verified else VerificationOutcome.SIGNATURE_INVALID
