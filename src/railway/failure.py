"""
Failure description — structured error information for the failure track.

ErrorCode enumerates the verifier's error taxonomy. Codes are grouped by
whether they are fatal to a parsed structure, to a single authentication,
or are expected, non-exceptional outcomes of a trust-list scan.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """Structured error codes for the failure track."""

    # --- Decoding (fatal to the structure being parsed) ---
    MALFORMED_ENCODING = "MALFORMED_ENCODING"
    """ASN.1 tag/length violation: overrun, trailing data, bad primitive encoding."""

    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    """Well-formed ASN.1 with the wrong shape for the expected CMS/X.509/LDS construct."""

    UNSUPPORTED_DIGEST_ALGORITHM = "UNSUPPORTED_DIGEST_ALGORITHM"
    """Digest OID outside the supported table."""

    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    """ContentInfo type is not CMS SignedData."""

    UNSUPPORTED_SIGNATURE_ALGORITHM = "UNSUPPORTED_SIGNATURE_ALGORITHM"
    """Signature OID, parameters or curve the verifier cannot evaluate."""

    MISSING_CONTENT = "MISSING_CONTENT"
    """Encapsulated content, embedded certificate or DG1 bytes absent."""

    MISSING_SIGNER_INFO = "MISSING_SIGNER_INFO"
    """SignedData carries no SignerInfo."""

    # --- Authentication chain (fatal to one passport) ---
    CONTAINMENT_MISMATCH = "CONTAINMENT_MISMATCH"
    """Recomputed digest not found at its fixed offset."""

    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    """Cryptographic signature check failed."""

    ISSUER_NOT_FOUND = "ISSUER_NOT_FOUND"
    """No trust-list candidate verified the leaf certificate."""

    CANDIDATE_NOT_YET_OR_NO_LONGER_VALID_AT_ISSUANCE = (
        "CANDIDATE_NOT_YET_OR_NO_LONGER_VALID_AT_ISSUANCE"
    )
    """Candidate issuer was outside its validity window when the leaf was issued."""

    # --- Registry / operations ---
    REGISTRY_CAPACITY_EXCEEDED = "REGISTRY_CAPACITY_EXCEEDED"
    """Trust list holds more certificates than the Merkle tree has leaves."""

    SOURCE_UNAVAILABLE = "SOURCE_UNAVAILABLE"
    """A trust-list source could not be read."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Unexpected/unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.SIGNATURE_INVALID, "document signature does not verify")
    >>> desc.code
    <ErrorCode.SIGNATURE_INVALID: 'SIGNATURE_INVALID'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"
