"""
Typed decoding errors.

Decoders raise these internally; adapter boundaries turn them into
Failure values with Result.from_computation, which reads `error_code`
from the exception so the failure keeps the precise taxonomy entry.
"""

from __future__ import annotations

from railway import ErrorCode


class TrustChainError(Exception):
    """Base class for every error raised while decoding trust material."""

    error_code: ErrorCode = ErrorCode.TECHNICAL_ERROR


class MalformedEncoding(TrustChainError):
    """Tag/length violation: overrun, trailing bytes, constructed primitive."""

    error_code = ErrorCode.MALFORMED_ENCODING


class SchemaMismatch(TrustChainError):
    """Well-formed ASN.1 whose shape is not the expected structure."""

    error_code = ErrorCode.SCHEMA_MISMATCH


class UnsupportedContentType(SchemaMismatch):
    error_code = ErrorCode.UNSUPPORTED_CONTENT_TYPE


class UnsupportedDigestAlgorithm(TrustChainError):
    error_code = ErrorCode.UNSUPPORTED_DIGEST_ALGORITHM


class UnsupportedSignatureAlgorithm(TrustChainError):
    error_code = ErrorCode.UNSUPPORTED_SIGNATURE_ALGORITHM


class MissingContent(TrustChainError):
    error_code = ErrorCode.MISSING_CONTENT


class MissingSignerInfo(TrustChainError):
    error_code = ErrorCode.MISSING_SIGNER_INFO
