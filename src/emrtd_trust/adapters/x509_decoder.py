"""
X.509 certificate decoder — DER bytes → domain Certificate.

Adapter layer — combines three readers of the same bytes:
  - der_decoder: outer shape check, exact TBS bytes, signature algorithm
    and signature value (including OIDs no library knows, such as the BSI
    plain-ECDSA family)
  - cryptography (PyCA): names, serial, validity, SKI / AKI extensions
  - asn1crypto: SubjectPublicKeyInfo, including EC keys with explicit
    domain parameters that cryptography refuses to load

Missing SKI / AKI extensions result in None fields — they do NOT cause
failures. Everything else that cannot be read raises a TrustChainError.
"""

from __future__ import annotations

import structlog
from asn1crypto import keys
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.x509.extensions import ExtensionNotFound
from railway import ErrorCode
from railway.result import Result

from emrtd_trust.adapters.crypto_provider import curve_for_point
from emrtd_trust.adapters.der_decoder import as_certificate, decode
from emrtd_trust.domain.errors import MalformedEncoding, SchemaMismatch, UnsupportedSignatureAlgorithm
from emrtd_trust.domain.models import (
    Certificate,
    DistinguishedName,
    EcPublicKey,
    PublicKey,
    RsaPublicKey,
    SignatureAlgorithm,
)
from emrtd_trust.domain.ports import DigestProvider

log = structlog.get_logger()

EXPLICIT_CURVE = "explicit"

# ─────────────────────── X.509 Metadata Extraction ───────────────────────


def _extract_ski(extensions: x509.Extensions) -> bytes | None:
    """Extract Subject Key Identifier extension bytes, or None if absent."""
    try:
        return extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value.digest
    except ExtensionNotFound:
        return None


def _extract_aki(extensions: x509.Extensions) -> bytes | None:
    """Extract the Authority Key Identifier keyIdentifier bytes, or None if absent."""
    try:
        return extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value.key_identifier
    except ExtensionNotFound:
        return None


def _distinguished_name(name: x509.Name) -> DistinguishedName:
    pairs: list[tuple[str, str]] = []
    for attribute in name:
        value = attribute.value
        pairs.append(
            (attribute.oid.dotted_string, value.hex() if isinstance(value, bytes) else value)
        )
    return tuple(pairs)


# ─────────────────────── Public key extraction ───────────────────────


def _public_key(der: bytes) -> PublicKey:
    try:
        spki = asn1_x509.Certificate.load(der)["tbs_certificate"]["subject_public_key_info"]
        algorithm = spki.algorithm
    except ValueError as e:
        raise SchemaMismatch(f"Unreadable SubjectPublicKeyInfo: {e}") from e

    match algorithm:
        case "rsa" | "rsassa_pss":
            parsed = spki["public_key"].parsed
            return RsaPublicKey(
                modulus=parsed["modulus"].native,
                exponent=parsed["public_exponent"].native,
            )
        case "ec":
            return _ec_public_key(spki)
        case _:
            raise UnsupportedSignatureAlgorithm(f"Unsupported public key algorithm {algorithm!r}")


def _ec_public_key(spki: keys.PublicKeyInfo) -> EcPublicKey:
    try:
        curve_type, details = spki.curve
        x, y = spki["public_key"].to_coords()
    except ValueError as e:
        raise UnsupportedSignatureAlgorithm(f"Unsupported EC public key encoding: {e}") from e

    match curve_type:
        case "named":
            return EcPublicKey(curve=details, x=x, y=y)
        case "specified":
            field_bits = details["field_id"]["parameters"].bit_length()
            curve = curve_for_point(x, y, field_bits)
            if curve is None:
                log.warning("certificate.explicit_curve_unresolved", field_bits=field_bits)
                curve = EXPLICIT_CURVE
            return EcPublicKey(curve=curve, x=x, y=y)
        case _:
            raise UnsupportedSignatureAlgorithm(f"Unsupported EC parameters {curve_type!r}")


# ─────────────────────── Decoder ───────────────────────


class CertificateDecoder:
    """
    Decodes DER X.509 certificates into domain Certificates.

    The fingerprint is SHA-1 over the TBS bytes, computed with the injected
    digest provider.
    """

    def __init__(self, digests: DigestProvider) -> None:
        self._digests = digests

    def decode(self, der: bytes) -> Certificate:
        """Decode one certificate, raising a TrustChainError on any problem."""
        parts = as_certificate(decode(der))

        try:
            cert = x509.load_der_x509_certificate(der)
            not_before = cert.not_valid_before_utc
            not_after = cert.not_valid_after_utc
            issuer = _distinguished_name(cert.issuer)
            subject = _distinguished_name(cert.subject)
            serial_number = cert.serial_number
            extensions = cert.extensions
        except (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
            raise MalformedEncoding(f"Unreadable X.509 certificate: {e}") from e

        try:
            return Certificate(
                der=der,
                tbs_bytes=parts.tbs.encoded,
                fingerprint=self._digests.fingerprint(parts.tbs.encoded),
                serial_number=serial_number,
                issuer=issuer,
                subject=subject,
                not_before=not_before,
                not_after=not_after,
                signature_algorithm=SignatureAlgorithm(
                    parts.signature_algorithm.oid, parts.signature_algorithm.parameters
                ),
                signature=parts.signature,
                public_key=_public_key(der),
                subject_key_identifier=_extract_ski(extensions),
                authority_key_identifier=_extract_aki(extensions),
            )
        except ValueError as e:
            raise SchemaMismatch(str(e)) from e

    def parse(self, der: bytes) -> Result[Certificate]:
        return Result.from_computation(
            lambda: self.decode(der),
            ErrorCode.MALFORMED_ENCODING,
            "Failed to decode certificate",
        )
