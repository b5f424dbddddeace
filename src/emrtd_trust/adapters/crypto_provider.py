"""
Cryptography provider adapter — digests and signature verification.

Adapter layer — implements the CryptoProvider port using:
  - cryptography (PyCA): SHA-2 / SHA-3 / SHAKE digests, RSA and ECDSA
    verification on keys rebuilt from their decoded numbers
  - asn1crypto: RSASSA-PSS parameter decoding

Supported signature families:
  - RSA PKCS#1 v1.5          sha1/sha224/sha256/sha384/sha512WithRSAEncryption
  - RSASSA-PSS               id-RSASSA-PSS with explicit parameters
  - ECDSA (DER signature)    ecdsa-with-SHA1/SHA224/SHA256/SHA384/SHA512/SHA3-*
  - ECDSA (plain r || s)     BSI TR-03111 ecdsa-plain-SHA1 ... SHA512

A signature that does not verify yields False. An algorithm, parameter set
or curve outside this table raises UnsupportedSignatureAlgorithm.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
from asn1crypto import algos
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from emrtd_trust.domain.algorithms import DigestAlgorithm
from emrtd_trust.domain.errors import UnsupportedSignatureAlgorithm
from emrtd_trust.domain.models import EcPublicKey, PublicKey, RsaPublicKey, SignatureAlgorithm

log = structlog.get_logger()

# ─────────────────────── Digest tables ───────────────────────

_DIGESTS: dict[DigestAlgorithm, Callable[[], hashes.HashAlgorithm]] = {
    DigestAlgorithm.SHA256: hashes.SHA256,
    DigestAlgorithm.SHA384: hashes.SHA384,
    DigestAlgorithm.SHA512: hashes.SHA512,
    DigestAlgorithm.SHA512_224: hashes.SHA512_224,
    DigestAlgorithm.SHA512_256: hashes.SHA512_256,
    DigestAlgorithm.SHA3_224: hashes.SHA3_224,
    DigestAlgorithm.SHA3_256: hashes.SHA3_256,
    DigestAlgorithm.SHA3_384: hashes.SHA3_384,
    DigestAlgorithm.SHA3_512: hashes.SHA3_512,
    DigestAlgorithm.SHAKE128: lambda: hashes.SHAKE128(DigestAlgorithm.SHAKE128.digest_size),
    DigestAlgorithm.SHAKE256: lambda: hashes.SHAKE256(DigestAlgorithm.SHAKE256.digest_size),
}

# Hash names as asn1crypto spells them inside signature parameters.
_HASHES_BY_NAME: dict[str, Callable[[], hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha512_224": hashes.SHA512_224,
    "sha512_256": hashes.SHA512_256,
    "sha3_224": hashes.SHA3_224,
    "sha3_256": hashes.SHA3_256,
    "sha3_384": hashes.SHA3_384,
    "sha3_512": hashes.SHA3_512,
}

# ─────────────────────── Signature algorithm table ───────────────────────
# OID → (family, hash name). A hash name of None means the digest comes from
# the caller's hint (SignerInfo digestAlgorithm).

_PKCS1 = "pkcs1v15"
_PSS = "pss"
_ECDSA = "ecdsa"
_ECDSA_PLAIN = "ecdsa_plain"

_SIGNATURE_ALGORITHMS: dict[str, tuple[str, str | None]] = {
    "1.2.840.113549.1.1.1": (_PKCS1, None),
    "1.2.840.113549.1.1.5": (_PKCS1, "sha1"),
    "1.2.840.113549.1.1.14": (_PKCS1, "sha224"),
    "1.2.840.113549.1.1.11": (_PKCS1, "sha256"),
    "1.2.840.113549.1.1.12": (_PKCS1, "sha384"),
    "1.2.840.113549.1.1.13": (_PKCS1, "sha512"),
    "1.2.840.113549.1.1.10": (_PSS, None),
    "1.2.840.10045.2.1": (_ECDSA, None),
    "1.2.840.10045.4.1": (_ECDSA, "sha1"),
    "1.2.840.10045.4.3.1": (_ECDSA, "sha224"),
    "1.2.840.10045.4.3.2": (_ECDSA, "sha256"),
    "1.2.840.10045.4.3.3": (_ECDSA, "sha384"),
    "1.2.840.10045.4.3.4": (_ECDSA, "sha512"),
    "2.16.840.1.101.3.4.3.9": (_ECDSA, "sha3_224"),
    "2.16.840.1.101.3.4.3.10": (_ECDSA, "sha3_256"),
    "2.16.840.1.101.3.4.3.11": (_ECDSA, "sha3_384"),
    "2.16.840.1.101.3.4.3.12": (_ECDSA, "sha3_512"),
    "0.4.0.127.0.7.1.1.4.1.1": (_ECDSA_PLAIN, "sha1"),
    "0.4.0.127.0.7.1.1.4.1.2": (_ECDSA_PLAIN, "sha224"),
    "0.4.0.127.0.7.1.1.4.1.3": (_ECDSA_PLAIN, "sha256"),
    "0.4.0.127.0.7.1.1.4.1.4": (_ECDSA_PLAIN, "sha384"),
    "0.4.0.127.0.7.1.1.4.1.5": (_ECDSA_PLAIN, "sha512"),
}

_CURVES: dict[str, Callable[[], ec.EllipticCurve]] = {
    "secp192r1": ec.SECP192R1,
    "secp224r1": ec.SECP224R1,
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
    "secp256k1": ec.SECP256K1,
    "brainpoolp256r1": ec.BrainpoolP256R1,
    "brainpoolp384r1": ec.BrainpoolP384R1,
    "brainpoolp512r1": ec.BrainpoolP512R1,
}


def curve_for_name(name: str) -> ec.EllipticCurve:
    """Resolve a lowercase curve name, raising UnsupportedSignatureAlgorithm."""
    factory = _CURVES.get(name)
    if factory is None:
        raise UnsupportedSignatureAlgorithm(f"Unsupported elliptic curve {name!r}")
    return factory()


def curve_for_point(x: int, y: int, field_bits: int) -> str | None:
    """
    Name the supported curve of `field_bits` size on which (x, y) lies.

    Used for keys whose certificate spells out explicit domain parameters
    instead of naming the curve.
    """
    for name, factory in _CURVES.items():
        curve = factory()
        if curve.key_size != field_bits:
            continue
        try:
            ec.EllipticCurvePublicNumbers(x, y, curve).public_key()
        except ValueError:
            continue
        return name
    return None


def curve_key_size(name: str) -> int:
    return curve_for_name(name).key_size


# ─────────────────────── Key reconstruction ───────────────────────


def _load_rsa(key: RsaPublicKey) -> rsa.RSAPublicKey:
    try:
        return rsa.RSAPublicNumbers(key.exponent, key.modulus).public_key()
    except ValueError as e:
        raise UnsupportedSignatureAlgorithm(f"Unusable RSA public key: {e}") from e


def _load_ec(key: EcPublicKey) -> ec.EllipticCurvePublicKey:
    curve = curve_for_name(key.curve)
    try:
        return ec.EllipticCurvePublicNumbers(key.x, key.y, curve).public_key()
    except ValueError as e:
        raise UnsupportedSignatureAlgorithm(f"Point is not on {key.curve}: {e}") from e


def _hash_for(name: str | None, hint: DigestAlgorithm | None, oid: str) -> hashes.HashAlgorithm:
    if name is not None:
        return _HASHES_BY_NAME[name]()
    if hint is None:
        raise UnsupportedSignatureAlgorithm(
            f"Signature algorithm {oid} names no digest and no digest hint was given"
        )
    return _DIGESTS[hint]()


def _pss_padding(parameters: bytes | None) -> tuple[padding.PSS, hashes.HashAlgorithm]:
    """Decode RSASSA-PSS-params (RFC 4055); absent parameters mean the SHA-1 defaults."""
    try:
        params = algos.RSASSAPSSParams.load(parameters) if parameters else algos.RSASSAPSSParams()
        hash_name = params["hash_algorithm"]["algorithm"].native
        mgf_hash_name = params["mask_gen_algorithm"]["parameters"]["algorithm"].native
        salt_length = params["salt_length"].native
    except (ValueError, KeyError, TypeError) as e:
        raise UnsupportedSignatureAlgorithm(f"Unreadable RSASSA-PSS parameters: {e}") from e

    if hash_name not in _HASHES_BY_NAME or mgf_hash_name not in _HASHES_BY_NAME:
        raise UnsupportedSignatureAlgorithm(
            f"Unsupported RSASSA-PSS hash {hash_name!r} / MGF1 hash {mgf_hash_name!r}"
        )
    try:
        pss = padding.PSS(
            mgf=padding.MGF1(_HASHES_BY_NAME[mgf_hash_name]()),
            salt_length=salt_length,
        )
    except (ValueError, TypeError) as e:
        raise UnsupportedSignatureAlgorithm(
            f"Unusable RSASSA-PSS salt length {salt_length}: {e}"
        ) from e
    return pss, _HASHES_BY_NAME[hash_name]()


def _plain_to_der(signature: bytes) -> bytes | None:
    """Convert a BSI plain `r || s` signature into a DER ECDSA-Sig-Value."""
    if not signature or len(signature) % 2:
        return None
    half = len(signature) // 2
    r = int.from_bytes(signature[:half], "big")
    s = int.from_bytes(signature[half:], "big")
    return encode_dss_signature(r, s)


# ─────────────────────── Provider ───────────────────────


class CryptographyProvider:
    """
    CryptoProvider implementation backed by PyCA cryptography.

    Stateless; one instance is created by the composition root and handed
    to every decoder, validator and registry that needs it.
    """

    def digest(self, algorithm: DigestAlgorithm, data: bytes) -> bytes:
        h = hashes.Hash(_DIGESTS[algorithm]())
        h.update(data)
        return h.finalize()

    def sha256(self, data: bytes) -> bytes:
        h = hashes.Hash(hashes.SHA256())
        h.update(data)
        return h.finalize()

    def fingerprint(self, data: bytes) -> bytes:
        h = hashes.Hash(hashes.SHA1())
        h.update(data)
        return h.finalize()

    def verify(
        self,
        public_key: PublicKey,
        signature: bytes,
        message: bytes,
        algorithm: SignatureAlgorithm,
        digest_hint: DigestAlgorithm | None = None,
    ) -> bool:
        entry = _SIGNATURE_ALGORITHMS.get(algorithm.oid)
        if entry is None:
            raise UnsupportedSignatureAlgorithm(
                f"Unsupported signature algorithm OID {algorithm.oid}"
            )
        family, hash_name = entry

        try:
            match public_key, family:
                case RsaPublicKey(), "pkcs1v15":
                    _load_rsa(public_key).verify(
                        signature,
                        message,
                        padding.PKCS1v15(),
                        _hash_for(hash_name, digest_hint, algorithm.oid),
                    )
                case RsaPublicKey(), "pss":
                    pss, hash_algorithm = _pss_padding(algorithm.parameters)
                    _load_rsa(public_key).verify(signature, message, pss, hash_algorithm)
                case EcPublicKey(), "ecdsa":
                    _load_ec(public_key).verify(
                        signature,
                        message,
                        ec.ECDSA(_hash_for(hash_name, digest_hint, algorithm.oid)),
                    )
                case EcPublicKey(), "ecdsa_plain":
                    der_signature = _plain_to_der(signature)
                    if der_signature is None:
                        log.debug("signature.plain_length_invalid", length=len(signature))
                        return False
                    _load_ec(public_key).verify(
                        der_signature,
                        message,
                        ec.ECDSA(_hash_for(hash_name, digest_hint, algorithm.oid)),
                    )
                case _:
                    raise UnsupportedSignatureAlgorithm(
                        f"Signature algorithm {algorithm.oid} ({family}) cannot be used "
                        f"with a {type(public_key).__name__}"
                    )
        except InvalidSignature:
            log.debug("signature.invalid", algorithm=algorithm.oid)
            return False
        except UnsupportedAlgorithm as e:
            raise UnsupportedSignatureAlgorithm(
                f"Backend cannot evaluate {algorithm.oid}: {e}"
            ) from e
        return True
