"""
DER/BER structure decoder — a closed tagged-variant tree over raw TLV bytes.

Adapter layer — built on asn1crypto.parser, which does the tag/length
framing (definite and indefinite lengths). On top of it this module:
  - builds an immutable tree of typed nodes, every node keeping its full
    `encoded` bytes so callers can hash or re-wrap exact byte ranges
  - flattens BER constructed OCTET STRING / BIT STRING segments
  - rejects overruns, trailing bytes and constructed primitives
  - offers typed accessors for ContentInfo, SignedData, SignerInfo and the
    outer Certificate shape, with `match` doing the structural checks

    node = decode(raw)
    signed_data = as_signed_data(node)       # UnsupportedContentType if not 1.2.840.113549.1.7.2
    signer = signed_data.signer_infos[0]
    signer.signed_attrs                      # re-wrapped as SET (0x31 ...)

Decoding errors are raised as MalformedEncoding; shape errors as
SchemaMismatch. Adapter boundaries convert both into Failure values.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from asn1crypto import core, parser

from emrtd_trust.domain.errors import MalformedEncoding, SchemaMismatch, UnsupportedContentType

SIGNED_DATA_OID = "1.2.840.113549.1.7.2"

_CLASS_UNIVERSAL = 0
_CLASS_CONTEXT = 2

_TAG_BOOLEAN = 1
_TAG_INTEGER = 2
_TAG_BIT_STRING = 3
_TAG_OCTET_STRING = 4
_TAG_NULL = 5
_TAG_OID = 6
_TAG_SEQUENCE = 16
_TAG_SET = 17

_SET_TAG_BYTE = b"\x31"

# ─────────────────────── Tree nodes ───────────────────────


@dataclass(frozen=True, slots=True)
class Integer:
    value: int
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class OctetString:
    value: bytes = field(repr=False)
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class BitString:
    value: bytes = field(repr=False)
    unused_bits: int
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class ObjectIdentifier:
    dotted: str
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class Null:
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class Boolean:
    value: bool
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class Sequence:
    children: tuple[TaggedValue, ...]
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class Set:
    children: tuple[TaggedValue, ...]
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class ContextTagged:
    """
    A context-specific [n] value.

    Constructed tags expose their parsed children (explicit tagging, or
    implicit tagging of a SET/SEQUENCE); primitive tags only their contents.
    """

    tag: int
    constructed: bool
    contents: bytes = field(repr=False)
    children: tuple[TaggedValue, ...]
    encoded: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class Primitive:
    """Anything else: strings, times, application and private tags."""

    tag_class: int
    tag: int
    constructed: bool
    contents: bytes = field(repr=False)
    encoded: bytes = field(repr=False)


type TaggedValue = (
    Integer
    | OctetString
    | BitString
    | ObjectIdentifier
    | Null
    | Boolean
    | Sequence
    | Set
    | ContextTagged
    | Primitive
)


# ─────────────────────── Decoding ───────────────────────


def decode(data: bytes) -> TaggedValue:
    """
    Decode exactly one DER/BER value spanning all of `data`.

    Raises MalformedEncoding on truncation, trailing bytes, or a universal
    primitive type encoded in constructed form.
    """
    if not data:
        raise MalformedEncoding("Empty input")
    try:
        parsed = parser.parse(data, strict=True)
    except ValueError as e:
        raise MalformedEncoding(str(e)) from e
    return _build(parsed)


def _decode_children(contents: bytes) -> tuple[TaggedValue, ...]:
    children: list[TaggedValue] = []
    offset = 0
    # parser.parse only reads from the start of its input; _parse resumes at a
    # pointer, so the contents are never re-sliced per child.
    while offset < len(contents):
        try:
            parsed, next_offset = parser._parse(contents, len(contents), offset)
        except ValueError as e:
            raise MalformedEncoding(f"At child offset {offset}: {e}") from e
        children.append(_build(parsed))
        offset = next_offset
    return tuple(children)


def _build(parsed: tuple[int, int, int, bytes, bytes, bytes]) -> TaggedValue:
    tag_class, method, tag, header, contents, trailer = parsed
    encoded = header + contents + trailer
    constructed = method == 1

    if tag_class == _CLASS_CONTEXT:
        children = _decode_children(contents) if constructed else ()
        return ContextTagged(tag, constructed, contents, children, encoded)
    if tag_class != _CLASS_UNIVERSAL:
        return Primitive(tag_class, tag, constructed, contents, encoded)

    match tag, constructed:
        case (16, True):
            return Sequence(_decode_children(contents), encoded)
        case (17, True):
            return Set(_decode_children(contents), encoded)
        case (16, False) | (17, False):
            raise MalformedEncoding(f"Universal tag {tag} must be constructed")
        case (4, True):
            return OctetString(_flatten_octets(contents), encoded)
        case (4, False):
            return OctetString(contents, encoded)
        case (3, True):
            value, unused = _flatten_bits(contents)
            return BitString(value, unused, encoded)
        case (3, False):
            if not contents or contents[0] > 7:
                raise MalformedEncoding("BIT STRING without a valid unused-bits octet")
            return BitString(contents[1:], contents[0], encoded)
        case (1 | 2 | 5 | 6, True):
            raise MalformedEncoding(f"Universal primitive tag {tag} encoded as constructed")
        case (2, False):
            if not contents:
                raise MalformedEncoding("INTEGER with empty contents")
            return Integer(int.from_bytes(contents, "big", signed=True), encoded)
        case (1, False):
            if len(contents) != 1:
                raise MalformedEncoding("BOOLEAN must have exactly one content octet")
            return Boolean(contents != b"\x00", encoded)
        case (5, False):
            if contents:
                raise MalformedEncoding("NULL with non-empty contents")
            return Null(encoded)
        case (6, False):
            return ObjectIdentifier(_dotted(header + contents), encoded)
        case _:
            return Primitive(tag_class, tag, constructed, contents, encoded)


def _flatten_octets(contents: bytes) -> bytes:
    segments: list[bytes] = []
    for child in _decode_children(contents):
        match child:
            case OctetString(value=value):
                segments.append(value)
            case _:
                raise MalformedEncoding("Constructed OCTET STRING holds a non-OCTET STRING segment")
    return b"".join(segments)


def _flatten_bits(contents: bytes) -> tuple[bytes, int]:
    segments: list[bytes] = []
    unused = 0
    for child in _decode_children(contents):
        match child:
            case BitString(value=value, unused_bits=bits):
                segments.append(value)
                unused = bits
            case _:
                raise MalformedEncoding("Constructed BIT STRING holds a non-BIT STRING segment")
    return b"".join(segments), unused


def _dotted(encoded: bytes) -> str:
    try:
        return core.ObjectIdentifier.load(encoded).dotted
    except ValueError as e:
        raise MalformedEncoding(f"Invalid OBJECT IDENTIFIER: {e}") from e


# ─────────────────────── Typed accessors ───────────────────────


@dataclass(frozen=True, slots=True)
class AlgorithmIdentifier:
    oid: str
    parameters: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class ContentInfo:
    content_type: str
    content: TaggedValue = field(repr=False)


@dataclass(frozen=True, slots=True)
class SignerInfo:
    version: int
    digest_algorithm: AlgorithmIdentifier
    signed_attrs: bytes | None = field(repr=False)
    signature_algorithm: AlgorithmIdentifier
    signature: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class SignedData:
    version: int
    digest_algorithms: tuple[AlgorithmIdentifier, ...]
    econtent_type: str
    econtent: bytes | None = field(repr=False)
    certificates: tuple[bytes, ...] = field(repr=False)
    signer_infos: tuple[SignerInfo, ...]


@dataclass(frozen=True, slots=True)
class CertificateParts:
    """The outer Certificate SEQUENCE: tbsCertificate, signatureAlgorithm, signatureValue."""

    tbs: Sequence = field(repr=False)
    signature_algorithm: AlgorithmIdentifier
    signature: bytes = field(repr=False)


def as_algorithm_identifier(node: TaggedValue) -> AlgorithmIdentifier:
    match node:
        case Sequence(children=(ObjectIdentifier(dotted=oid),)):
            return AlgorithmIdentifier(oid)
        case Sequence(children=(ObjectIdentifier(dotted=oid), Null())):
            return AlgorithmIdentifier(oid)
        case Sequence(children=(ObjectIdentifier(dotted=oid), params)):
            return AlgorithmIdentifier(oid, params.encoded)
        case _:
            raise SchemaMismatch("Expected AlgorithmIdentifier SEQUENCE { OID, parameters }")


def as_content_info(node: TaggedValue) -> ContentInfo:
    match node:
        case Sequence(
            children=(
                ObjectIdentifier(dotted=content_type),
                ContextTagged(tag=0, constructed=True, children=(content,)),
            )
        ):
            return ContentInfo(content_type, content)
        case _:
            raise SchemaMismatch("Expected ContentInfo SEQUENCE { OID, [0] EXPLICIT content }")


def as_signed_data(node: TaggedValue) -> SignedData:
    """
    Read a ContentInfo wrapping CMS SignedData (RFC 5652 §5.1).

    Raises UnsupportedContentType for any other content type and
    SchemaMismatch when the SignedData body has the wrong shape.
    """
    info = as_content_info(node)
    if info.content_type != SIGNED_DATA_OID:
        raise UnsupportedContentType(
            f"ContentInfo type {info.content_type} is not SignedData ({SIGNED_DATA_OID})"
        )

    match info.content:
        case Sequence(
            children=(
                Integer(value=version),
                Set(children=digest_algorithms),
                Sequence() as encap,
                *rest,
            )
        ):
            pass
        case _:
            raise SchemaMismatch(
                "Expected SignedData SEQUENCE { version, digestAlgorithms, encapContentInfo, ... }"
            )

    if not rest:
        raise SchemaMismatch("SignedData has no signerInfos")

    certificates: tuple[bytes, ...] = ()
    for optional in rest[:-1]:
        match optional:
            case ContextTagged(tag=0, constructed=True, children=certs):
                certificates = tuple(cert.encoded for cert in certs)
            case ContextTagged(tag=1):
                continue
            case _:
                raise SchemaMismatch("Unexpected element between encapContentInfo and signerInfos")

    match rest[-1]:
        case Set(children=signer_nodes):
            signer_infos = tuple(_as_signer_info(s) for s in signer_nodes)
        case _:
            raise SchemaMismatch("SignedData signerInfos is not a SET")

    econtent_type, econtent = _encapsulated_content(encap)
    return SignedData(
        version=version,
        digest_algorithms=tuple(as_algorithm_identifier(a) for a in digest_algorithms),
        econtent_type=econtent_type,
        econtent=econtent,
        certificates=certificates,
        signer_infos=signer_infos,
    )


def _encapsulated_content(encap: Sequence) -> tuple[str, bytes | None]:
    match encap.children:
        case (ObjectIdentifier(dotted=econtent_type),):
            return econtent_type, None
        case (
            ObjectIdentifier(dotted=econtent_type),
            ContextTagged(tag=0, constructed=True, children=(OctetString(value=econtent),)),
        ):
            return econtent_type, econtent
        case _:
            raise SchemaMismatch(
                "Expected EncapsulatedContentInfo SEQUENCE { OID, [0] EXPLICIT OCTET STRING }"
            )


def _as_signer_info(node: TaggedValue) -> SignerInfo:
    match node:
        case Sequence(children=(Integer(value=version), _sid, digest_algorithm, *rest)):
            pass
        case _:
            raise SchemaMismatch("Expected SignerInfo SEQUENCE { version, sid, digestAlgorithm, ... }")

    signed_attrs: bytes | None = None
    match rest:
        case [ContextTagged(tag=0, constructed=True) as attrs, *tail]:
            # Signature covers the attributes with an explicit SET tag, not [0].
            signed_attrs = _SET_TAG_BYTE + attrs.encoded[1:]
        case tail:
            pass

    match tail:
        case [signature_algorithm, OctetString(value=signature), *_unsigned]:
            return SignerInfo(
                version=version,
                digest_algorithm=as_algorithm_identifier(digest_algorithm),
                signed_attrs=signed_attrs,
                signature_algorithm=as_algorithm_identifier(signature_algorithm),
                signature=signature,
            )
        case _:
            raise SchemaMismatch("SignerInfo is missing signatureAlgorithm or signature")


def as_certificate(node: TaggedValue) -> CertificateParts:
    match node:
        case Sequence(
            children=(
                Sequence() as tbs,
                Sequence() as signature_algorithm,
                BitString(value=signature),
            )
        ):
            return CertificateParts(tbs, as_algorithm_identifier(signature_algorithm), signature)
        case _:
            raise SchemaMismatch(
                "Expected Certificate SEQUENCE { tbsCertificate, signatureAlgorithm, BIT STRING }"
            )
