"""
Merkle trust registry — a fixed-height commitment to the trust list's keys.

Leaves (SHA-256 via the injected digest provider):

    leaf  = H(0x00 || kind || limbs)        kind: 0x01 RSA, 0x02 EC
    node  = H(0x01 || left || right)
    empty = 32 zero bytes

Key material is split into 116-bit limbs, most significant first, each
written as 15 big-endian bytes:
  - RSA: limbs(modulus) || limbs(exponent)
  - EC:  limbs(x) || limbs(y)
The limb count of a number is fixed by its field: modulus bit size for RSA
(the exponent takes as many limbs as it needs, at least one), curve size
for EC.

Only the public key is hashed, so certificates sharing a key share a leaf
value; witnesses are issued for the first matching index.
"""

from __future__ import annotations

import structlog
from railway import ErrorCode
from railway.result import Result

from emrtd_trust.adapters.crypto_provider import curve_key_size
from emrtd_trust.domain.errors import UnsupportedSignatureAlgorithm
from emrtd_trust.domain.models import (
    AuthenticationReport,
    Certificate,
    EcPublicKey,
    MerkleTree,
    PublicKey,
    RsaPublicKey,
    TrustList,
    TrustStatement,
    Witness,
)
from emrtd_trust.domain.ports import DigestProvider

log = structlog.get_logger()

LIMB_BITS = 116
LIMB_BYTES = 15
EMPTY_LEAF = bytes(32)

_LEAF_PREFIX = b"\x00"
_NODE_PREFIX = b"\x01"
_KIND_RSA = b"\x01"
_KIND_EC = b"\x02"

DEFAULT_HEIGHT = 10


def limbs(value: int, bit_width: int) -> list[int]:
    """Split `value` into ceil(bit_width / 116) limbs, most significant first."""
    count = max(1, -(-bit_width // LIMB_BITS))
    if value < 0 or value.bit_length() > count * LIMB_BITS:
        raise ValueError(f"{value.bit_length()}-bit value does not fit {count} limbs")
    mask = (1 << LIMB_BITS) - 1
    return [(value >> (LIMB_BITS * i)) & mask for i in reversed(range(count))]


def _limb_bytes(value: int, bit_width: int) -> bytes:
    return b"".join(limb.to_bytes(LIMB_BYTES, "big") for limb in limbs(value, bit_width))


def _key_material(key: PublicKey) -> bytes:
    match key:
        case RsaPublicKey(modulus=modulus, exponent=exponent):
            return (
                _KIND_RSA
                + _limb_bytes(modulus, modulus.bit_length())
                + _limb_bytes(exponent, exponent.bit_length())
            )
        case EcPublicKey(curve=curve, x=x, y=y):
            try:
                width = curve_key_size(curve)
            except UnsupportedSignatureAlgorithm:
                width = max(x.bit_length(), y.bit_length())
            return _KIND_EC + _limb_bytes(x, width) + _limb_bytes(y, width)
    raise TypeError(f"Unsupported public key type {type(key).__name__}")


class TrustRegistry:
    """
    Builds Merkle trees over trust lists and issues / checks inclusion witnesses.

    Stateless apart from the digest provider.
    """

    def __init__(self, digests: DigestProvider) -> None:
        self._digests = digests

    def leaf_value(self, key: PublicKey) -> bytes:
        return self._digests.sha256(_LEAF_PREFIX + _key_material(key))

    def _node(self, left: bytes, right: bytes) -> bytes:
        return self._digests.sha256(_NODE_PREFIX + left + right)

    def build(self, trust_list: TrustList, height: int = DEFAULT_HEIGHT) -> Result[MerkleTree]:
        """
        Index `trust_list` in a tree of 2^height leaves, in trust-list order.

        Returns Result.failure(REGISTRY_CAPACITY_EXCEEDED) when the list does
        not fit, and CONFIGURATION_ERROR for a negative height.
        """
        if height < 0:
            return Result.failure(ErrorCode.CONFIGURATION_ERROR, f"Negative registry height {height}")
        capacity = 1 << height
        if len(trust_list) > capacity:
            return Result.failure(
                ErrorCode.REGISTRY_CAPACITY_EXCEEDED,
                f"{len(trust_list)} certificates exceed the {capacity} leaves of a "
                f"height-{height} registry",
            )
        return Result.from_computation(
            lambda: self._build_tree([cert.public_key for cert in trust_list], height),
            ErrorCode.TECHNICAL_ERROR,
            "Failed to build trust registry",
        )

    def _build_tree(self, keys: list[PublicKey], height: int) -> MerkleTree:
        leaves = [self.leaf_value(key) for key in keys]
        leaves.extend([EMPTY_LEAF] * ((1 << height) - len(leaves)))

        levels: list[tuple[bytes, ...]] = [tuple(leaves)]
        for _ in range(height):
            below = levels[-1]
            levels.append(
                tuple(self._node(below[i], below[i + 1]) for i in range(0, len(below), 2))
            )

        tree = MerkleTree(height=height, levels=tuple(levels), keys=tuple(keys))
        log.info("registry.built", height=height, leaves=len(keys), root=tree.root.hex())
        return tree

    def index_of(self, tree: MerkleTree, target: Certificate | PublicKey) -> int | None:
        key = target.public_key if isinstance(target, Certificate) else target
        for index, candidate in enumerate(tree.keys):
            if candidate == key:
                return index
        return None

    def witness_for(self, tree: MerkleTree, target: Certificate | PublicKey) -> Witness | None:
        """Inclusion witness for the first leaf holding the target's public key."""
        index = self.index_of(tree, target)
        if index is None:
            return None
        siblings = tuple(
            tree.levels[level][(index >> level) ^ 1] for level in range(tree.height)
        )
        return Witness(index=index, siblings=siblings)

    def verify(self, root: bytes, leaf_value: bytes, witness: Witness) -> bool:
        """Recompute the root from a leaf and its sibling path."""
        if witness.index < 0 or witness.index >= 1 << len(witness.siblings):
            return False
        running = leaf_value
        for sibling, direction in zip(witness.siblings, witness.directions, strict=True):
            running = self._node(running, sibling) if direction == 0 else self._node(sibling, running)
        return running == root

    def statement_for(
        self, report: AuthenticationReport, tree: MerkleTree
    ) -> Result[TrustStatement]:
        """Assemble the proving-backend input for an authenticated passport."""
        return Result.from_optional(
            self.witness_for(tree, report.trust_anchor),
            "Trust anchor public key is not indexed in the registry",
            ErrorCode.ISSUER_NOT_FOUND,
        ).map(
            lambda witness: TrustStatement(
                lds_algorithm=report.lds_algorithm,
                signer_algorithm=report.signer_algorithm,
                dg1_digest=report.dg1_digest,
                dg1_offset=report.dg1_offset,
                lds_digest=report.lds_digest,
                lds_offset=report.lds_offset,
                signed_attrs=report.signed_attrs,
                document_signer=report.document_signer,
                trust_anchor=report.trust_anchor,
                registry_root=tree.root,
                leaf_value=tree.leaves[witness.index],
                witness=witness,
                birth_date=report.birth_date,
            )
        )
