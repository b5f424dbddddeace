"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the verifier needs (contracts) without specifying
HOW it's done (implementation). Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters satisfy
the contract simply by implementing the methods — no inheritance.

The cryptographic engine is a port too: decoders, the chain validator and
the Merkle registry receive a provider explicitly instead of reaching for a
process-wide backend.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from railway.result import Result

from emrtd_trust.domain.algorithms import DigestAlgorithm
from emrtd_trust.domain.models import PublicKey, SignatureAlgorithm, TrustSnapshot, TrustStatement


@runtime_checkable
class DigestProvider(Protocol):
    """
    Port: compute message digests.

    `digest` covers every algorithm in the SOD digest table, including the
    fixed-length SHAKE variants. `fingerprint` is SHA-1, used only as the
    certificate identity inside a trust list.
    """

    def digest(self, algorithm: DigestAlgorithm, data: bytes) -> bytes: ...

    def sha256(self, data: bytes) -> bytes: ...

    def fingerprint(self, data: bytes) -> bytes: ...


@runtime_checkable
class SignatureVerifier(Protocol):
    """
    Port: verify a signature with a decoded public key.

    Returns False for a signature that does not verify. Raises
    UnsupportedSignatureAlgorithm when the algorithm, its parameters or the
    key's curve cannot be evaluated at all.

    `digest_hint` names the digest for algorithms whose OID does not carry
    one (plain `ecdsa` with the digest taken from the SignerInfo).
    """

    def verify(
        self,
        public_key: PublicKey,
        signature: bytes,
        message: bytes,
        algorithm: SignatureAlgorithm,
        digest_hint: DigestAlgorithm | None = None,
    ) -> bool: ...


@runtime_checkable
class CryptoProvider(DigestProvider, SignatureVerifier, Protocol):
    """Port: the complete cryptographic context handed to decoders and validators."""


@runtime_checkable
class TrustListSource(Protocol):
    """
    Port: fetch the LDIF text of every configured trust-list source.

    Returns Result[list[tuple[str, str]]] of (source name, LDIF text).
    A source that cannot be read fails the whole fetch with SOURCE_UNAVAILABLE.
    """

    def read(self) -> Result[list[tuple[str, str]]]: ...


@runtime_checkable
class ProvingBackend(Protocol):
    """
    Port: turn a TrustStatement into a zero-knowledge proof.

    Only the input contract is defined here; proof systems live outside
    this package.
    """

    def prove(self, statement: TrustStatement) -> object: ...


@runtime_checkable
class SnapshotExporter(Protocol):
    """
    Port: persist a freshly built snapshot's trust list (DER / PEM files).

    Returns the snapshot unchanged on success so it can flow on to the store.
    """

    def export(self, snapshot: TrustSnapshot) -> Result[TrustSnapshot]: ...
