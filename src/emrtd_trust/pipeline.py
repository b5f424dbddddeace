"""
Pipeline — the trust-store refresh railway.

All I/O is injected: the LDIF source and the optional exporter are ports,
the builder and registry are pure given their inputs, and the store is the
only shared state, touched once at the very end.

  source.read()
    → builder.build_isolated(sources)     (bad sources dropped, logged)
      → require at least one certificate
        → registry.build(trust_list, height)
          → exporter.export(snapshot)      (optional DER / PEM files)
            → store.replace(snapshot)

Each stage returns Result[T]. A failure anywhere leaves the previously
published snapshot in place.
"""

from __future__ import annotations

from datetime import UTC, datetime

from railway import ErrorCode
from railway.result import Result

from emrtd_trust.adapters.trust_list_builder import IsolatedBuild, TrustListBuilder
from emrtd_trust.adapters.trust_store import TrustStore
from emrtd_trust.domain.models import MerkleTree, TrustSnapshot
from emrtd_trust.domain.ports import SnapshotExporter, TrustListSource
from emrtd_trust.registry import DEFAULT_HEIGHT, TrustRegistry


def _require_certificates(built: IsolatedBuild) -> Result[IsolatedBuild]:
    if len(built.trust_list) > 0:
        return Result.success(built)
    if built.rejected:
        _, first = built.rejected[0]
        return Result.failure(
            first.code,
            f"Every trust-list source was rejected ({len(built.rejected)}); first: {first.message}",
            first.exception,
        )
    return Result.failure(ErrorCode.MISSING_CONTENT, "Trust-list sources hold no certificates")


def _snapshot(built: IsolatedBuild, tree: MerkleTree) -> TrustSnapshot:
    return TrustSnapshot(
        trust_list=built.trust_list,
        tree=tree,
        built_at=datetime.now(UTC),
        rejected_sources=built.rejected_sources,
    )


def refresh_trust_store(
    source: TrustListSource,
    builder: TrustListBuilder,
    registry: TrustRegistry,
    store: TrustStore,
    height: int = DEFAULT_HEIGHT,
    exporter: SnapshotExporter | None = None,
) -> Result[TrustSnapshot]:
    """
    Rebuild the trust list and its Merkle index, then publish both at once.

    Returns Result[TrustSnapshot] with the newly published snapshot,
    or Result.failure with the error from the first failing stage.
    """
    return (
        source.read()
        .map(builder.build_isolated)
        .flat_map(_require_certificates)
        .flat_map(
            lambda built: registry.build(built.trust_list, height).map(
                lambda tree: _snapshot(built, tree)
            )
        )
        .flat_map(exporter.export if exporter is not None else Result.success)
        .flat_map(store.replace)
    )
