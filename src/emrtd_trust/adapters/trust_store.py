"""
Trust store adapter — the one piece of shared mutable state.

Holds a single immutable TrustSnapshot (trust list + Merkle index).
Refreshes build a complete new snapshot and swap the reference in one
assignment, so readers always see either the old index or the new one,
never a half-built mix.

Also provides the file exporter that writes the canonical DER and PEM
renditions of a snapshot's trust list.
"""

from __future__ import annotations

import threading
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

from emrtd_trust.adapters.trust_list_builder import TrustListBuilder
from emrtd_trust.domain.models import TrustSnapshot

log = structlog.get_logger()


class TrustStore:
    """In-memory holder of the current TrustSnapshot."""

    def __init__(self) -> None:
        self._snapshot: TrustSnapshot | None = None
        self._lock = threading.Lock()

    def current(self) -> Result[TrustSnapshot]:
        return Result.from_optional(
            self._snapshot,
            "Trust store has not been populated yet",
            ErrorCode.MISSING_CONTENT,
        )

    def replace(self, snapshot: TrustSnapshot) -> Result[TrustSnapshot]:
        """Publish `snapshot` as the current one. Returns it for chaining."""
        with self._lock:
            previous = self._snapshot
            self._snapshot = snapshot

        log.info(
            "trust_store.replaced",
            certificates=snapshot.total_certificates,
            root=snapshot.tree.root.hex(),
            previous_certificates=previous.total_certificates if previous else 0,
        )
        return Result.success(snapshot)


class TrustListExporter:
    """
    Write a snapshot's trust list as DER and/or PEM files.

    Paths left as None are skipped. Files are written to a sibling
    temporary path first and renamed into place.
    """

    def __init__(
        self,
        builder: TrustListBuilder,
        der_path: Path | None = None,
        pem_path: Path | None = None,
    ) -> None:
        self._builder = builder
        self._der_path = der_path
        self._pem_path = pem_path

    def export(self, snapshot: TrustSnapshot) -> Result[TrustSnapshot]:
        return Result.from_computation(
            lambda: self._write(snapshot),
            ErrorCode.TECHNICAL_ERROR,
            "Failed to export trust list",
        )

    def _write(self, snapshot: TrustSnapshot) -> TrustSnapshot:
        if self._der_path is not None:
            _replace_file(self._der_path, self._builder.serialize_der(snapshot.trust_list))
            log.info("trust_list.exported", format="der", path=str(self._der_path))
        if self._pem_path is not None:
            pem_text = self._builder.serialize_pem(snapshot.trust_list)
            _replace_file(self._pem_path, pem_text.encode("ascii"))
            log.info("trust_list.exported", format="pem", path=str(self._pem_path))
        return snapshot


def _replace_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    tmp.replace(path)
