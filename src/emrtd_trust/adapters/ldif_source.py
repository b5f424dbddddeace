"""
LDIF file source adapter — reads ICAO PKD master-list exports from disk.

Implements the TrustListSource port. Each configured path is either an
`.ldif` file or a directory whose `*.ldif` files are read in name order.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()

LDIF_SUFFIX = ".ldif"


class LdifFileSource:
    """
    Read every configured LDIF source into memory.

    All exceptions are caught at this adapter boundary via Result.from_computation().
    An unreadable path fails the whole read with SOURCE_UNAVAILABLE.
    """

    def __init__(self, paths: Sequence[Path]) -> None:
        self._paths = tuple(paths)

    def read(self) -> Result[list[tuple[str, str]]]:
        return Result.from_computation(
            self._read_all,
            ErrorCode.SOURCE_UNAVAILABLE,
            "Failed to read trust-list sources",
        )

    def _read_all(self) -> list[tuple[str, str]]:
        files = [file for path in self._paths for file in self._expand(path)]
        if not files:
            raise FileNotFoundError(f"No {LDIF_SUFFIX} files under {[str(p) for p in self._paths]}")

        sources = [(str(file), file.read_text(encoding="utf-8")) for file in files]
        log.info("ldif_source.read", files=len(sources))
        return sources

    @staticmethod
    def _expand(path: Path) -> list[Path]:
        if path.is_dir():
            return sorted(p for p in path.iterdir() if p.suffix == LDIF_SUFFIX and p.is_file())
        if not path.exists():
            raise FileNotFoundError(f"Trust-list source not found: {path}")
        return [path]
