"""Unit tests for the LDIF file source adapter."""

from __future__ import annotations

from pathlib import Path

from emrtd_trust.adapters.ldif_source import LdifFileSource
from emrtd_trust.domain.ports import TrustListSource
from railway import ErrorCode, ResultAssertions


class TestLdifFileSource:
    def test_satisfies_port(self) -> None:
        assert isinstance(LdifFileSource([]), TrustListSource)

    def test_reads_single_file(self, tmp_path: Path) -> None:
        """
        GIVEN one configured .ldif file
        WHEN read
        THEN its path and text come back as one source.
        """
        path = tmp_path / "icaopkd-002-complete.ldif"
        path.write_text("version: 1\n", encoding="utf-8")

        sources = ResultAssertions.assert_success(LdifFileSource([path]).read())

        assert sources == [(str(path), "version: 1\n")]

    def test_directory_expands_to_sorted_ldif_files(self, tmp_path: Path) -> None:
        """
        GIVEN a directory with b.ldif, a.ldif and notes.txt
        WHEN read
        THEN only the .ldif files are returned, in name order.
        """
        (tmp_path / "b.ldif").write_text("b", encoding="utf-8")
        (tmp_path / "a.ldif").write_text("a", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        sources = ResultAssertions.assert_success(LdifFileSource([tmp_path]).read())

        assert [text for _, text in sources] == ["a", "b"]

    def test_missing_path(self, tmp_path: Path) -> None:
        result = LdifFileSource([tmp_path / "absent.ldif"]).read()

        ResultAssertions.assert_failure(result, ErrorCode.SOURCE_UNAVAILABLE)
        ResultAssertions.assert_failure_message_contains(result, "absent.ldif")

    def test_empty_directory(self, tmp_path: Path) -> None:
        result = LdifFileSource([tmp_path]).read()
        ResultAssertions.assert_failure(result, ErrorCode.SOURCE_UNAVAILABLE)
