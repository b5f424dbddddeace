"""Tests for ResultAssertions test helper."""

import pytest

from railway import ErrorCode, Result, ResultAssertions


class TestAssertSuccess:
    def test_passes_on_success(self):
        assert ResultAssertions.assert_success(Result.success(42)) == 42

    def test_fails_on_failure_with_clear_message(self):
        result = Result.failure(ErrorCode.ISSUER_NOT_FOUND, "no issuer")
        with pytest.raises(AssertionError, match="Expected Success but got Failure"):
            ResultAssertions.assert_success(result)

    def test_custom_message(self):
        result = Result.failure(ErrorCode.MISSING_CONTENT, "x")
        with pytest.raises(AssertionError, match="custom context"):
            ResultAssertions.assert_success(result, "custom context")


class TestAssertFailure:
    def test_passes_on_failure(self):
        error = ResultAssertions.assert_failure(Result.failure(ErrorCode.MISSING_CONTENT, "gone"))
        assert error.code == ErrorCode.MISSING_CONTENT

    def test_checks_error_code(self):
        error = ResultAssertions.assert_failure(
            Result.failure(ErrorCode.SCHEMA_MISMATCH, "bad"), ErrorCode.SCHEMA_MISMATCH
        )
        assert error.message == "bad"

    def test_fails_on_wrong_error_code(self):
        result = Result.failure(ErrorCode.MISSING_CONTENT, "x")
        with pytest.raises(AssertionError, match="Expected error code SCHEMA_MISMATCH"):
            ResultAssertions.assert_failure(result, ErrorCode.SCHEMA_MISMATCH)

    def test_fails_on_success(self):
        with pytest.raises(AssertionError, match="Expected Failure but got Success"):
            ResultAssertions.assert_failure(Result.success(42))


class TestAssertFailureMessage:
    def test_case_insensitive(self):
        result = Result.failure(ErrorCode.CONTAINMENT_MISMATCH, "DG1_IN_LDS: not at offset 29")
        ResultAssertions.assert_failure_message_contains(result, "dg1_in_lds")

    def test_fails_when_not_contained(self):
        result = Result.failure(ErrorCode.CONTAINMENT_MISMATCH, "lds_in_signed_attrs: mismatch")
        with pytest.raises(AssertionError, match="Expected failure message to contain"):
            ResultAssertions.assert_failure_message_contains(result, "dg1_in_lds")
