"""
Railway-Oriented Programming (ROP) primitives for the eMRTD trust verifier.

Every fallible step in the verifier returns a Result instead of raising:

    from railway import Result, ErrorCode

    def require_dg1(dg1: bytes | None) -> Result[bytes]:
        if dg1 is None:
            return Result.failure(ErrorCode.MISSING_CONTENT, "DG1 bytes were not supplied")
        return Result.success(dg1)

    result = require_dg1(dg1).flat_map(check_dg1_in_lds).flat_map(check_lds_in_signed_attrs)
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.0.0"
