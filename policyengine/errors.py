"""
Engine Exceptions Module.

Centralized error taxonomy with:
- Error codes for client handling
- HTTP status code mapping for the API boundary
- Structured error responses

Three families:
- ConfigInvalid  - fatal, raised at load/reload; the store keeps serving
                   the last-known-good snapshot
- InvalidContext - caller error; raised by calculators, wrapped into an
                   Outcome by the PolicyEngine facade
- UnresolvedField - non-fatal, never raised; a condition whose field is
                   missing from the context evaluates to false and is logged
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


# ============================================================================
# ERROR CODES
# ============================================================================


class ErrorCode(str, Enum):
    """Engine error codes."""

    # Configuration errors (1xxx)
    CONFIG_INVALID = "P1000"
    CONFIG_PARSE_ERROR = "P1001"
    NO_SNAPSHOT = "P1002"

    # Context errors (2xxx)
    INVALID_CONTEXT = "P2000"
    UNKNOWN_DIMENSION = "P2001"
    UNKNOWN_FLAG = "P2002"
    UNKNOWN_QUOTA = "P2003"

    # Non-fatal (3xxx)
    UNRESOLVED_FIELD = "P3000"

    # Internal (9xxx)
    INTERNAL_ERROR = "P9000"


# ============================================================================
# ERROR RESPONSE MODEL
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standard error body returned by the API boundary."""

    error: ErrorDetail
    timestamp: Optional[str] = None


# ============================================================================
# BASE EXCEPTION
# ============================================================================


class PolicyEngineError(Exception):
    """Base exception for the policy engine."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.code.value,
                message=self.message,
                field=self.field,
                details=self.details,
            ),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================


class ConfigInvalidError(PolicyEngineError):
    """Configuration violates an invariant. Fatal for the snapshot being loaded."""

    def __init__(
        self,
        message: str,
        document: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=409,
            field=path,
            details={"document": document, **(details or {})},
        )
        self.document = document
        self.path = path


class NoSnapshotError(ConfigInvalidError):
    """The store has no active snapshot yet."""

    def __init__(self):
        super().__init__(
            "No configuration snapshot is active",
            code=ErrorCode.NO_SNAPSHOT,
        )
        self.status_code = 503


# ============================================================================
# CONTEXT ERRORS
# ============================================================================


class InvalidContextError(PolicyEngineError):
    """The caller supplied an invalid query or context."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.INVALID_CONTEXT,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=422,
            field=field,
            details=details,
        )


class UnknownDimensionError(InvalidContextError):
    """Industry, plan, role or journey stage not present in the snapshot."""

    def __init__(self, dimension: str, value: str):
        super().__init__(
            message=f"Unknown {dimension}: {value}",
            field=dimension,
            details={"dimension": dimension, "value": value},
            code=ErrorCode.UNKNOWN_DIMENSION,
        )


class UnknownFlagError(InvalidContextError):
    """No flag or conditional tree is registered under this id."""

    def __init__(self, flag_id: str):
        super().__init__(
            message=f"Unknown feature flag: {flag_id}",
            field="flag_id",
            details={"flag_id": flag_id},
            code=ErrorCode.UNKNOWN_FLAG,
        )


class UnknownQuotaError(InvalidContextError):
    """The plan defines no limit under this quota name."""

    def __init__(self, plan: str, quota: str):
        super().__init__(
            message=f"Plan {plan} has no quota named {quota}",
            field="quota",
            details={"plan": plan, "quota": quota},
            code=ErrorCode.UNKNOWN_QUOTA,
        )


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def policy_engine_exception_handler(
    request: Request,
    exc: PolicyEngineError,
) -> JSONResponse:
    """Handle PolicyEngineError exceptions."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "policy_engine_error",
        error_code=exc.code.value,
        message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
        details=exc.details,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle generic exceptions."""
    logger.exception(
        "unhandled_exception",
        error=str(exc),
        path=request.url.path,
    )

    error = PolicyEngineError(
        message="An internal error occurred",
        code=ErrorCode.INTERNAL_ERROR,
        status_code=500,
    )

    return JSONResponse(
        status_code=500,
        content=error.to_response().model_dump(),
    )


def register_exception_handlers(app):
    """Register exception handlers with FastAPI app."""
    app.add_exception_handler(PolicyEngineError, policy_engine_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
