"""
Party AI - Custom Error Types
Structured exceptions for decision-engine errors with recovery hints.
"""
from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the decision engine."""
    # General errors
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Decision errors
    SNAPSHOT_INVALID = "SNAPSHOT_INVALID"
    UNIT_NOT_FOUND = "UNIT_NOT_FOUND"

    # Configuration errors
    SETTINGS_INVALID = "SETTINGS_INVALID"


class PartyAIError(Exception):
    """
    Base exception for all decision-engine errors.

    Provides structured error information with:
    - Error code for programmatic handling
    - Human-readable message
    - Additional context details
    - Recovery hints for the caller
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        recovery_hint: Optional[str] = None,
        http_status: int = 500
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "recoverable": self.recoverable,
                "recovery_hint": self.recovery_hint
            }
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# =============================================================================
# Decision Errors
# =============================================================================

class InvalidSnapshotError(PartyAIError):
    """Raised when a caller hands the engine a malformed snapshot."""

    def __init__(self, message: str = "Snapshot is missing required data", **kwargs):
        super().__init__(
            code=ErrorCode.SNAPSHOT_INVALID,
            message=message,
            http_status=400,
            recoverable=False,
            recovery_hint="Build the snapshot with an acting unit and settings",
            **kwargs
        )


class UnknownUnitError(PartyAIError):
    """Raised when a request references a unit that was never declared."""

    def __init__(self, unit_id: str):
        super().__init__(
            code=ErrorCode.UNIT_NOT_FOUND,
            message=f"Unit '{unit_id}' not found",
            details={"unit_id": unit_id},
            http_status=404,
            recovery_hint="Declare the unit as the actor, an ally or an enemy"
        )


# =============================================================================
# Configuration Errors
# =============================================================================

class SettingsError(PartyAIError):
    """Raised for invalid behavior settings or presets."""

    def __init__(self, message: str = "Invalid behavior settings", **kwargs):
        super().__init__(
            code=ErrorCode.SETTINGS_INVALID,
            message=message,
            http_status=400,
            **kwargs
        )


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(PartyAIError):
    """Raised when request data fails validation."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[list] = None
    ):
        details = {}
        if field:
            details["field"] = field
        if errors:
            details["errors"] = errors

        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
            http_status=422,
            recovery_hint="Check the input data and try again"
        )
