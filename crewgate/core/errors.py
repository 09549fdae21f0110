"""Error Hierarchy — typed, categorized exceptions for all admission failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are expected branches; infrastructure errors (500-level) are critical
    - to_response() produces the single REST envelope used by every failure response
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with CrewGateError base: FastAPI global handler catches all (ADR: uniform error shape)
    - EligibilityFailedError separate from ValidationFailedError: it carries a fail_type
      token so clients can render a targeted remediation
    - PersistenceFailedError may carry the created membership id: "created, but incomplete"
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from crewgate.core.domain_types import FailType, ValidationReason


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    ELIGIBILITY = "eligibility"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    participant_id: str | None = None
    segment_id: str | None = None
    activity_id: str | None = None
    membership_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class CrewGateError(Exception):
    """Base exception for all crewgate errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status
        self.details = details

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        body = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "context": {
                "participant_id": self.context.participant_id,
                "segment_id": self.context.segment_id,
                "activity_id": self.context.activity_id,
                "membership_id": self.context.membership_id,
                "retry_after_ms": self.context.retry_after_ms,
            },
        }
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


# ─── Domain Errors (400-level) ──────────────────────────────────

class UnauthorizedError(CrewGateError):
    """No authenticated identity was supplied."""
    def __init__(self, message: str = "Unauthorized", context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHORIZED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class ForbiddenError(CrewGateError):
    """Authenticated, but not allowed to perform the operation."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )


class ResourceNotFoundError(CrewGateError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type


class ValidationFailedError(CrewGateError):
    """Request is well-formed but violates a business validation rule."""
    def __init__(
        self,
        message: str,
        reason: ValidationReason,
        details: dict[str, Any] | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_FAILED", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400, details,
        )
        self.reason = reason

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["reason"] = self.reason.value
        return response


class EligibilityFailedError(CrewGateError):
    """Candidate failed a synchronous pre-check."""
    def __init__(
        self, fail_reason: str, fail_type: FailType, context: ErrorContext | None = None,
    ):
        super().__init__(
            fail_reason, "ELIGIBILITY_FAILED", ErrorCategory.ELIGIBILITY,
            ErrorSeverity.INFO, context, 400,
        )
        self.fail_type = fail_type

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["fail_type"] = self.fail_type.value
        return response


class ConflictError(CrewGateError):
    """An active membership already exists for this participant and segment."""
    def __init__(
        self, message: str, existing_id: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
            details={"existing_membership_id": existing_id} if existing_id else None,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PersistenceFailedError(CrewGateError):
    """Durable-store write failed.

    When membership_id is set the membership row already exists; the response
    tells the client it was created but is incomplete.
    """
    def __init__(
        self,
        message: str,
        operation: str,
        membership_id: str | None = None,
        context: ErrorContext | None = None,
    ):
        details = {"operation": operation}
        if membership_id is not None:
            details["membership_id"] = membership_id
            details["membership_created"] = True
        super().__init__(
            f"Database {operation} failed: {message}",
            "PERSISTENCE_FAILED", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 500, details,
        )
        self.operation = operation
        self.membership_id = membership_id


class AnthropicAPIError(CrewGateError):
    """Anthropic API call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Anthropic API error ({api_error_type}): {message}",
            "ANTHROPIC_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type


class AssessmentError(CrewGateError):
    """Deferred assessment could not produce a usable result."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "ASSESSMENT_FAILED", ErrorCategory.INTERNAL,
            ErrorSeverity.ERROR, context, 500,
        )
