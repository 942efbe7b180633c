"""
Standardized exception hierarchy for the engagement core
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class EngagementError(Exception):
    """
    Base exception for all engagement core errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise EngagementError(
            message="Failed to save streak",
            user_id="user-123",
            operation="record_activity",
            context={"streak_id": "abc-123"}
        )
    """

    kind = "error"
    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(EngagementError):
    """
    Raised when caller input fails validation

    Examples:
    - Unknown action type
    - Non-positive limit
    - Action that does not qualify for a recovery

    Example:
        raise ValidationError(
            message="Limit must be positive",
            field="limit",
            value=0,
            user_id="user-123"
        )
    """

    kind = "validation"
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("user_message", f"Invalid {field}: {message}" if field else message)
        kwargs.setdefault("context", {"field": field, "value": value})
        super().__init__(message=message, **kwargs)


class RecordNotFoundError(ValidationError):
    """Requested record does not exist for this user"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            field=f"{record_type}_id" if record_type else None,
            value=record_id,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# State Conflicts
# ==========================================

class ConflictError(EngagementError):
    """
    Operation does not fit the current state of a record

    Carries the authoritative state so callers can re-render or retry
    without another read.
    """

    kind = "conflict"
    log_level = logging.INFO

    def __init__(
        self,
        message: str,
        current_state: Optional[Any] = None,
        **kwargs
    ):
        self.current_state = current_state
        kwargs.setdefault("user_message", "This item changed in the meantime. Please refresh.")
        super().__init__(message=message, **kwargs)


class ConcurrencyConflictError(ConflictError):
    """Row version did not match during compare-and-swap"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            message=message,
            context={
                "record_type": record_type,
                "record_id": record_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
            **kwargs
        )


# ==========================================
# Collaborator Failures
# ==========================================

class CollaboratorFailure(EngagementError):
    """
    Base class for failures of injected collaborators
    """

    kind = "collaborator"


class RepositoryError(CollaboratorFailure):
    """Repository read or write failed"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault(
            "user_message",
            "We encountered an issue saving your progress. Please try again."
        )
        super().__init__(message=message, **kwargs)


class NotificationDeliveryError(CollaboratorFailure):
    """Handing an event to the notification scheduler failed"""

    log_level = logging.WARNING

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", "We couldn't schedule your reminder.")
        super().__init__(message=message, **kwargs)


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(EngagementError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_collaborator_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> EngagementError:
    """
    Wrap exceptions raised by collaborators into our exception hierarchy

    Errors that already belong to the hierarchy pass through unchanged, so a
    repository may raise ConcurrencyConflictError itself.

    Example:
        try:
            await repository.update_streak(streak)
        except Exception as e:
            return Failure(wrap_collaborator_exception(
                e,
                operation="record_activity",
                user_id="user-123"
            ))
    """
    if isinstance(error, EngagementError):
        return error

    if isinstance(error, TimeoutError):
        return RepositoryError(
            message=f"{operation} timed out: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    return RepositoryError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
