"""Unit tests for custom exception hierarchy"""
import logging
import pytest
from datetime import datetime

from engagement.exceptions import (
    CollaboratorFailure,
    ConcurrencyConflictError,
    ConfigurationError,
    ConflictError,
    EngagementError,
    NotificationDeliveryError,
    RecordNotFoundError,
    RepositoryError,
    ValidationError,
    wrap_collaborator_exception,
)
from engagement.results import Failure, Success


class TestEngagementError:
    """Test base exception class"""

    def test_basic_exception(self):
        """Test basic exception creation"""
        error = EngagementError("Test error")
        assert error.message == "Test error"
        assert error.user_message == "An error occurred. Please try again."
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)

    def test_exception_with_context(self):
        """Test exception with full context"""
        error = EngagementError(
            message="Failed to save streak",
            user_id="user-123",
            operation="record_activity",
            context={"streak_id": "abc-123"},
            user_message="Could not save your streak"
        )
        assert error.user_id == "user-123"
        assert error.operation == "record_activity"
        assert error.context["streak_id"] == "abc-123"
        assert error.user_message == "Could not save your streak"

    def test_to_dict(self):
        """Test exception serialization"""
        error = EngagementError(message="Test error", user_id="user-123")
        error_dict = error.to_dict()
        assert error_dict["error"] == "EngagementError"
        assert error_dict["kind"] == "error"
        assert error_dict["message"] == "Test error"
        assert "request_id" in error_dict
        assert "timestamp" in error_dict

    def test_logs_on_creation(self, caplog):
        """Test exceptions log when created"""
        with caplog.at_level(logging.ERROR, logger="engagement.exceptions"):
            EngagementError("Something broke", user_id="user-123")
        assert "Something broke" in caplog.text


class TestValidationError:

    def test_validation_error_with_field(self):
        """Test validation error with field info"""
        error = ValidationError(message="Limit must be positive", field="limit", value=0)
        assert error.kind == "validation"
        assert error.field == "limit"
        assert error.value == 0
        assert "limit" in error.user_message

    def test_record_not_found(self):
        """Test record not found error"""
        error = RecordNotFoundError(message="missing", record_type="streak", record_id="s-1")
        assert isinstance(error, ValidationError)
        assert error.kind == "validation"
        assert error.field == "streak_id"
        assert error.user_message == "streak not found."


class TestConflictErrors:

    def test_conflict_carries_state(self):
        """Test conflict error carries current state"""
        error = ConflictError(message="not broken", current_state={"id": "s-1"})
        assert error.kind == "conflict"
        assert error.current_state == {"id": "s-1"}

    def test_concurrency_conflict(self):
        """Test version conflict error"""
        error = ConcurrencyConflictError(
            message="stale", record_type="streak", record_id="s-1", expected_version=2, actual_version=3
        )
        assert isinstance(error, ConflictError)
        assert error.expected_version == 2
        assert error.context["actual_version"] == 3


class TestCollaboratorErrors:

    def test_repository_error_kind(self):
        """Test repository errors are collaborator failures"""
        error = RepositoryError("db down")
        assert isinstance(error, CollaboratorFailure)
        assert error.kind == "collaborator"

    def test_notification_error_kind(self):
        """Test notification errors are collaborator failures"""
        assert NotificationDeliveryError("push failed").kind == "collaborator"

    def test_wrap_foreign_exception(self):
        """Test wrapping a foreign exception"""
        error = wrap_collaborator_exception(RuntimeError("boom"), operation="update_streak", user_id="user-123")
        assert isinstance(error, RepositoryError)
        assert error.operation == "update_streak"
        assert isinstance(error.cause, RuntimeError)

    def test_wrap_timeout(self):
        """Test wrapping a timeout"""
        error = wrap_collaborator_exception(TimeoutError("slow"), operation="get_streak")
        assert "timed out" in error.message

    def test_wrap_passes_hierarchy_errors_through(self):
        """Test wrapping leaves engagement errors unchanged"""
        original = ConcurrencyConflictError(message="stale")
        assert wrap_collaborator_exception(original, operation="update_streak") is original


class TestConfigurationError:

    def test_configuration_error(self):
        """Test configuration error"""
        error = ConfigurationError(message="bad tz", config_key="ENGAGEMENT_TIMEZONE")
        assert error.config_key == "ENGAGEMENT_TIMEZONE"
        assert "not properly configured" in error.user_message


class TestResults:

    def test_success(self):
        """Test success result"""
        result = Success(42)
        assert result.ok
        assert result.unwrap() == 42

    def test_failure(self):
        """Test failure result"""
        error = ValidationError(message="bad", field="limit", value=-1)
        result = Failure(error)
        assert not result.ok
        assert result.kind == "validation"
        with pytest.raises(ValidationError):
            result.unwrap()
