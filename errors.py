"""
Exception hierarchy for the engagement engine.

Every error carries an HTTP status so blueprints can raise instead of building
error responses by hand; ``register_error_handlers`` turns them into JSON.

Conflicts on likes and medal awards are *not* raised: they are resolved as
"already done" where they happen. ``ConflictError`` is only used by
administrative creates (e.g. a duplicate medal slug).
"""

from datetime import datetime
from typing import Any, Dict, Optional
import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from extensions import db

logger = logging.getLogger(__name__)


class EngagementError(Exception):
    """Base exception for all engine errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses"""
        return {
            "success": False,
            "error": self.__class__.__name__,
            "message": self.user_message,
        }


class ValidationError(EngagementError):
    """
    Malformed id, enum, pagination or text input.

    Example:
        raise ValidationError("must be between 1 and 500 characters", field="text")
    """

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class AuthenticationError(EngagementError):
    """No caller identity was attached to an identity-required request"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationError(EngagementError):
    status_code = 403

    def __init__(self, message: str = "Admin key required"):
        super().__init__(message)


class NotFoundError(EngagementError):
    """Like, medal or user lookup came back empty"""

    status_code = 404

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found" if identifier is None else f"{resource} '{identifier}' not found"
        super().__init__(message, context={"resource": resource, "id": identifier})


class ConflictError(EngagementError):
    status_code = 409


class DependencyError(EngagementError):
    """The persistent store (or another collaborator) is unavailable"""

    status_code = 503

    def __init__(self, message: str, cause: Optional[Exception] = None, **kwargs):
        self.cause = cause
        super().__init__(
            message,
            user_message=kwargs.pop("user_message", "Service temporarily unavailable. Please try again."),
            **kwargs,
        )


class DeadlineExceeded(DependencyError):
    """A read path ran past its caller-supplied deadline"""

    status_code = 504

    def __init__(self, operation: str, timeout_ms: int):
        self.operation = operation
        self.timeout_ms = timeout_ms
        super().__init__(
            f"{operation} exceeded its {timeout_ms} ms deadline",
            user_message="The request took too long. Please try again.",
            context={"operation": operation, "timeout_ms": timeout_ms},
        )


def register_error_handlers(app) -> None:
    """Map the hierarchy (and raw store failures) onto JSON responses."""

    @app.errorhandler(EngagementError)
    def _handle_engagement_error(exc: EngagementError):
        if exc.status_code >= 500:
            logger.error(
                f"{exc.__class__.__name__}: {exc.message}",
                extra={"error_context": exc.context},
                exc_info=getattr(exc, "cause", None),
            )
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _handle_store_error(exc: SQLAlchemyError):
        db.session.rollback()
        wrapped = DependencyError("Persistent store failure", cause=exc)
        logger.error(f"DependencyError: {exc}", exc_info=exc)
        return jsonify(wrapped.to_dict()), wrapped.status_code
