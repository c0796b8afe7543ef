# sshdeck/utils/exceptions.py

from enum import Enum
from typing import Any, Dict, Optional

from .translation_utils import _


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    SESSION = "session"
    SSH = "ssh"
    STORAGE = "storage"
    CONFIG = "config"
    NETWORK = "network"
    SYSTEM = "system"
    VALIDATION = "validation"


class SshdeckError(Exception):
    """Base exception class for all sshdeck errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.user_message = user_message or self._generate_user_message()

    def _generate_user_message(self) -> str:
        """Generate a user-friendly message based on the category."""
        category_messages = {
            ErrorCategory.SESSION: _("A session error occurred"),
            ErrorCategory.SSH: _("An SSH connection error occurred"),
            ErrorCategory.STORAGE: _("A data storage error occurred"),
            ErrorCategory.CONFIG: _("A configuration error occurred"),
            ErrorCategory.NETWORK: _("A network error occurred"),
            ErrorCategory.SYSTEM: _("A system error occurred"),
            ErrorCategory.VALIDATION: _("A validation error occurred"),
        }
        return category_messages.get(self.category, _("An unexpected error occurred"))

    def __str__(self) -> str:
        return f"[{self.category.value.upper()}:{self.severity.value.upper()}] {self.message}"


class PersistenceError(SshdeckError):
    """Raised when the persistence authority rejects a call or cannot be reached."""

    def __init__(self, operation: str, entity: str, reason: str, **kwargs):
        message = _("Failed to {} {}: {}").format(operation, entity, reason)
        kwargs.setdefault("category", ErrorCategory.STORAGE)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault(
            "details", {"operation": operation, "entity": entity, "reason": reason}
        )
        kwargs.setdefault("user_message", _("Could not save data: {}").format(reason))
        super().__init__(message, **kwargs)
        self.operation = operation
        self.entity = entity
        self.reason = reason


class NegotiationError(SshdeckError):
    """Raised when a connect, disconnect, forward or key action fails."""

    def __init__(self, verb: str, target: str, reason: str, **kwargs):
        message = _("{} for '{}' failed: {}").format(verb, target, reason)
        kwargs.setdefault("category", ErrorCategory.SSH)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("details", {"verb": verb, "target": target, "reason": reason})
        kwargs.setdefault("user_message", reason)
        super().__init__(message, **kwargs)
        self.verb = verb
        self.target = target
        self.reason = reason


class ConfigError(SshdeckError):
    """Raised when configuration values are invalid."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.CONFIG)
        super().__init__(message, **kwargs)


class ValidationError(SshdeckError):
    """Raised when caller input is structurally invalid."""

    def __init__(
        self,
        field: str,
        reason: str,
        value: Any = None,
        **kwargs,
    ):
        message = _("Validation failed for '{}': {}").format(field, reason)
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        kwargs.setdefault("severity", ErrorSeverity.MEDIUM)
        kwargs.setdefault("details", {"field": field, "value": value, "reason": reason})
        kwargs.setdefault("user_message", reason)
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.reason = reason


def handle_exception(
    exception: Exception,
    context: str = "",
    logger_name: str = None,
    reraise: bool = False,
) -> Optional[SshdeckError]:
    """Handle an exception by logging it and optionally converting to SshdeckError."""
    from .logger import log_error_with_context

    log_error_with_context(exception, context, logger_name)
    converted_exception = (
        exception
        if isinstance(exception, SshdeckError)
        else SshdeckError(
            message=str(exception),
            details={"original_type": type(exception).__name__, "context": context},
        )
    )
    if reraise:
        raise converted_exception
    return converted_exception
