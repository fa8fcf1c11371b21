"""
Error handling utilities for the Project Hub sync pipeline.

This module defines the typed error taxonomy raised by every component,
the single function that maps remote API responses onto it, and the error
tracker used to keep statistics about failures.
"""

import asyncio
import functools
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .logging import get_logger


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    DOMAIN = "domain"
    INTERNAL = "internal"


class ProjectHubError(Exception):
    """
    Base class for all typed pipeline errors.

    Attributes:
        message: Human readable description
        operation: Operation that failed (e.g. 'update_ref')
        repo: Repository the operation targeted, when known
        status: Remote HTTP status, when the error came from the remote API
    """

    category = ErrorCategory.INTERNAL
    severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        repo: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.message = message
        self.operation = operation
        self.repo = repo
        self.status = status
        super().__init__(self._describe())

    def _describe(self) -> str:
        context = []
        if self.operation:
            context.append(self.operation)
        if self.repo:
            context.append(self.repo)
        if context:
            return f"{self.message} ({' in '.join(context)})"
        return self.message


class ValidationError(ProjectHubError):
    """Malformed identifier or argument, detected before any network call."""

    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW


class NotFoundError(ProjectHubError):
    """A ref, commit, branch, repository or project does not exist."""

    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW


class ProjectNotFoundError(NotFoundError):
    """Unknown project identifier in the staging store."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found", operation="staging")


class BranchNotFoundError(NotFoundError):
    """Branch does not exist in the repository."""

    def __init__(self, repo: str, branch: str, operation: str = "get_branch"):
        self.branch = branch
        super().__init__(
            f"Branch {branch} not found", operation=operation, repo=repo, status=404
        )


class CommitNotFoundError(NotFoundError):
    """Commit does not exist in the repository."""

    def __init__(self, repo: str, sha: str, operation: str = "get_commit"):
        self.sha = sha
        super().__init__(
            f"Commit {sha} not found", operation=operation, repo=repo, status=404
        )


class ConflictError(ProjectHubError):
    """Non-fast-forward ref update or conflicting remote state."""

    category = ErrorCategory.CONFLICT


class ConcurrentUpdateError(ConflictError):
    """The branch ref moved between reading the head and updating it."""


class RefAlreadyExistsError(ConflictError):
    """A ref with the requested name already exists."""


class AuthError(ProjectHubError):
    """The credential was rejected by the remote service."""

    category = ErrorCategory.AUTHENTICATION
    severity = ErrorSeverity.HIGH


class RateLimitError(ProjectHubError):
    """The remote service is throttling requests."""

    category = ErrorCategory.RATE_LIMIT
    severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        operation: Optional[str] = None,
        repo: Optional[str] = None,
        status: Optional[int] = None,
        reset_at: Optional[datetime] = None,
    ):
        self.reset_at = reset_at
        super().__init__(message, operation=operation, repo=repo, status=status)


class InternalError(ProjectHubError):
    """Unexpected or unmapped failure."""

    severity = ErrorSeverity.HIGH


class DomainError(ProjectHubError):
    """An operation that is well-formed but forbidden by a domain rule."""

    category = ErrorCategory.DOMAIN
    severity = ErrorSeverity.LOW


class DefaultBranchDeletionError(DomainError):
    """The default branch can never be deleted."""

    def __init__(self, repo: str, branch: str):
        self.branch = branch
        super().__init__(
            f"Cannot delete default branch {branch}",
            operation="delete_branch",
            repo=repo,
        )


class UnsupportedRevertError(DomainError):
    """Root and merge commits cannot be reverted."""


def map_api_error(
    status: int,
    message: str,
    operation: str,
    repo: Optional[str] = None,
    reset_at: Optional[datetime] = None,
) -> ProjectHubError:
    """
    Map a remote API failure onto the typed error taxonomy.

    Args:
        status: HTTP status code returned by the remote service
        message: Error message from the response body
        operation: Gateway operation that failed
        repo: Repository the operation targeted
        reset_at: Rate limit reset time, when the response carried one

    Returns:
        ProjectHubError subclass instance (not raised)
    """
    text = message or "Unknown error"
    lowered = text.lower()

    if status == 401:
        return AuthError(text, operation=operation, repo=repo, status=status)

    if status == 429 or (status == 403 and "rate limit" in lowered):
        return RateLimitError(
            text, operation=operation, repo=repo, status=status, reset_at=reset_at
        )

    if status == 403:
        return AuthError(text, operation=operation, repo=repo, status=status)

    if status == 404:
        return NotFoundError(text, operation=operation, repo=repo, status=status)

    if status == 409:
        return ConflictError(text, operation=operation, repo=repo, status=status)

    if status == 422:
        if "fast forward" in lowered or "fast-forward" in lowered:
            return ConcurrentUpdateError(
                text, operation=operation, repo=repo, status=status
            )
        if "already exists" in lowered:
            return RefAlreadyExistsError(
                text, operation=operation, repo=repo, status=status
            )
        return ValidationError(text, operation=operation, repo=repo, status=status)

    return InternalError(
        f"Remote API error: {text}", operation=operation, repo=repo, status=status
    )


@dataclass
class ErrorInfo:
    """Information about an error occurrence."""

    timestamp: datetime
    component: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception_type: str
    traceback: str
    context: Dict[str, Any]


class ErrorTracker:
    """
    Tracks errors and provides statistics for monitoring.
    """

    def __init__(self, max_errors: int = 1000):
        """
        Initialize error tracker.

        Args:
            max_errors: Maximum number of errors to keep in memory
        """
        self.max_errors = max_errors
        self.errors: List[ErrorInfo] = []
        self.error_counts: Dict[str, int] = {}
        self.component_errors: Dict[str, List[ErrorInfo]] = {}
        self.logger = get_logger("error_tracker")

    def record_error(
        self,
        component: str,
        category: ErrorCategory,
        severity: ErrorSeverity,
        message: str,
        exception: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> ErrorInfo:
        """
        Record an error occurrence.

        Args:
            component: Component where error occurred
            category: Error category
            severity: Error severity
            message: Error message
            exception: Exception object if available
            context: Additional context information

        Returns:
            ErrorInfo object
        """
        error_info = ErrorInfo(
            timestamp=datetime.now(),
            component=component,
            category=category,
            severity=severity,
            message=message,
            exception_type=type(exception).__name__ if exception else "Unknown",
            traceback="".join(traceback.format_exception(exception))
            if exception
            else "",
            context=context or {},
        )

        self.errors.append(error_info)
        if len(self.errors) > self.max_errors:
            self.errors.pop(0)

        error_key = f"{component}.{category.value}.{severity.value}"
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1

        component_list = self.component_errors.setdefault(component, [])
        component_list.append(error_info)
        if len(component_list) > 100:
            component_list.pop(0)

        self.logger.error(
            f"Error recorded: {message}",
            extra={
                "component": component,
                "category": category.value,
                "severity": severity.value,
                "exception_type": error_info.exception_type,
                "context": context,
            },
        )

        return error_info

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        last_hour = datetime.now() - timedelta(hours=1)

        return {
            "total_errors": len(self.errors),
            "errors_last_hour": len(
                [e for e in self.errors if e.timestamp >= last_hour]
            ),
            "error_counts": self.error_counts.copy(),
            "component_error_counts": {
                component: len(errors)
                for component, errors in self.component_errors.items()
            },
            "severity_breakdown": {
                severity.value: len([e for e in self.errors if e.severity == severity])
                for severity in ErrorSeverity
            },
            "category_breakdown": {
                category.value: len([e for e in self.errors if e.category == category])
                for category in ErrorCategory
            },
        }


# Global error tracker instance
_error_tracker: Optional[ErrorTracker] = None


def get_error_tracker() -> ErrorTracker:
    """Get global error tracker instance."""
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker


def _classify(exception: Exception):
    if isinstance(exception, ProjectHubError):
        return exception.category, exception.severity
    return ErrorCategory.INTERNAL, ErrorSeverity.HIGH


def with_error_handling(component: str):
    """
    Decorator recording failures of a component operation.

    The exception is recorded in the global error tracker and re-raised
    unchanged. Nothing is retried or suppressed. When decorated operations
    are nested, only the innermost one records the failure.

    Args:
        component: Component name
    """

    def decorator(func: Callable) -> Callable:
        def record(e: Exception):
            if getattr(e, "_error_recorded", False):
                return
            e._error_recorded = True
            category, severity = _classify(e)
            get_error_tracker().record_error(
                component=component,
                category=category,
                severity=severity,
                message=f"Error in {func.__name__}: {e}",
                exception=e,
                context={"function": func.__name__},
            )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                record(e)
                raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                record(e)
                raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
