"""
Unified error handling for stackplan.

Declaration and validation failures are typed, recoverable exceptions that
convert to ``ValidationIssue`` values so callers can report every problem
before deployment. CLI commands are wrapped by ``main_with_error_handling``
which maps errors to exit codes.

Exit Codes:
- 0: Success
- 10: Configuration error (manifest could not be loaded)
- 12: Validation error
- 13: Plan not ready
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 12
    PLAN_NOT_READY = 13
    UNKNOWN_ERROR = 127


class ErrorKind(Enum):
    """Classification of declaration and validation failures."""

    DUPLICATE_IDENTIFIER = "DuplicateIdentifier"
    CYCLE_DETECTED = "CycleDetected"
    DANGLING_REFERENCE = "DanglingReference"
    INCOMPATIBLE_CAPACITY_SOURCE = "IncompatibleCapacitySource"
    INCONSISTENT_RESOURCE_GRANULARITY = "InconsistentResourceGranularity"
    CLUSTER_MISMATCH = "ClusterMismatch"
    MISSING_CAPACITY_SOURCE = "MissingCapacitySource"
    UNSUPPORTED_RESOURCE_SIZE = "UnsupportedResourceSize"
    INVALID_DECLARATION = "InvalidDeclaration"
    GRAPH_FROZEN = "GraphFrozen"


@dataclass(frozen=True)
class ValidationIssue:
    """A single detected problem, as reported by ``validate()``."""

    kind: ErrorKind
    message: str
    subjects: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "subjects": list(self.subjects),
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class StackPlanError(Exception):
    """Base exception for stackplan errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StackPlanError):
    """Raised for configuration and manifest loading errors."""

    exit_code = ExitCode.CONFIG_ERROR


class DeclarationError(StackPlanError):
    """Base class for recoverable declaration failures."""

    exit_code = ExitCode.VALIDATION_ERROR
    kind: ErrorKind = ErrorKind.INVALID_DECLARATION

    def __init__(
        self,
        message: str,
        subjects: tuple[str, ...] | list[str] = (),
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.subjects = tuple(subjects)

    def to_issue(self) -> ValidationIssue:
        """Convert to a non-raising validation issue."""
        return ValidationIssue(
            kind=self.kind,
            message=self.message,
            subjects=self.subjects,
            details=dict(self.details),
        )

    @classmethod
    def from_issue(cls, issue: ValidationIssue) -> DeclarationError:
        """Build the matching exception type for a validation issue."""
        error_cls = _ERRORS_BY_KIND.get(issue.kind, InvalidDeclarationError)
        return error_cls(issue.message, issue.subjects, dict(issue.details))


class DuplicateIdentifierError(DeclarationError):
    """An entity with the same kind and identifier is already declared."""

    kind = ErrorKind.DUPLICATE_IDENTIFIER


class CycleDetectedError(DeclarationError):
    """A dependency edge would close (or a graph contains) a cycle."""

    kind = ErrorKind.CYCLE_DETECTED


class DanglingReferenceError(DeclarationError):
    """A reference points at a missing entity, or removal would orphan one."""

    kind = ErrorKind.DANGLING_REFERENCE


class IncompatibleCapacitySourceError(DeclarationError):
    """A workload shares no capability with a bound capacity offering."""

    kind = ErrorKind.INCOMPATIBLE_CAPACITY_SOURCE


class InconsistentResourceGranularityError(DeclarationError):
    """Task-level and per-step resources disagree for the binding's modes."""

    kind = ErrorKind.INCONSISTENT_RESOURCE_GRANULARITY


class ClusterMismatchError(DeclarationError):
    """A binding references an offering attached to a different cluster."""

    kind = ErrorKind.CLUSTER_MISMATCH


class MissingCapacitySourceError(DeclarationError):
    """A binding resolves to no capacity offering at all."""

    kind = ErrorKind.MISSING_CAPACITY_SOURCE


class UnsupportedResourceSizeError(DeclarationError):
    """Task size is not one the serverless capacity can provide."""

    kind = ErrorKind.UNSUPPORTED_RESOURCE_SIZE


class InvalidDeclarationError(DeclarationError):
    """A declaration carries malformed values (weights, counts, flags)."""

    kind = ErrorKind.INVALID_DECLARATION


class GraphFrozenError(DeclarationError):
    """Mutation attempted after the graph was frozen for planning."""

    kind = ErrorKind.GRAPH_FROZEN


class PlanNotReadyError(StackPlanError):
    """plan() invoked while the model is unvalidated or invalid."""

    exit_code = ExitCode.PLAN_NOT_READY

    def __init__(
        self,
        message: str,
        issues: list[ValidationIssue] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.issues = list(issues or [])


_ERRORS_BY_KIND: dict[ErrorKind, type[DeclarationError]] = {
    cls.kind: cls
    for cls in (
        DuplicateIdentifierError,
        CycleDetectedError,
        DanglingReferenceError,
        IncompatibleCapacitySourceError,
        InconsistentResourceGranularityError,
        ClusterMismatchError,
        MissingCapacitySourceError,
        UnsupportedResourceSizeError,
        InvalidDeclarationError,
        GraphFrozenError,
    )
}


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI command functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - StackPlanError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except StackPlanError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: StackPlanError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
