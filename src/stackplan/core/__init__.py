"""Core modules for stackplan - centralized error definitions."""

from stackplan.core.errors import (
    ClusterMismatchError,
    ConfigurationError,
    CycleDetectedError,
    DanglingReferenceError,
    DeclarationError,
    DuplicateIdentifierError,
    ErrorKind,
    ExitCode,
    GraphFrozenError,
    IncompatibleCapacitySourceError,
    InconsistentResourceGranularityError,
    InvalidDeclarationError,
    MissingCapacitySourceError,
    PlanNotReadyError,
    StackPlanError,
    UnsupportedResourceSizeError,
    ValidationIssue,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ErrorKind",
    "ValidationIssue",
    "StackPlanError",
    "ConfigurationError",
    "DeclarationError",
    "DuplicateIdentifierError",
    "CycleDetectedError",
    "DanglingReferenceError",
    "IncompatibleCapacitySourceError",
    "InconsistentResourceGranularityError",
    "ClusterMismatchError",
    "MissingCapacitySourceError",
    "UnsupportedResourceSizeError",
    "InvalidDeclarationError",
    "GraphFrozenError",
    "PlanNotReadyError",
    "main_with_error_handling",
    "format_error_message",
]
