"""Custom exceptions for BlueprintFlow.

All custom exceptions inherit from BlueprintFlowError. Each carries a unique
error code and optional structured details so the HTTP layer, the CLI and the
chat planner can report them without string matching.

Structural errors (DuplicateId, InvalidReference, TypeMismatch, FanInViolation)
are raised synchronously by primitive document operations. Planner-level and
concurrency errors are raised by the agent and versioning layers. Every error
here is recoverable at the caller except IndexCorruptionError, which signals a
programming defect and must abort the operation.
"""

from typing import Any, Optional, Dict, TypeVar, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from blueprintflow.builder.graph_validator import ValidationReport

E = TypeVar("E", bound="BlueprintFlowError")


class BlueprintFlowError(Exception):
    """
    Base error for BlueprintFlow.

    Args:
        message: Human-readable error message.
        code: Unique error code for programmatic handling.
        details: Optional structured data for debugging or client use.
    """

    error_code: str = "blueprintflow.error"
    recoverable: bool = True

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message: str = message or (self.__class__.__doc__ or "BlueprintFlow error").strip()
        self.code: str = code or self.error_code
        self.details: Dict[str, Any] = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the exception for logging or API responses."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    @classmethod
    def from_exception(
        cls: Type[E],
        exc: Exception,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> E:
        """
        Wrap an arbitrary exception as a BlueprintFlowError subclass.
        Preserves the original message and attaches the original exception as detail.
        """
        return cls(
            message=str(exc) or exc.__class__.__name__,
            code=code,
            details={**(details or {}), "original_exception": repr(exc)},
        )


# --- Structural errors (raised by primitive document operations) ---

class DuplicateId(BlueprintFlowError):
    """An id supplied by the caller collides with an existing one."""
    error_code: str = "blueprintflow.duplicate_id"


class InvalidReference(BlueprintFlowError):
    """A node, pin, connection, variable or comment reference does not resolve."""
    error_code: str = "blueprintflow.invalid_reference"


class TypeMismatch(BlueprintFlowError):
    """The pin kinds joined by a connection are not compatible."""
    error_code: str = "blueprintflow.type_mismatch"


class FanInViolation(BlueprintFlowError):
    """The target input pin already holds an incoming data connection."""
    error_code: str = "blueprintflow.fan_in_violation"


# --- Planner-level errors ---

class MalformedPlan(BlueprintFlowError):
    """The assistant response could not be parsed into the operation grammar."""
    error_code: str = "blueprintflow.malformed_plan"


class CollaboratorUnavailable(BlueprintFlowError):
    """The language-model collaborator failed or timed out."""
    error_code: str = "blueprintflow.collaborator_unavailable"


# --- Concurrency and validation gate ---

class VersionConflict(BlueprintFlowError):
    """The base version of a mutation batch is no longer the latest committed version."""
    error_code: str = "blueprintflow.version_conflict"


class ValidationRejected(BlueprintFlowError):
    """A mutation batch produced at least one error-level finding."""
    error_code: str = "blueprintflow.validation_rejected"

    def __init__(
        self,
        report: "ValidationReport",
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.report = report
        first = report.errors[0].message if report.errors else "validation failed"
        super().__init__(
            message or f"Mutation rejected: {first}",
            details={**(details or {}), "findings": report.to_list()},
        )


# --- Supporting errors ---

class NotFoundError(BlueprintFlowError):
    """Raised when a stored object is not found."""
    error_code: str = "blueprintflow.not_found"


class SerializationError(BlueprintFlowError):
    """Raised when serialization or deserialization fails."""
    error_code: str = "blueprintflow.serialization_error"


class ConfigurationError(BlueprintFlowError):
    """Raised for configuration or environment errors."""
    error_code: str = "blueprintflow.configuration_error"


class IndexCorruptionError(BlueprintFlowError):
    """An internal id index disagrees with the document it indexes."""
    error_code: str = "blueprintflow.index_corruption"
    recoverable: bool = False


STRUCTURAL_ERRORS = (DuplicateId, InvalidReference, TypeMismatch, FanInViolation)
