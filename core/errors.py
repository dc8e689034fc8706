# core/errors.py

from fastapi import HTTPException


# ============================================================
# Domain errors (user-facing, recoverable)
# ============================================================

class GateError(Exception):
    """
    Base class for every error the gate/booking services surface to callers.

    Each subclass carries the HTTP status the API layer maps it to; the
    message is shown to the user verbatim.
    """

    status_code = 400

    def __init__(self, message: str = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.__name__

    @property
    def code(self) -> str:
        return type(self).__name__


class NotFound(GateError):
    status_code = 404


class InvalidState(GateError):
    status_code = 409


class InvalidRange(GateError):
    status_code = 400


class OutsideOperatingHours(GateError):
    status_code = 400


class SlotOccupied(GateError):
    status_code = 409


class Unauthorized(GateError):
    """Actor lacks permission for the operation (e.g. unverified resident)."""
    status_code = 403


class Forbidden(GateError):
    """Actor is neither the owner nor privileged."""
    status_code = 403


class PersistenceError(GateError):
    """Transient storage failure. Callers may retry with backoff."""
    status_code = 503


# ============================================================
# Supabase error helpers
# ============================================================

def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1 - Supabase Auth / GoTrue / PostgREST APIError
    if hasattr(error, "message") and error.message:
        return str(error.message)

    # Case 2 - Supabase errors with args (common)
    if getattr(error, "args", None):
        return str(error.args[0])

    # Case 3 - Plain string fallback
    return str(error) or "Unknown Supabase error"


def is_unique_violation(error: Exception) -> bool:
    if getattr(error, "code", None) == "23505":
        return True
    detail = extract_supabase_error(error).lower()
    return "duplicate" in detail or "unique" in detail


def is_exclusion_violation(error: Exception) -> bool:
    if getattr(error, "code", None) == "23P01":
        return True
    return "exclusion constraint" in extract_supabase_error(error).lower()


def is_invalid_input(error: Exception) -> bool:
    """Malformed key (e.g. a non-UUID id) rejected by Postgres."""
    if getattr(error, "code", None) == "22P02":
        return True
    return "invalid input syntax" in extract_supabase_error(error).lower()


def persistence_error(error: Exception, operation: str) -> PersistenceError:
    """
    Wrap an unexpected storage failure so the caller can tell it apart
    from the domain errors above.
    """
    from core.logging_config import logger

    detail = extract_supabase_error(error)
    logger.error(f"{operation}: {detail}")
    return PersistenceError(operation)


def handle_supabase_error(error: Exception, operation: str = "Database operation", status_code: int = 500) -> HTTPException:
    """
    Handle Supabase errors with consistent formatting.
    Returns HTTPException (doesn't raise) so caller can customize or re-raise.

    Args:
        error: The exception that occurred
        operation: Description of what operation failed (e.g., "Failed to create notice")
        status_code: HTTP status code (default 500)

    Returns:
        HTTPException with standardized error message
    """
    from core.logging_config import logger

    if isinstance(error, HTTPException):
        return error

    error_detail = extract_supabase_error(error)
    logger.error(f"{operation}: {error_detail}")

    # Provide user-friendly messages for common errors
    error_lower = error_detail.lower()
    if "duplicate" in error_lower or "unique" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Record already exists")
    elif "foreign key" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Invalid reference")
    elif "not found" in error_lower or "does not exist" in error_lower:
        return HTTPException(status_code=404, detail=f"{operation}: Resource not found")
    else:
        return HTTPException(status_code=status_code, detail=f"{operation} failed")
