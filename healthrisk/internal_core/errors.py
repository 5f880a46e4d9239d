from __future__ import annotations


class ValidationError(ValueError):
    """Raised when raw input is malformed or outside a field's domain bounds."""

    def __init__(self, field: str, bound: str, message: str | None = None):
        self.field = field
        self.bound = bound
        self.message = message or f"Invalid value for '{field}': expected {bound}."
        super().__init__(self.message)


class ComputationInvariantViolation(RuntimeError):
    """Raised when scoring produces a state that must never happen (internal bug)."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class PersistenceError(RuntimeError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
