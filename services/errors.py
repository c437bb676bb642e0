"""Error types shared by the validation and service layers."""
from typing import Any, Dict, List, Optional


class InvalidInput(ValueError):
    """Raised when request data fails validation.

    ``errors`` holds one ``{"field": ..., "message": ...}`` entry per problem.
    """

    def __init__(self, errors: List[Dict[str, str]]):
        self.errors = errors
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))

    @classmethod
    def from_pydantic(cls, exc) -> "InvalidInput":
        """Builds an InvalidInput from a pydantic ValidationError."""
        errors = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "body"
            message = err.get("msg", "Invalid value")
            # pydantic prefixes messages raised from validators
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.append({"field": field, "message": message})
        return cls(errors)


class StorageError(RuntimeError):
    """Wraps any failure of the underlying database."""

    def __init__(self, message: str, code: str = "DATABASE_ERROR", cause: Optional[Any] = None):
        super().__init__(message)
        self.code = code
        self.cause = cause
