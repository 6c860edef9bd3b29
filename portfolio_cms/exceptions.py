"""
Error taxonomy shared by the gateways, the unit of work and the workflow
services.

Every domain error carries the HTTP status the API layer answers with and
a ``to_dict()`` payload that is safe to show to users: store-level details
stay in the logs.
"""


class ContentError(Exception):
    """Base class for all content repository errors."""

    status_code = 500

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "errors": self.errors}


class NotFoundError(ContentError):
    """The requested entity does not exist (or is not visible to the caller)."""

    status_code = 404

    def __init__(self, entity: str, entity_id=None) -> None:
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ValidationFailure(ContentError):
    """Malformed input caught before it reached the store.

    ``errors`` holds one message per offending field.
    """

    status_code = 422

    def __init__(self, message: str = "Validation failed", errors: list[str] | None = None) -> None:
        super().__init__(message, errors)


class InvalidTransition(ValidationFailure):
    """A workflow transition was requested from a state that forbids it."""

    def __init__(self, entity: str, transition: str, current_status) -> None:
        super().__init__(
            f"Cannot {transition} {entity} in status {current_status.value}",
            [f"status: '{transition}' is not allowed from '{current_status.value}'"],
        )
        self.transition = transition
        self.current_status = current_status


class ConcurrencyConflict(ContentError):
    """The row changed since the caller read it; nothing was written."""

    status_code = 409

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "The record you attempted to edit was modified by another user after "
            "you loaded it. Reload the latest version and apply your changes again."
        )


class PersistenceFailure(ContentError):
    """Store-level failure: constraint violation, schema mismatch, ..."""

    status_code = 500
    public_message = "An error occurred while saving changes. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)

    def to_dict(self) -> dict:
        return {"success": False, "message": self.public_message, "errors": []}


class ConnectivityFailure(PersistenceFailure):
    """Transient connectivity problem that outlived the retry budget."""

    status_code = 503
    public_message = "The service is temporarily unavailable. Please try again later."

    def __init__(self, message: str | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransactionStateError(RuntimeError):
    """Programming error: misuse of the explicit transaction API."""
