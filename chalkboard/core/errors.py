"""
Domain error taxonomy

Services raise these; the API layer renders every one of them as a
``{"kind": ..., "message": ...}`` body with the matching status code.
"""

from fastapi import status


class ChalkboardError(Exception):
    """Base class for errors that cross the API boundary"""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class UnauthorizedError(ChalkboardError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(ChalkboardError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class InvalidArgumentError(ChalkboardError):
    kind = "invalid_argument"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(ChalkboardError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(ChalkboardError):
    # Rendered as 400: state conflicts are part of the documented 400 contract
    kind = "conflict"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflicting state"


class InternalError(ChalkboardError):
    pass


class InvalidTransitionError(ConflictError):
    """Raised when a status change is not in the entity's transition table"""

    def __init__(self, entity: str, current, target):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move {entity} from {_label(current)} to {_label(target)}"
        )


def _label(value) -> str:
    return getattr(value, "value", value)
