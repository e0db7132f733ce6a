"""Error taxonomy for the Rabbit AI service.

Every error raised by services derives from `RabbitError` and carries the
HTTP status it maps to at the API boundary. Cache errors are a separate
branch: they are caught by `best_effort()` and only escape where a stale
entry would be worse than a failed request.
"""

from __future__ import annotations


class RabbitError(Exception):
    """Base class for all service errors."""

    status_code = 500
    code = "InternalError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# -----------------------------------------------------------------------------
# Not found (404)
# -----------------------------------------------------------------------------


class NotFoundError(RabbitError):
    status_code = 404
    code = "NotFound"

    def __init__(self, resource_type: str, identifier: object):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} '{identifier}' not found")


class UserNotFoundError(NotFoundError):
    def __init__(self, identifier: object):
        super().__init__("User", identifier)


class ConversationNotFoundError(NotFoundError):
    def __init__(self, identifier: object):
        super().__init__("Conversation", identifier)


class MessageNotFoundError(NotFoundError):
    def __init__(self, identifier: object):
        super().__init__("Message", identifier)


# -----------------------------------------------------------------------------
# Authorization (403) and authentication (401)
# -----------------------------------------------------------------------------


class PermissionDeniedError(RabbitError):
    status_code = 403
    code = "Forbidden"


class ConversationAccessDeniedError(PermissionDeniedError):
    """Requester does not own the conversation.

    The message names no identifiers.
    """

    def __init__(self) -> None:
        super().__init__("You may not access this conversation")


class AuthenticationError(RabbitError):
    status_code = 401
    code = "Unauthorized"


class InvalidCredentialsError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("Invalid phone or password")


class AccountDisabledError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__("User account is disabled")


class InvalidTokenError(AuthenticationError):
    pass


# -----------------------------------------------------------------------------
# Conflicts (409) and bad input (400)
# -----------------------------------------------------------------------------


class ConflictError(RabbitError):
    status_code = 409
    code = "Conflict"


class UserAlreadyExistsError(ConflictError):
    def __init__(self, phone: str):
        super().__init__(f"User with phone '{phone}' already exists")


class DeviceAlreadyBoundError(ConflictError):
    def __init__(self, device_id: str):
        super().__init__(f"Device '{device_id}' is already bound to another user")


class ValidationError(RabbitError):
    status_code = 400
    code = "BadRequest"


# -----------------------------------------------------------------------------
# Cache
# -----------------------------------------------------------------------------


class CacheError(RabbitError):
    """Any failure of the cache layer."""

    status_code = 503
    code = "CacheUnavailable"


class CacheConnectionError(CacheError):
    """The cache store could not be reached or rejected the command."""


class CacheSerializationError(CacheError):
    """A cache entry could not be encoded, or a stored entry is corrupt."""

    status_code = 500
    code = "CacheCorrupt"


# -----------------------------------------------------------------------------
# External services
# -----------------------------------------------------------------------------


class ExternalAuthError(RabbitError):
    """GitHub OAuth or Aliyun one-click login failed."""

    status_code = 502
    code = "ExternalAuthFailed"
