# viewtuber/errors.py
"""
Error taxonomy shared by the services and the HTTP layer.

Every error carries a short, caller-safe message. `kind` names the taxonomy
bucket reported to clients; `status_code` is the HTTP status the exception
handler in `viewtuber.main` responds with.
"""


class CollabError(Exception):
    kind = "CollabError"
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---- taxonomy ----
class AuthenticationError(CollabError):
    kind = "AuthenticationError"
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(CollabError):
    kind = "AuthorizationError"
    status_code = 403
    default_message = "Not authorized"


class ValidationError(CollabError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(CollabError):
    kind = "NotFoundError"
    status_code = 404
    default_message = "Not found"


class ConflictError(CollabError):
    kind = "ConflictError"
    status_code = 409
    default_message = "Conflict"


class ExternalProviderError(CollabError):
    kind = "ExternalProviderError"
    status_code = 502
    default_message = "External provider error"


class StateError(CollabError):
    kind = "StateError"
    status_code = 409
    default_message = "Operation not allowed in the current state"


# ---- specific errors ----
class MalformedPermissionError(ValidationError):
    default_message = "Malformed permission string"


class NoPermittedFieldsError(AuthorizationError):
    default_message = "No permitted fields to update"


class NoPlatformCredentialError(AuthorizationError):
    default_message = "No YouTube access for the project owner"


class DuplicateActiveMemberError(ConflictError):
    default_message = "User is already a member of or invited to the project"


class InvalidOrExpiredInvitationError(ConflictError):
    default_message = "Invalid or expired invitation"


class StorageProviderError(ExternalProviderError):
    default_message = "Object storage request failed"


class UploadFinalizationError(ExternalProviderError):
    default_message = "Error completing upload"


class EmailDeliveryError(ExternalProviderError):
    default_message = "Error sending email"


class PlatformPublishError(ExternalProviderError):
    default_message = "Failed to upload video"


class CredentialRefreshError(ExternalProviderError):
    default_message = "Failed to refresh access token"


class VideoNotApprovedError(StateError):
    default_message = "Video not approved"


class InvalidUploadStateError(StateError):
    default_message = "Video upload is not in a compatible state"
