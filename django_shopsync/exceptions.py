from django_shopsync.constants import Outcome


class ShopSyncError(Exception):
    """Common base class for django-shopsync exceptions"""

    status_code = 500
    outcome = Outcome.ERROR
    error = "Internal server error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.error


class WebhookValidationError(ShopSyncError):
    status_code = 400
    outcome = Outcome.REJECTED
    error = "Bad request"


class AuthenticationError(ShopSyncError):
    status_code = 401
    outcome = Outcome.REJECTED
    error = "Unauthorized"


class UnknownShopError(ShopSyncError):
    status_code = 404
    outcome = Outcome.REJECTED
    error = "Unknown shop"


class DuplicateDelivery(ShopSyncError):
    """Not a failure: the same logical change was already applied."""

    status_code = 200
    outcome = Outcome.DUPLICATE
    error = "Already processed"


class UnsupportedTopic(ShopSyncError):
    """Not a failure: the topic has no handler and is acknowledged as ignored."""

    status_code = 200
    outcome = Outcome.IGNORED
    error = "Unhandled topic"


class StorageError(ShopSyncError):
    status_code = 500
    outcome = Outcome.ERROR
    error = "Internal server error"


class ConflictRetryable(ShopSyncError):
    """Unique-key violation on insert; the reconciler retries as an update."""


class StaleSnapshot(ShopSyncError):
    """The stored row carries a newer origin timestamp than the delivery."""

    status_code = 200
    outcome = Outcome.IGNORED
    error = "Stale snapshot"


class PatchTargetMissing(ShopSyncError):
    """A status patch arrived before the full record; nothing to patch."""

    status_code = 200
    outcome = Outcome.IGNORED
    error = "Resource not found"


class NotReplayable(ShopSyncError):
    """The log entry cannot be replayed (outcome, payload or authentication)."""

    status_code = 400
    outcome = Outcome.REJECTED
    error = "Not replayable"
