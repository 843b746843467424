"""Error kinds shared by every game mode.

Each error carries a machine readable ``kind``, a human readable message and a
``context`` dict (current phase, status, ids). Routers turn them into JSON
bodies through the handler registered in ``casino.main``.
"""


class GameError(Exception):
    kind = "error"
    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "context": self.context}


class ValidationFailed(GameError):
    kind = "validation"
    status_code = 400


class NotFound(GameError):
    kind = "not_found"
    status_code = 404


class Conflict(GameError):
    kind = "conflict"
    status_code = 409


class Forbidden(Conflict):
    """The record belongs to another participant."""

    kind = "not_owner"
    status_code = 403


class TransferRejectedError(GameError):
    """The network or wallet service definitely refused the transfer."""

    kind = "transfer_rejected"
    status_code = 502


class TransferUnknownError(GameError):
    """The transfer may or may not have happened (timeout, dropped response)."""

    kind = "transfer_unknown"
    status_code = 504


class IntegrityViolation(GameError):
    kind = "integrity"
    status_code = 500
