"""Error kinds recognized by the interaction core."""


class TowdError(Exception):
    """Base error. `user_message` is what the chat sees, `message` is what we log."""

    recoverable = False

    def __init__(self, message: str, *, user_message: str | None = None):
        super().__init__(message)
        self.message = message
        self.user_message = user_message if user_message is not None else message


class ValidationError(TowdError):
    """Missing or invalid parameter."""

    recoverable = True


class NotFoundError(TowdError):
    """Entity lookup failed."""

    recoverable = True


class PreconditionError(TowdError):
    """Policy violation, e.g. touching a read-only external calendar."""

    recoverable = True


class UpstreamError(TowdError):
    """External service failed or answered with a non-success result."""

    recoverable = True


class PersistenceError(TowdError):
    """Database call failed. The surrounding transaction has been rolled back."""

    def __init__(self, message: str, *, cause: Exception | None = None, user_message: str | None = None):
        if user_message is None:
            detail = f"\n```\n{cause}\n```" if cause is not None else ""
            user_message = f"{message}{detail}"
        super().__init__(message, user_message=user_message)
        self.cause = cause


class TransportError(TowdError):
    """Chat transport call failed."""


class ProgrammerError(TowdError):
    """Invariant breach. Logged only, never shown to users."""


class DoubleReplyError(ProgrammerError):
    """A reply token was asked for a second initial response."""


class ConfigError(TowdError):
    """Required configuration is missing or invalid."""
