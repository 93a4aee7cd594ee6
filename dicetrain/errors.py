"""Exception hierarchy for the session core.

Expected game-logic rejections (wrong phase, not enough gold, bad index) are
never raised; state machine operations report them with a falsy return.
"""


class DiceTrainError(Exception):
    """Base class for all session core errors."""


class ConfigError(DiceTrainError, ValueError):
    """Invalid lobby or session configuration."""


class ProtocolError(DiceTrainError):
    """A message that does not match the wire protocol."""


class TransportError(DiceTrainError):
    """A connection could not be established or was lost."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class AddressUnavailable(TransportError):
    """The requested session id (or listening address) is already taken."""


class ConnectTimeout(TransportError):
    """The host did not answer within the connect timeout."""


class ConnectRefused(TransportError):
    """The host does not exist or refused the connection."""


class JoinError(DiceTrainError):
    """Joining a lobby failed after the connection was made."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class JoinTimeout(JoinError):
    """Neither an acceptance nor a rejection arrived in time."""


class JoinRejected(JoinError):
    """The host rejected the join request (password, full, started)."""
