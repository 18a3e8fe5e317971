"""Exception types raised by swaytrack."""


class SwaytrackError(Exception):
    """Base class for all swaytrack errors."""


class ConfigurationError(SwaytrackError, ValueError):
    """Invalid tracker configuration; raised before anything is started."""


class NetworkError(SwaytrackError, OSError):
    """The UDP socket could not be bound or has failed."""


class ParseError(SwaytrackError, ValueError):
    """A datagram is not a valid orientation packet."""
