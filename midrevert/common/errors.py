"""
Error taxonomy.

Only ConfigError is fatal. Everything raised by the exchange layer is
handled by the lifecycle controller and the feed loop, which log it and
move on.
"""


class MidrevertError(Exception):
    """Base class for all engine errors."""


class ConfigError(MidrevertError):
    """Invalid configuration, raised at startup."""


class FeedParseError(MidrevertError):
    """A feed message carried a price that could not be used."""

    def __init__(self, price_text, reason: str = "not a number"):
        self.price_text = price_text
        self.reason = reason
        super().__init__(f"Unparseable price {price_text!r}: {reason}")


class TransportError(MidrevertError):
    """An exchange call failed at the network layer."""


class EmptyStatusError(MidrevertError):
    """The exchange accepted the call but returned no actionable status."""


class OrderRejectedError(MidrevertError):
    """The exchange refused the order."""


class CancelRejectedError(MidrevertError):
    """The exchange refused the cancel, usually because the order already filled."""


class InvalidTransitionError(MidrevertError):
    """The lifecycle state machine was asked to make an illegal move."""
