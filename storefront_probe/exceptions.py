"""Exceptions raised by the storefront journey monitor."""


class MonitorError(Exception):
    """Base exception for monitor errors."""

    pass


class ConfigError(MonitorError):
    """A required setting is missing or empty."""

    pass


class DriverError(MonitorError):
    """The page driver failed to perform an operation."""

    pass


class DriverTimeoutError(DriverError):
    """A page driver operation did not finish within its timeout.

    Attributes:
        timeout_ms: The timeout that elapsed, if known.
    """

    def __init__(self, message, timeout_ms=None):
        super().__init__(message)
        self.timeout_ms = timeout_ms


class JourneyStepError(MonitorError):
    """A journey stage failed one of its own checks."""

    pass


class CartNotDetectedError(JourneyStepError):
    """Neither the cart drawer nor the cart page appeared after add to cart."""

    pass


class CartVerificationError(JourneyStepError):
    """The detected cart could not be verified as visible."""

    pass
