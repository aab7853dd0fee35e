"""MarketPulse error taxonomy.

Only ``InvalidInput`` ever reaches callers.  The external-service errors are
raised inside the AI client and recovered by the signal generator.
"""


class MarketPulseError(Exception):
    """Base class for every error raised by MarketPulse."""


class InvalidInput(MarketPulseError, ValueError):
    """An argument cannot be used for the requested computation."""


class ExternalServiceUnavailable(MarketPulseError):
    """The AI analyst could not be reached (timeout, transport, non-2xx)."""


class MalformedExternalResponse(MarketPulseError):
    """The AI analyst answered, but the body did not match the schema."""
