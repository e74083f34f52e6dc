"""Exception hierarchy for quote delivery."""


class QuoteServiceError(Exception):
    """Base exception for all quote delivery errors."""


class TransportError(QuoteServiceError):
    """A transport could not deliver quotes (timeout, socket error, bad HTTP status)."""


class QuoteFetchError(TransportError):
    """An HTTP quote batch could not be fetched at all."""


class AuthenticationError(QuoteServiceError):
    """The session credential is missing or was rejected. Not retried."""


class FrameParseError(QuoteServiceError):
    """An inbound streaming frame could not be mapped to a quote."""
