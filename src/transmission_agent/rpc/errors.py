"""Errors raised by the Transmission RPC client.

Every failure surfaces as a subclass of :class:`RPCError`, so callers that
only need to know "the call failed" catch the base class.
"""

from typing import Optional


class RPCError(Exception):
    """Base class for Transmission RPC failures."""

    pass


class NetworkError(RPCError):
    """Transport-level failure (connection refused, DNS, TLS, reset)."""

    pass


class RPCTimeoutError(RPCError, TimeoutError):
    """The daemon did not respond within the request timeout."""

    pass


class ProtocolError(RPCError):
    """Unexpected HTTP status or a non-success RPC result."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SessionError(RPCError):
    """Session-id handshake failed: the retried request was rejected again."""

    pass


class DecodeError(RPCError):
    """Response body was not valid JSON or did not match the expected shape."""

    pass
