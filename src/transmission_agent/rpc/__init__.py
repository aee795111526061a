"""Transmission RPC client."""

from transmission_agent.rpc.client import SESSION_ID_HEADER, SessionState, TransmissionClient
from transmission_agent.rpc.errors import (
    DecodeError,
    NetworkError,
    ProtocolError,
    RPCError,
    RPCTimeoutError,
    SessionError,
)

__all__ = [
    "DecodeError",
    "NetworkError",
    "ProtocolError",
    "RPCError",
    "RPCTimeoutError",
    "SESSION_ID_HEADER",
    "SessionError",
    "SessionState",
    "TransmissionClient",
]
