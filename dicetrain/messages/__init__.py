"""Wire protocol: message types, payload records and the envelope."""

from .protocol import (
    ACTION_TYPES,
    PAYLOAD_TYPES,
    Envelope,
    MessageType,
    create_message,
    decode_payload,
    encode_message,
    parse_envelope,
)

__all__ = [
    "ACTION_TYPES",
    "PAYLOAD_TYPES",
    "Envelope",
    "MessageType",
    "create_message",
    "decode_payload",
    "encode_message",
    "parse_envelope",
]
