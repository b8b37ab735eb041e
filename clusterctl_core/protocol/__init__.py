"""Protocol module - Commands and wire codecs."""

from clusterctl_core.protocol.command import (
    CommandError,
    CommandKind,
    Envelope,
    RemoteCommand,
    TerminateSelf,
    decode_envelope,
    encode_envelope,
    make_envelope,
)
from clusterctl_core.protocol.serializer import (
    Serializer,
    JSONSerializer,
    MsgPackSerializer,
    get_serializer,
)

__all__ = [
    "CommandError",
    "CommandKind",
    "Envelope",
    "RemoteCommand",
    "TerminateSelf",
    "decode_envelope",
    "encode_envelope",
    "make_envelope",
    "Serializer",
    "JSONSerializer",
    "MsgPackSerializer",
    "get_serializer",
]
