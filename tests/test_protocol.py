"""Tests for commands and the wire envelope.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import dataclasses

import msgpack
import pytest

from clusterctl_core.protocol.command import (
    CommandError,
    CommandKind,
    Envelope,
    TerminateSelf,
    decode_envelope,
    encode_envelope,
    make_envelope,
)
from clusterctl_core.protocol.serializer import (
    JSONSerializer,
    MsgPackSerializer,
    get_serializer,
)


class TestTerminateSelf:
    """Tests for the terminate command."""

    def test_kind(self):
        """Test the command tag."""
        assert TerminateSelf().kind == CommandKind.TERMINATE_SELF

    def test_immutable(self):
        """Test commands cannot change after construction."""
        command = TerminateSelf(1.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            command.delay_seconds = 5.0

    def test_negative_delay(self):
        """Test delay validation."""
        with pytest.raises(ValueError):
            TerminateSelf(-1.0)


class TestEnvelope:
    """Tests for envelope encoding."""

    def test_msgpack_envelope(self):
        """Test the default encoding carries kind, args and targets."""
        envelope = make_envelope(TerminateSelf(3.0), sender="control", targets=["b", "a"])

        data = encode_envelope(envelope)
        raw = msgpack.unpackb(data, raw=False)

        assert raw == {
            "v": 1,
            "kind": "terminate-self",
            "args": {"delay_seconds": 3.0},
            "sender": "control",
            "targets": ["a", "b"],
        }
        assert decode_envelope(data) == envelope

    def test_json_envelope(self):
        """Test the JSON serializer is interchangeable."""
        serializer = JSONSerializer()
        envelope = make_envelope(TerminateSelf(), sender="control", targets=[])

        decoded = decode_envelope(encode_envelope(envelope, serializer), serializer)

        assert decoded.command == TerminateSelf()
        assert decoded.targets == frozenset()

    def test_addressed_to(self):
        """Test target membership."""
        envelope = Envelope(TerminateSelf(), sender="c", targets=frozenset({"a"}))

        assert envelope.addressed_to("a")
        assert not envelope.addressed_to("c")

    def test_unknown_kind(self):
        """Test that unknown command kinds are rejected."""
        data = msgpack.packb({"v": 1, "kind": "format-disk", "args": {}})

        with pytest.raises(CommandError, match="Unknown command kind"):
            decode_envelope(data)

    def test_unknown_version(self):
        """Test that other envelope versions are rejected."""
        data = msgpack.packb({"v": 99, "kind": "terminate-self"})

        with pytest.raises(CommandError, match="version"):
            decode_envelope(data)

    def test_garbage(self):
        """Test undecodable payloads."""
        with pytest.raises(CommandError):
            decode_envelope(b"\xc1not msgpack")

    def test_not_a_mapping(self):
        """Test payloads that decode to something other than a dict."""
        with pytest.raises(CommandError):
            decode_envelope(msgpack.packb([1, 2, 3]))


class TestSerializerRegistry:
    """Tests for serializer lookup."""

    def test_default_is_msgpack(self):
        assert isinstance(get_serializer(), MsgPackSerializer)

    def test_lookup_by_name(self):
        assert get_serializer("json").format_name == "json"

    def test_unknown_format(self):
        with pytest.raises(KeyError):
            get_serializer("xml")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
