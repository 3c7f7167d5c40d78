"""Tests for the gateway frame codec."""

import json

import pytest

from gateway_client.protocol import (
    ErrorShape,
    EventFrame,
    RequestFrame,
    ResponseFrame,
    build_request,
    decode_frame,
    encode_frame,
    omit_none,
)


class TestEncodeFrame:
    """Tests for frame serialization."""

    def test_request_without_params(self):
        """Test absent params are left off the wire."""
        text = encode_frame(RequestFrame(id="r1", method="health"))
        assert json.loads(text) == {"type": "req", "id": "r1", "method": "health"}

    def test_request_is_compact(self):
        """Test output has no insignificant whitespace."""
        text = encode_frame(RequestFrame(id="r1", method="x", params={"a": 1}))
        assert text == '{"type":"req","id":"r1","method":"x","params":{"a":1}}'

    def test_error_response_uses_wire_names(self):
        """Test error hints serialize with camelCase names."""
        frame = ResponseFrame(
            id="r2",
            ok=False,
            error=ErrorShape(
                code="UNAVAILABLE",
                message="busy",
                retryable=True,
                retry_after_ms=250,
            ),
        )
        assert json.loads(encode_frame(frame)) == {
            "type": "res",
            "id": "r2",
            "ok": False,
            "error": {
                "code": "UNAVAILABLE",
                "message": "busy",
                "retryable": True,
                "retryAfterMs": 250,
            },
        }

    def test_event_state_version(self):
        """Test event sequence fields use wire names."""
        frame = EventFrame(event="tick", seq=7, state_version={"presence": 2})
        assert json.loads(encode_frame(frame)) == {
            "type": "event",
            "event": "tick",
            "seq": 7,
            "stateVersion": {"presence": 2},
        }

    def test_build_request_ids_unique(self):
        """Test each built request gets a fresh id."""
        ids = {build_request("status").id for _ in range(50)}
        assert len(ids) == 50

    def test_build_request_explicit_id(self):
        frame = build_request("status", {"a": 1}, request_id="fixed")
        assert frame == RequestFrame(id="fixed", method="status", params={"a": 1})

    def test_omit_none_keeps_falsy_values(self):
        """Test only None is dropped, not other falsy values."""
        assert omit_none({"a": None, "b": 0, "c": False, "d": ""}) == {
            "b": 0,
            "c": False,
            "d": "",
        }


class TestDecodeFrame:
    """Tests for frame parsing."""

    def test_success_response(self):
        frame = decode_frame('{"type":"res","id":"a","ok":true,"payload":{"x":1}}')
        assert frame == ResponseFrame(id="a", ok=True, payload={"x": 1})

    def test_error_response(self):
        """Test a failed response keeps every error field."""
        frame = decode_frame(
            json.dumps(
                {
                    "type": "res",
                    "id": "a",
                    "ok": False,
                    "error": {
                        "code": "INVALID_REQUEST",
                        "message": "bad hash",
                        "details": {"field": "baseHash"},
                        "retryable": False,
                        "retryAfterMs": 10,
                    },
                }
            )
        )
        assert isinstance(frame, ResponseFrame)
        assert frame.ok is False
        assert frame.error == ErrorShape(
            code="INVALID_REQUEST",
            message="bad hash",
            details={"field": "baseHash"},
            retryable=False,
            retry_after_ms=10,
        )

    def test_error_response_without_error_object(self):
        """Test a bare failure gets a generic error."""
        frame = decode_frame('{"type":"res","id":"a","ok":false}')
        assert isinstance(frame, ResponseFrame)
        assert frame.error == ErrorShape(code="UNKNOWN", message="request failed")

    def test_non_boolean_ok_is_failure(self):
        """Test only a literal true counts as success."""
        frame = decode_frame('{"type":"res","id":"a","ok":"yes"}')
        assert isinstance(frame, ResponseFrame)
        assert frame.ok is False

    def test_event(self):
        frame = decode_frame(
            '{"type":"event","event":"presence","payload":[1],"seq":3,'
            '"stateVersion":{"presence":1}}'
        )
        assert frame == EventFrame(
            event="presence", payload=[1], seq=3, state_version={"presence": 1}
        )

    def test_event_bad_optional_fields_dropped(self):
        """Test malformed optional fields do not reject the frame."""
        frame = decode_frame(
            '{"type":"event","event":"tick","seq":"x","stateVersion":1}'
        )
        assert frame == EventFrame(event="tick")

    def test_request(self):
        frame = decode_frame('{"type":"req","id":"q","method":"ping"}')
        assert frame == RequestFrame(id="q", method="ping")

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "not json",
            "[]",
            "42",
            '"event"',
            "{}",
            '{"type":"unknown"}',
            '{"type":"res","ok":true}',
            '{"type":"res","id":5,"ok":true}',
            '{"type":"event"}',
            '{"type":"event","event":1}',
            '{"type":"req","id":"q"}',
        ],
    )
    def test_malformed_input(self, text):
        """Test structurally invalid input decodes to None."""
        assert decode_frame(text) is None

    def test_deeply_nested_input(self):
        """Test nesting beyond the parser's recursion limit decodes to None."""
        assert decode_frame("[" * 200000 + "]" * 200000) is None
