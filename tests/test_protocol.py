import pytest

from shared.errors import ProtocolError
from shared.protocol import decode_frame, encode_frame, error_response, ok_response


def test_frames_are_single_lines():
    raw = encode_frame({"id": "1", "op": "tools.call", "payload": {"prompt": "line\nbreak"}})
    assert raw.endswith(b"\n")
    assert raw.count(b"\n") == 1
    assert decode_frame(raw)["payload"]["prompt"] == "line\nbreak"


def test_decode_rejects_garbage():
    with pytest.raises(ProtocolError):
        decode_frame(b"{nope")
    with pytest.raises(ProtocolError):
        decode_frame("[1, 2]")


def test_response_shapes():
    assert ok_response("r1", {"a": 1}) == {"id": "r1", "ok": True, "result": {"a": 1}}
    err = error_response("r2", "boom", "AccessGrantError")
    assert err["ok"] is False
    assert err["error_type"] == "AccessGrantError"
    assert err["details"] == {}
