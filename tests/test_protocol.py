"""Tests for transcript payload rendering."""

import blake3
import msgpack

from wsdebug.protocol import (
    describe_binary,
    hash_payload,
    pretty_json,
    pretty_msgpack,
    render_payload,
    unpack_document,
)


class TestText:
    def test_raw_when_not_pretty(self):
        assert render_payload('{"a":1}') == '{"a":1}'

    def test_pretty_json(self):
        assert render_payload('{"a":1}', pretty=True) == '{\n  "a": 1\n}'

    def test_pretty_nested(self):
        body = render_payload('{"a":[1,{"b":null}]}', pretty=True)
        assert body == '{\n  "a": [\n    1,\n    {\n      "b": null\n    }\n  ]\n}'

    def test_malformed_json_falls_back_to_raw(self):
        assert render_payload("{bad json", pretty=True) == "{bad json"

    def test_plain_text_with_pretty(self):
        assert render_payload("ping", pretty=True) == "ping"

    def test_unicode_kept(self):
        assert render_payload('{"name":"żółw"}', pretty=True) == '{\n  "name": "żółw"\n}'

    def test_pretty_json_none_on_failure(self, caplog):
        with caplog.at_level("WARNING", logger="wsdebug.protocol"):
            assert pretty_json("[1, 2") is None
        assert "Not a JSON document" in caplog.text


class TestBinary:
    def test_describe_binary(self):
        data = b"\x01\x02\xff"
        digest = blake3.blake3(data).hexdigest()[:16]
        assert describe_binary(data) == f"Binary(3 bytes, blake3={digest}): 0102ff"

    def test_empty_binary(self):
        assert describe_binary(b"").startswith("Binary(0 bytes, blake3=")

    def test_hash_payload_is_32_bytes(self):
        assert len(hash_payload(b"abc")) == 32

    def test_raw_binary_when_not_pretty(self):
        packed = msgpack.packb({"a": 1})
        assert render_payload(packed).startswith("Binary(")

    def test_msgpack_map_pretty(self):
        packed = msgpack.packb({"type": "hello", "ids": [1, 2]})
        assert render_payload(packed, pretty=True) == (
            '{\n  "type": "hello",\n  "ids": [\n    1,\n    2\n  ]\n}'
        )

    def test_msgpack_bytes_rendered_as_hex(self):
        packed = msgpack.packb({"blob": b"\xde\xad"}, use_bin_type=True)
        assert pretty_msgpack(packed) == '{\n  "blob": "dead"\n}'

    def test_msgpack_scalar_is_not_a_document(self):
        assert unpack_document(msgpack.packb(5)) is None
        assert render_payload(msgpack.packb(5), pretty=True).startswith("Binary(")

    def test_garbage_binary_falls_back(self):
        data = b"\xc1\xc1\xc1"
        assert unpack_document(data) is None
        assert render_payload(data, pretty=True) == describe_binary(data)

    def test_memoryview_and_bytearray(self):
        assert render_payload(bytearray(b"\x01")) == describe_binary(b"\x01")
        assert render_payload(memoryview(b"\x01")) == describe_binary(b"\x01")


class TestFallbacks:
    def test_huge_integer_falls_back_to_raw(self):
        raw = "1" * 5000
        assert render_payload(raw, pretty=True) == raw

    def test_deep_nesting_falls_back_to_raw(self):
        raw = "[" * 200000
        assert render_payload(raw, pretty=True) == raw

    def test_deep_nesting_closed_falls_back_to_raw(self):
        raw = "[" * 100000 + "]" * 100000
        assert render_payload(raw, pretty=True) == raw

    def test_lone_surrogate_is_rendered(self):
        assert render_payload('"\\ud800"', pretty=True) == '"\ud800"'

    def test_deep_msgpack_falls_back(self):
        data = b"\x91" * 5000 + b"\x90"
        assert unpack_document(data) is None
        assert render_payload(data, pretty=True) == describe_binary(data)
